from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .config import ProvisionConfig
from .lib.backup import BackupRef
from .lib.conda import CondaEnvironmentManager, EnvironmentManager
from .lib.keys import GpgKeyStore, KeyStore
from .lib.pip import PipInstaller, PythonInstaller
from .lib.pkg import AptPackageManager, PackageManager
from .lib.vcs import GitClient, VersionControl
from .state_store import record_path_for


@dataclass
class RunContext:
    """Everything a step may touch during one run.

    `state` is the serialisable run record, saved to `record_file()`; live
    objects (collaborators, backups) stay as attributes.
    """

    config: ProvisionConfig
    log_path: str
    packages: PackageManager
    keys: KeyStore
    envs: EnvironmentManager
    installer: PythonInstaller
    vcs: VersionControl
    backups: List[BackupRef] = field(default_factory=list)
    state: Dict[str, Any] = field(default_factory=dict)
    tmp_root: str | None = None
    record_path: str | None = None

    def record_file(self) -> str:
        return self.record_path or record_path_for(self.log_path)

    def reach(self, milestone: str) -> None:
        self.state.setdefault("trail", []).append(milestone)

    def reached(self, milestone: str) -> bool:
        return milestone in (self.state.get("trail") or [])

    def decide(self, key: str, value: Any) -> None:
        self.state.setdefault("decisions", {})[key] = value


def host_context(config: ProvisionConfig, *, log_path: str, record_path: str | None = None) -> RunContext:
    """RunContext wired to the real apt/gpg/conda/pip/git tools."""

    envs = CondaEnvironmentManager(config.conda_exe)
    return RunContext(
        config=config,
        log_path=log_path,
        record_path=record_path,
        packages=AptPackageManager(),
        keys=GpgKeyStore(),
        envs=envs,
        installer=PipInstaller(envs, config.env_name),
        vcs=GitClient(),
    )
