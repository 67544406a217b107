from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Protocol, Sequence

from ..errors import ProvisionError
from .command import CmdResult, CommandError, run_cmd

logger = logging.getLogger(__name__)


class EnvironmentManager(Protocol):
    def version(self) -> Optional[str]:
        ...

    def list_envs(self) -> Dict[str, str]:
        ...

    def create(self, name: str, python_spec: str) -> None:
        ...

    def run_in(self, name: str, argv: Sequence[str], *, check: bool = True, cwd: Optional[str] = None) -> CmdResult:
        ...

    def has_command(self, name: str, command: str) -> bool:
        ...


def parse_env_list(text: str) -> Dict[str, str]:
    """Parse `conda env list` output into {name: prefix}.

    Lines look like `garak   /opt/conda/envs/garak` or `base  *  /opt/conda`.
    Comments and nameless (prefix-only) entries are skipped.
    """

    envs: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = [p for p in line.split() if p != "*"]
        if len(parts) < 2 or parts[0].startswith("/"):
            continue
        envs[parts[0]] = parts[-1]
    return envs


def ensure(envs: EnvironmentManager, name: str, python_spec: str) -> bool:
    """Create `name` unless it already exists. Returns True if it was created.

    An existing environment is reused as-is; its Python version is not checked
    against `python_spec`.
    """

    existing = envs.list_envs()
    if name in existing:
        logger.info("skip-create: conda env '%s' already exists at %s", name, existing[name])
        return False

    try:
        envs.create(name, python_spec)
    except (CommandError, OSError) as e:
        raise ProvisionError(f"Could not create conda env '{name}' ({python_spec}): {e}") from e
    logger.info("Created conda env '%s' (%s)", name, python_spec)
    return True


class CondaEnvironmentManager:
    """EnvironmentManager backed by the conda CLI.

    Activation is expressed as `conda run -n NAME ...` so no shell state is
    needed between commands.
    """

    def __init__(self, conda_exe: str = "conda") -> None:
        self.conda_exe = conda_exe

    def version(self) -> Optional[str]:
        r = run_cmd([self.conda_exe, "-V"], check=False)
        if r.returncode != 0:
            return None
        return (r.stdout or r.stderr).strip() or None

    def list_envs(self) -> Dict[str, str]:
        try:
            r = run_cmd([self.conda_exe, "env", "list"])
        except CommandError as e:
            raise ProvisionError(f"conda env list failed: {e}") from e
        return parse_env_list(r.stdout)

    def create(self, name: str, python_spec: str) -> None:
        run_cmd([self.conda_exe, "create", "--name", name, python_spec, "-y"])

    def run_in(self, name: str, argv: Sequence[str], *, check: bool = True, cwd: Optional[str] = None) -> CmdResult:
        return run_cmd(
            [self.conda_exe, "run", "--no-capture-output", "-n", name, *argv],
            check=check,
            cwd=cwd,
        )

    def has_command(self, name: str, command: str) -> bool:
        prefix = self.list_envs().get(name)
        return bool(prefix) and (Path(prefix) / "bin" / command).exists()
