from __future__ import annotations

import logging
from typing import Protocol, Sequence

from .command import CmdResult
from .conda import EnvironmentManager

logger = logging.getLogger(__name__)


class PythonInstaller(Protocol):
    """Installs Python packages into one environment. Raises CommandError on failure."""

    def install(self, packages: Sequence[str], *, upgrade: bool = False) -> None:
        ...

    def install_manifest(self, manifest_path: str) -> None:
        ...

    def install_editable(self, project_dir: str) -> None:
        ...


class PipInstaller:
    """`python -m pip` run inside a named conda env."""

    def __init__(self, envs: EnvironmentManager, env_name: str) -> None:
        self.envs = envs
        self.env_name = env_name

    def _pip(self, args: Sequence[str], *, cwd: str | None = None) -> CmdResult:
        return self.envs.run_in(self.env_name, ["python", "-m", "pip", *args], cwd=cwd)

    def install(self, packages: Sequence[str], *, upgrade: bool = False) -> None:
        if not packages:
            return
        args = ["install", "--no-warn-script-location"]
        if upgrade:
            args.append("--upgrade")
        self._pip([*args, *packages])

    def install_manifest(self, manifest_path: str) -> None:
        self._pip(["install", "--no-warn-script-location", "-r", manifest_path])

    def install_editable(self, project_dir: str) -> None:
        self._pip(["install", "--no-deps", "--force-reinstall", "-e", "."], cwd=project_dir)
