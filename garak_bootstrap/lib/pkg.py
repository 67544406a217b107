from __future__ import annotations

import logging
from typing import Protocol, Sequence

from ..errors import PackageManagerError
from .command import CommandError, run_cmd

logger = logging.getLogger(__name__)


class PackageManager(Protocol):
    def update(self) -> None:
        ...

    def install(self, packages: Sequence[str]) -> None:
        ...


class AptPackageManager:
    """Host apt-get, non-interactive."""

    env = {"DEBIAN_FRONTEND": "noninteractive"}

    def update(self) -> None:
        try:
            run_cmd(["apt-get", "update", "-y"], env=self.env)
        except CommandError as e:
            raise PackageManagerError(f"apt-get update failed: {e}") from e

    def install(self, packages: Sequence[str]) -> None:
        if not packages:
            return
        try:
            run_cmd(["apt-get", "install", "-y", *packages], env=self.env)
        except CommandError as e:
            raise PackageManagerError(f"apt-get install {' '.join(packages)} failed: {e}") from e
