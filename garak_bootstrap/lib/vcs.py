from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Protocol

from .command import run_cmd

logger = logging.getLogger(__name__)


class VersionControl(Protocol):
    def clone(self, url: str, path: str) -> None:
        ...

    def update(self, path: str) -> None:
        ...


class GitClient:
    """git CLI. Errors surface as CommandError."""

    def clone(self, url: str, path: str) -> None:
        run_cmd(["git", "clone", url, path])

    def update(self, path: str) -> None:
        run_cmd(["git", "-C", path, "fetch", "--all"])
        run_cmd(["git", "-C", path, "pull", "--ff-only"])


def fresh_clone(vcs: VersionControl, url: str, path: str) -> None:
    """Clone into `path`, discarding whatever was there."""

    p = Path(path)
    if p.exists():
        logger.info("Removing previous checkout at %s", path)
        shutil.rmtree(p, ignore_errors=True)
    vcs.clone(url, path)
