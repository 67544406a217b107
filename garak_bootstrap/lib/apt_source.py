from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

MANAGED_HEADER = "# Anaconda conda apt repo (managed by installer)"


def render_source(
    *,
    keyring_path: str,
    repo_url: str,
    suite: str = "stable",
    component: str = "main",
    arch: str = "amd64",
) -> str:
    """Render a one-entry sources.list pinned to a single signing keyring."""

    return (
        f"{MANAGED_HEADER}\n"
        f"deb [arch={arch} signed-by={keyring_path}] {repo_url} {suite} {component}\n"
    )


def write_atomic(path: str, contents: str, *, mode: int = 0o644) -> None:
    """Write `contents` to `path` via a temp file in the same directory + rename.

    Readers see either the old file or the complete new one. On any failure
    the temp file is removed and the old file is left as it was.
    """

    dst = Path(path)
    dst.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp = tempfile.mkstemp(prefix=f".{dst.name}.", suffix=".tmp", dir=str(dst.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(contents)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, mode)
        os.replace(tmp, str(dst))
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


def register(
    trust_store_path: str,
    repo_url: str,
    *,
    source_path: str,
    suite: str = "stable",
    component: str = "main",
    arch: str = "amd64",
) -> str:
    """Publish the apt source for a verified keyring. Returns the written text."""

    text = render_source(
        keyring_path=trust_store_path,
        repo_url=repo_url,
        suite=suite,
        component=component,
        arch=arch,
    )
    write_atomic(source_path, text)
    logger.info("Wrote %s", source_path)
    return text
