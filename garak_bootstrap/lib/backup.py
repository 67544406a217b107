from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupRef:
    original: Path
    stored: Path

    def as_dict(self) -> dict:
        return {"original": str(self.original), "stored": str(self.stored)}


def backup(path: str, *, prefix: str = "conda_repo_backup_", tmp_root: Optional[str] = None) -> Optional[BackupRef]:
    """Move an existing file out of the way into a fresh temp directory.

    Returns None when there is nothing to back up. A failed move is logged
    and also returns None: the caller carries on as if no file had existed.
    """

    src = Path(path)
    if not src.is_file():
        return None

    try:
        holder = Path(tempfile.mkdtemp(prefix=prefix, dir=tmp_root))
        dst = holder / src.name
        shutil.move(str(src), str(dst))
    except OSError as e:
        logger.warning("Could not back up %s: %s", str(src), e)
        return None

    logger.info("Found existing %s. Backed up to %s", str(src), str(dst))
    return BackupRef(original=src, stored=dst)


def restore(ref: Optional[BackupRef]) -> bool:
    """Put a backed-up file back. Returns True if a file was moved.

    No-op for None and for a ref that was already restored.
    """

    if ref is None:
        return False
    if not ref.stored.exists():
        logger.info("Backup %s already restored", str(ref.stored))
        return False

    ref.original.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(ref.stored), str(ref.original))
    logger.info("Restored %s from %s", str(ref.original), str(ref.stored))
    return True
