from __future__ import annotations

import logging

from ..lib.backup import backup
from ..pipeline import Outcome

logger = logging.getLogger(__name__)


class BackupSourceStep:
    """Move an existing conda apt source (and its keyring) aside.

    A stale source whose key is missing makes the first `apt-get update` fail
    with NO_PUBKEY, so it has to be out of the way before anything else runs.
    """

    step_id = "10_backup_source"

    def run(self, ctx) -> Outcome:
        cfg = ctx.config
        for path in (cfg.source_path, cfg.keyring_path):
            ref = backup(path, tmp_root=ctx.tmp_root)
            if ref is not None:
                ctx.backups.append(ref)

        ctx.decide("backups", [b.as_dict() for b in ctx.backups])
        if not ctx.backups:
            logger.info("No existing %s to back up", cfg.source_path)
        return Outcome.ok()
