from __future__ import annotations

import logging
from pathlib import Path

from ..errors import ApplicationInstallError
from ..lib.command import CommandError
from ..lib.vcs import fresh_clone
from ..pipeline import Outcome, best_effort

logger = logging.getLogger(__name__)


class FetchSourcesStep:
    """Keep a record clone under $HOME and make a fresh clone to install from."""

    step_id = "65_fetch_sources"

    def run(self, ctx) -> Outcome:
        cfg = ctx.config
        record = cfg.app_record_dir
        warnings = []

        if Path(record).is_dir():
            logger.info("Updating existing repo at %s", record)
            warnings.append(best_effort(f"update {record}", lambda: ctx.vcs.update(record)))
        else:
            warnings.append(
                best_effort(f"clone {cfg.app_repo_url}", lambda: ctx.vcs.clone(cfg.app_repo_url, record))
            )

        logger.info("Preparing fresh clone in %s for env-local editable install", cfg.app_checkout_dir)
        try:
            fresh_clone(ctx.vcs, cfg.app_repo_url, cfg.app_checkout_dir)
        except (CommandError, OSError) as e:
            raise ApplicationInstallError(f"Could not clone {cfg.app_repo_url}: {e}") from e

        return Outcome.from_warnings(warnings)
