from __future__ import annotations

import logging
from pathlib import Path

from ..pipeline import Outcome

logger = logging.getLogger(__name__)


class InstallCondaStep:
    step_id = "50_install_conda"

    def run(self, ctx) -> Outcome:
        cfg = ctx.config
        ctx.packages.update()
        ctx.packages.install(["conda"])

        warnings = []
        if not Path(cfg.conda_profile).exists():
            msg = f"{cfg.conda_profile} not found after installing conda."
            logger.warning("Warning: %s", msg)
            warnings.append(msg)

        version = ctx.envs.version()
        logger.info("Conda version: %s", version or "unknown")
        ctx.decide("conda_version", version)
        return Outcome.from_warnings(warnings)
