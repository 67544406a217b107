from __future__ import annotations

import logging

from ..pipeline import Outcome

logger = logging.getLogger(__name__)


class BasePackagesStep:
    step_id = "20_base_packages"

    def run(self, ctx) -> Outcome:
        ctx.packages.update()
        ctx.packages.install(ctx.config.base_packages)
        logger.info("Base packages installed: %s", " ".join(ctx.config.base_packages))
        return Outcome.ok()
