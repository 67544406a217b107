from __future__ import annotations

import logging

from ..errors import ApplicationInstallError
from ..lib.command import CommandError
from ..pipeline import Outcome

logger = logging.getLogger(__name__)


class InstallAppStep:
    step_id = "80_install_app"

    def run(self, ctx) -> Outcome:
        cfg = ctx.config
        logger.info(
            "Installing %s into conda env '%s' (editable, force reinstall)", cfg.app_name, cfg.env_name
        )
        try:
            ctx.installer.install_editable(cfg.app_checkout_dir)
        except (CommandError, OSError) as e:
            raise ApplicationInstallError(f"Installing {cfg.app_name} failed: {e}") from e

        ctx.reach("APP_INSTALLED")
        return Outcome.ok()
