from __future__ import annotations

import logging

from ..errors import InstallError
from ..lib.apt_source import register
from ..pipeline import Outcome

logger = logging.getLogger(__name__)


class RegisterSourceStep:
    step_id = "40_register_source"

    def run(self, ctx) -> Outcome:
        cfg = ctx.config
        if not ctx.reached("MATCH"):
            # Never publish a source for a key that was not verified in this run.
            raise InstallError("refusing to register apt source: keyring not verified")

        try:
            register(
                cfg.keyring_path,
                cfg.repo_url,
                source_path=cfg.source_path,
                suite=cfg.repo_suite,
                component=cfg.repo_component,
                arch=cfg.repo_arch,
            )
        except OSError as e:
            raise InstallError(f"Could not write {cfg.source_path}: {e}") from e

        ctx.reach("SOURCE_REGISTERED")
        return Outcome.ok()
