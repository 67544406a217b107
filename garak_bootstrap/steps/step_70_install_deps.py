from __future__ import annotations

import logging
from pathlib import Path

from ..pipeline import Outcome, best_effort

logger = logging.getLogger(__name__)


class InstallDepsStep:
    """Best-effort installs: tooling, helper packages, runtime deps, manifest extras."""

    step_id = "70_install_deps"

    def run(self, ctx) -> Outcome:
        cfg = ctx.config
        pip = ctx.installer

        warnings = [
            best_effort("upgrade baseline tooling", lambda: pip.install(cfg.baseline_packages, upgrade=True)),
            best_effort("install helper packages", lambda: pip.install(cfg.helper_packages)),
            best_effort("install runtime dependencies", lambda: pip.install(cfg.runtime_packages)),
        ]

        manifest = Path(cfg.app_checkout_dir) / cfg.manifest_name
        if manifest.is_file():
            logger.info("Found %s; installing extras...", manifest.name)
            warnings.append(best_effort(f"install {manifest}", lambda: pip.install_manifest(str(manifest))))
        else:
            logger.info("No %s in %s; skipping extras", cfg.manifest_name, cfg.app_checkout_dir)

        ctx.reach("DEPS_INSTALLED")
        return Outcome.from_warnings(warnings)
