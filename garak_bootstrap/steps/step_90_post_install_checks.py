from __future__ import annotations

import logging

from ..errors import ApplicationInstallError, BootstrapError, PostInstallWarning
from ..lib.command import CommandError
from ..pipeline import Outcome

logger = logging.getLogger(__name__)

IMPORT_CHECK = """\
import sys, traceback
try:
    import {module}
    print("IMPORT OK ->", getattr({module}, "__file__", None))
except Exception as e:
    print("IMPORT FAILED:", type(e).__name__, e)
    traceback.print_exc()
    sys.exit(2)
"""


def _head(text: str, lines: int) -> str:
    return "\n".join(text.splitlines()[:lines])


class PostInstallChecksStep:
    """Import the application inside the env, then smoke-test its CLI.

    Only the import decides success; CLI problems are reported as warnings.
    """

    step_id = "90_post_install_checks"

    def _check_import(self, ctx) -> None:
        cfg = ctx.config
        r = ctx.envs.run_in(
            cfg.env_name,
            ["python", "-c", IMPORT_CHECK.format(module=cfg.app_name)],
            check=False,
        )
        if r.returncode != 0:
            logger.error("%s import failed in env '%s'", cfg.app_name, cfg.env_name)
            for stream in (r.stdout, r.stderr):
                if stream and stream.strip():
                    logger.error("%s", stream.rstrip())
            raise ApplicationInstallError(
                f"import {cfg.app_name} failed (exit {r.returncode}): {(r.stdout or r.stderr).strip()}"
            )
        logger.info("%s", r.stdout.strip())

    def _try_cli(self, ctx, argv: list[str]) -> str | None:
        r = ctx.envs.run_in(ctx.config.env_name, argv, check=False)
        out = _head(r.stdout or "", ctx.config.probe_output_lines)
        if out:
            logger.info("%s", out)
        if r.returncode != 0:
            msg = f"{' '.join(argv)} exited {r.returncode}: {(r.stderr or '').strip()}"
            logger.warning("%s %s", PostInstallWarning.__name__, msg)
            return msg
        return None

    def run(self, ctx) -> Outcome:
        cfg = ctx.config
        app = cfg.app_name

        logger.info("Verifying '%s' package import and CLI...", app)
        self._check_import(ctx)
        ctx.reach("VERIFIED")

        warnings = []
        try:
            has_script = ctx.envs.has_command(cfg.env_name, app)
        except (BootstrapError, CommandError, OSError) as e:
            msg = f"could not look up the {app} console script: {e}"
            logger.warning("%s %s", PostInstallWarning.__name__, msg)
            warnings.append(msg)
            has_script = False

        if has_script:
            logger.info("Trying %s --version", app)
            warnings.append(self._try_cli(ctx, [app, "--version"]))
            logger.info("Trying %s --list_probes (short)", app)
            warnings.append(self._try_cli(ctx, [app, "--list_probes"]))
        else:
            logger.info("'%s' console script not found in env; trying python -m %s.__main__", app, app)
            warnings.append(self._try_cli(ctx, ["python", "-m", f"{app}.__main__", "--list_probes"]))

        return Outcome.from_warnings(warnings)
