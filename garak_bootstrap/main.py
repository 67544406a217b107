from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Optional, Sequence

from .config import load_config
from .context import RunContext, host_context
from .errors import EXIT_OK, BootstrapError
from .logging_utils import configure_logging, timestamped_log_path
from .pipeline import Step, run_pipeline
from .state_store import save_record
from .steps import (
    BackupSourceStep,
    BasePackagesStep,
    EnsureEnvStep,
    FetchSourcesStep,
    InstallAppStep,
    InstallCondaStep,
    InstallDepsStep,
    PostInstallChecksStep,
    RegisterSourceStep,
    TrustKeyStep,
    restore_backups,
)

logger = logging.getLogger(__name__)


def build_steps() -> list[Step]:
    return [
        BackupSourceStep(),
        BasePackagesStep(),
        TrustKeyStep(),
        RegisterSourceStep(),
        InstallCondaStep(),
        EnsureEnvStep(),
        FetchSourcesStep(),
        InstallDepsStep(),
        InstallAppStep(),
        PostInstallChecksStep(),
    ]


def run(ctx: RunContext, steps: Optional[Sequence[Step]] = None) -> int:
    """Run the provisioning pipeline and return the process exit code.

    The run record is written whatever the outcome. A failure of any kind
    before the new apt source is registered restores the backed-up files.
    """

    cfg = ctx.config
    steps = build_steps() if steps is None else steps
    exe = ctx.state.setdefault("execution", {})
    exe["started_at"] = time.strftime("%Y-%m-%dT%H:%M:%S%z")
    exe["log_path"] = ctx.log_path
    failed = True

    try:
        result = run_pipeline(ctx, steps)
        exe["ran_steps"] = result.ran_steps
        exe["warnings"] = result.warnings

        if result.error is not None:
            exe["errors"] = [
                {
                    "step": result.failed_step,
                    "type": type(result.error).__name__,
                    "error": str(result.error),
                }
            ]
            exe["exit_code"] = result.error.exit_code
            logger.error(
                "Installation FAILED at %s (%s). Log: %s",
                result.failed_step,
                type(result.error).__name__,
                ctx.log_path,
            )
            return result.error.exit_code

        for w in result.warnings:
            logger.warning("Non-fatal issue in %s: %s", w["step"], w["detail"])
        exe["exit_code"] = EXIT_OK
        failed = False
        logger.info("Installation complete. Log: %s", ctx.log_path)
        logger.info(
            "Next steps: source %s && conda activate %s ; %s --list_probes",
            cfg.conda_profile,
            cfg.env_name,
            cfg.app_name,
        )
        return EXIT_OK
    except Exception as e:
        logger.exception("Installer failed")
        exe.setdefault("errors", []).append({"step": None, "type": type(e).__name__, "error": str(e)})
        raise
    finally:
        if failed and not ctx.reached("SOURCE_REGISTERED"):
            # Nothing new was published; put the previous configuration back.
            restore_backups(ctx)
        save_record(ctx.record_file(), ctx.state)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="garak-bootstrap",
        description="Install conda from Anaconda's pin-verified apt repo and garak into a conda env.",
    )
    p.add_argument("--config", default=None, help="YAML config overriding the built-in defaults")
    p.add_argument("--home", default=None, help="Home directory for logs and the repo record (default: $HOME or /root)")
    p.add_argument("--log", default=None, help="Log file (default: <home>/garak_install_logs/install_<ts>.log)")
    p.add_argument("--record", default=None, help="Run record file, .json or .yaml (default: next to the log, .json)")
    p.add_argument("--env-name", default=None, help="Conda environment name (default: garak)")
    p.add_argument("--python-spec", default=None, help="Python constraint for a new env (default: python>=3.10,<=3.12)")
    p.add_argument("--expected-fingerprint", default=None, help="Pinned fingerprint of the Anaconda repo key")
    p.add_argument("-v", "--verbose", action="store_true", help="Show command output on the console")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(
            args.config,
            home=args.home,
            overrides={
                "conda": {"env_name": args.env_name, "python_spec": args.python_spec},
                "key": {"fingerprint": args.expected_fingerprint},
            },
        )
    except BootstrapError as e:
        sys.stderr.write(f"ERROR: {e}\n")
        return e.exit_code

    log_path = configure_logging(
        args.log or timestamped_log_path(cfg.log_dir),
        level=logging.DEBUG if args.verbose else logging.INFO,
    )
    logger.info("=== Garak installer ===")
    logger.info("Log: %s", log_path)

    return run(host_context(cfg, log_path=log_path, record_path=args.record))


if __name__ == "__main__":
    raise SystemExit(main())
