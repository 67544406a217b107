from __future__ import annotations

import logging
from pathlib import Path

from ..errors import VerificationError
from ..lib.backup import restore
from ..lib.fingerprint import extract_and_verify
from ..pipeline import Outcome

logger = logging.getLogger(__name__)


def restore_backups(ctx) -> None:
    """Put every backed-up file back. Safe to call more than once."""

    for ref in ctx.backups:
        try:
            restore(ref)
        except OSError as e:
            logger.error("Could not restore %s from %s: %s", str(ref.original), str(ref.stored), e)


class TrustKeyStep:
    """Download, dearmor and install the repo key, then check it against the pin.

    The fingerprint is read back from the installed keyring, i.e. exactly what
    apt will trust. On mismatch (or an unreadable keyring) the untrusted
    keyring is removed, previous files are restored and the run stops.
    """

    step_id = "30_trust_key"

    def run(self, ctx) -> Outcome:
        cfg = ctx.config
        keys = ctx.keys

        armored = keys.fetch(cfg.key_url)
        ctx.reach("KEY_FETCHED")
        binary = keys.dearmor(armored)
        ctx.reach("KEY_DEARMORED")
        keys.install(binary, cfg.keyring_path)
        ctx.reach("KEY_INSTALLED")

        try:
            found = extract_and_verify(keys, cfg.keyring_path, cfg.expected_fingerprint)
        except VerificationError as e:
            if e.found:
                ctx.reach("FPR_EXTRACTED")
                ctx.reach("MISMATCH")
            else:
                ctx.reach("EXTRACT_FAIL")
            logger.error("ERROR: %s!", e)
            logger.error(" Expected: %s", cfg.expected_fingerprint)
            logger.error(" Found:    %s", e.found or "<none>")
            logger.error("Aborting. Restoring any backed-up apt source.")
            ctx.decide("fingerprint", {"expected": cfg.expected_fingerprint, "found": e.found})

            keyring = Path(cfg.keyring_path)
            try:
                keyring.unlink()
            except FileNotFoundError:
                pass
            except OSError as err:
                logger.error("Could not remove untrusted keyring %s: %s", str(keyring), err)
            restore_backups(ctx)
            ctx.reach("RESTORED")
            ctx.reach("ABORTED")
            return Outcome.fatal(e)

        ctx.reach("FPR_EXTRACTED")
        ctx.reach("MATCH")
        ctx.decide("fingerprint", {"expected": cfg.expected_fingerprint, "found": found})
        return Outcome.ok()
