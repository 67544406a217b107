from __future__ import annotations

import logging

from ..errors import VerificationError
from .keys import KeyStore, primary_fingerprints

logger = logging.getLogger(__name__)


def _normalize(fpr: str) -> str:
    return fpr.strip().upper()


def matches(extracted: str, pinned: str) -> bool:
    """Case-insensitive, full-length comparison. Empty values never match."""

    a = _normalize(extracted or "")
    b = _normalize(pinned or "")
    return bool(a) and len(a) == len(b) and a == b


def extract(keys: KeyStore, trust_store_path: str) -> str:
    """Read the fingerprint of the key *as installed* in the trust store.

    The trust store must hold exactly one primary key: apt trusts every key in
    a `signed-by` keyring, so an extra key is rejected like a wrong one.
    """

    logger.info("Reading fingerprint from keyring %s", trust_store_path)
    fprs = primary_fingerprints(keys.fingerprint_listing(trust_store_path) or "")
    if len(fprs) > 1:
        raise VerificationError(
            f"keyring {trust_store_path} holds {len(fprs)} keys, expected exactly one",
            expected="",
            found=",".join(fprs),
        )
    if not fprs:
        raise VerificationError(
            f"could not read fingerprint from {trust_store_path}",
            expected="",
            found=None,
        )
    fpr = fprs[0]
    logger.info("Found fingerprint: %s", fpr)
    return fpr


def verify(extracted: str, pinned: str) -> str:
    if not matches(extracted, pinned):
        raise VerificationError("fingerprint mismatch", expected=pinned, found=extracted)
    logger.info("Fingerprint matches expected value.")
    return extracted


def extract_and_verify(keys: KeyStore, trust_store_path: str, pinned: str) -> str:
    try:
        found = extract(keys, trust_store_path)
    except VerificationError as e:
        # Same failure path as a mismatch, with the pinned value for the audit trail.
        raise VerificationError(str(e), expected=pinned, found=e.found) from e
    return verify(found, pinned)
