from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import List, Protocol

from ..errors import DownloadError, FormatError, InstallError
from .command import CommandError, run_cmd

logger = logging.getLogger(__name__)

ARMOR_HEADER = b"-----BEGIN PGP PUBLIC KEY BLOCK-----"


class KeyStore(Protocol):
    """Fetches, converts and installs a repository signing key."""

    def fetch(self, url: str) -> bytes:
        ...

    def dearmor(self, armored: bytes) -> bytes:
        ...

    def install(self, binary: bytes, trust_store_path: str) -> None:
        ...

    def fingerprint_listing(self, trust_store_path: str) -> str:
        ...


def primary_fingerprints(listing: str) -> List[str]:
    """Return the fingerprint of every primary key in `gpg --with-colons` output.

    Fingerprint records look like `fpr:::::::::<FPR>:` (the value is field 10)
    and belong to the key record above them. Only those under a `pub`/`sec`
    record count; subkey (`sub`/`ssb`) fingerprints are skipped.
    """

    found: List[str] = []
    owner = None
    for line in listing.splitlines():
        fields = line.split(":")
        if fields[0] in ("pub", "sec", "sub", "ssb"):
            owner = fields[0]
        elif fields[0] == "fpr" and owner in ("pub", "sec"):
            if len(fields) > 9 and fields[9].strip():
                found.append(fields[9].strip())
            owner = None
    return found


class GpgKeyStore:
    """KeyStore backed by curl, gpg and install(1).

    Every intermediate file lives in a TemporaryDirectory, so nothing is left
    in /tmp whichever way a call exits.
    """

    def __init__(self, *, owner: str = "root", group: str = "root", mode: str = "644") -> None:
        self.owner = owner
        self.group = group
        self.mode = mode

    def fetch(self, url: str) -> bytes:
        logger.info("Downloading public key from %s", url)
        with tempfile.TemporaryDirectory(prefix="garak-key-") as tmp:
            out = Path(tmp) / "key.asc"
            try:
                run_cmd(["curl", "-fsSL", url, "-o", str(out)])
            except CommandError as e:
                raise DownloadError(f"Could not download {url}: {e}") from e
            data = out.read_bytes() if out.exists() else b""
        if not data:
            raise DownloadError(f"Empty response downloading {url}")
        return data

    def dearmor(self, armored: bytes) -> bytes:
        if ARMOR_HEADER not in armored:
            raise FormatError("Downloaded key is not an ASCII-armored PGP public key")

        logger.info("Dearmoring key")
        with tempfile.TemporaryDirectory(prefix="garak-key-") as tmp:
            src = Path(tmp) / "key.asc"
            dst = Path(tmp) / "key.gpg"
            src.write_bytes(armored)
            try:
                run_cmd(["gpg", "--dearmor", "--yes", "-o", str(dst), str(src)])
            except CommandError as e:
                raise FormatError(f"gpg could not dearmor the key: {e}") from e
            data = dst.read_bytes() if dst.exists() else b""
        if not data:
            raise FormatError("gpg produced no key material")
        return data

    def install(self, binary: bytes, trust_store_path: str) -> None:
        logger.info("Installing key to %s", trust_store_path)
        with tempfile.TemporaryDirectory(prefix="garak-key-") as tmp:
            src = Path(tmp) / "key.gpg"
            try:
                src.write_bytes(binary)
                Path(trust_store_path).parent.mkdir(parents=True, exist_ok=True)
                run_cmd(
                    [
                        "install",
                        "-o",
                        self.owner,
                        "-g",
                        self.group,
                        "-m",
                        self.mode,
                        str(src),
                        trust_store_path,
                    ]
                )
            except (OSError, CommandError) as e:
                raise InstallError(f"Could not install key to {trust_store_path}: {e}") from e

    def fingerprint_listing(self, trust_store_path: str) -> str:
        r = run_cmd(
            [
                "gpg",
                "--no-default-keyring",
                "--keyring",
                trust_store_path,
                "--with-colons",
                "--fingerprint",
            ],
            check=False,
        )
        if r.returncode != 0:
            logger.warning("gpg exited %s listing %s", r.returncode, trust_store_path)
        return r.stdout
