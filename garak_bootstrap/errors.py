"""Error taxonomy for a provisioning run.

Fatal errors derive from BootstrapError and carry the process exit code the
run ends with. Non-fatal categories are warnings: steps record them in their
outcome and the run continues.
"""

from __future__ import annotations

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_APPLICATION = 2
EXIT_VERIFICATION = 3


class BootstrapError(RuntimeError):
    exit_code = EXIT_FAILURE


class ConfigError(BootstrapError):
    pass


class DownloadError(BootstrapError):
    pass


class FormatError(BootstrapError):
    pass


class InstallError(BootstrapError):
    pass


class PackageManagerError(BootstrapError):
    pass


class ProvisionError(BootstrapError):
    pass


class VerificationError(BootstrapError):
    """The installed key is not the pinned signer (or its fingerprint could not be read)."""

    exit_code = EXIT_VERIFICATION

    def __init__(self, message: str, *, expected: str, found: str | None) -> None:
        super().__init__(message)
        self.expected = expected
        self.found = found


class ApplicationInstallError(BootstrapError):
    exit_code = EXIT_APPLICATION


class DependencyWarning(UserWarning):
    pass


class PostInstallWarning(UserWarning):
    pass
