"""
Shared test fixtures: a config rooted in tmp_path and a RunContext wired to fakes.
"""

from pathlib import Path

import pytest

from garak_bootstrap.config import ProvisionConfig
from garak_bootstrap.context import RunContext

from .fakes import FakeEnvManager, FakeInstaller, FakeKeyStore, FakePackageManager, FakeVcs

PINNED = "A" * 40


@pytest.fixture
def host(tmp_path: Path) -> Path:
    """A fake filesystem root for keyrings, sources and checkouts."""
    root = tmp_path / "host"
    (root / "backups").mkdir(parents=True)
    (root / "opt/conda/etc/profile.d").mkdir(parents=True)
    (root / "opt/conda/etc/profile.d/conda.sh").write_text("# conda\n")
    return root


@pytest.fixture
def cfg(host: Path) -> ProvisionConfig:
    raw = {
        "key": {"fingerprint": PINNED, "keyring": str(host / "usr/share/keyrings/conda-archive-keyring.gpg")},
        "apt": {"source_path": str(host / "etc/apt/sources.list.d/conda.list")},
        "conda": {"profile": str(host / "opt/conda/etc/profile.d/conda.sh")},
        "app": {"checkout_dir": str(host / "tmp/garak"), "record_dir": str(host / "root/garak")},
        "paths": {"log_dir": str(host / "root/garak_install_logs")},
    }
    return ProvisionConfig(raw=raw, home=str(host / "root"))


@pytest.fixture
def make_ctx(cfg: ProvisionConfig, host: Path):
    """Build a RunContext; pass fakes to override the happy-path defaults."""

    def _make(**overrides) -> RunContext:
        parts = {
            "packages": FakePackageManager(),
            "keys": FakeKeyStore(PINNED),
            "envs": FakeEnvManager(),
            "installer": FakeInstaller(),
            "vcs": FakeVcs(),
        }
        parts.update(overrides)
        return RunContext(
            config=cfg,
            log_path=str(host / "root/garak_install_logs/install_test.log"),
            tmp_root=str(host / "backups"),
            **parts,
        )

    return _make
