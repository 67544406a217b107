from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigError

DEFAULT_HOME = "/root"

_FPR_RE = re.compile(r"^[0-9A-Fa-f]{40}$")


@dataclass(frozen=True)
class ProvisionConfig:
    """Provisioning settings over a raw mapping (YAML file + CLI overrides).

    Every property has a default so an empty mapping describes the stock
    Anaconda-repo + garak install.
    """

    raw: Dict[str, Any]
    home: str = DEFAULT_HOME

    def _section(self, name: str) -> Dict[str, Any]:
        return self.raw.get(name) or {}

    # Trust anchor

    @property
    def expected_fingerprint(self) -> str:
        return str(self._section("key").get("fingerprint") or "34161F5BF5EB1D4BFBBB8F0A8AEB4F8B29D82806")

    @property
    def key_url(self) -> str:
        return str(self._section("key").get("url") or "https://repo.anaconda.com/pkgs/misc/gpgkeys/anaconda.asc")

    @property
    def keyring_path(self) -> str:
        return str(self._section("key").get("keyring") or "/usr/share/keyrings/conda-archive-keyring.gpg")

    # Apt source

    @property
    def source_path(self) -> str:
        return str(self._section("apt").get("source_path") or "/etc/apt/sources.list.d/conda.list")

    @property
    def repo_url(self) -> str:
        return str(self._section("apt").get("repo_url") or "https://repo.anaconda.com/pkgs/misc/debrepo/conda")

    @property
    def repo_suite(self) -> str:
        return str(self._section("apt").get("suite") or "stable")

    @property
    def repo_component(self) -> str:
        return str(self._section("apt").get("component") or "main")

    @property
    def repo_arch(self) -> str:
        return str(self._section("apt").get("arch") or "amd64")

    @property
    def base_packages(self) -> List[str]:
        pkgs = self._section("apt").get("base_packages")
        if pkgs is None:
            return ["curl", "gnupg", "git", "unzip", "ca-certificates", "lsb-release"]
        return [str(p) for p in pkgs]

    # Conda

    @property
    def conda_exe(self) -> str:
        return str(self._section("conda").get("exe") or "/opt/conda/bin/conda")

    @property
    def conda_profile(self) -> str:
        return str(self._section("conda").get("profile") or "/opt/conda/etc/profile.d/conda.sh")

    @property
    def env_name(self) -> str:
        return str(self._section("conda").get("env_name") or "garak")

    @property
    def python_spec(self) -> str:
        return str(self._section("conda").get("python_spec") or "python>=3.10,<=3.12")

    # Python packages

    @property
    def baseline_packages(self) -> List[str]:
        return list(self._section("pip").get("baseline") or ["pip", "setuptools", "wheel"])

    @property
    def helper_packages(self) -> List[str]:
        return list(self._section("pip").get("helpers") or ["ipykernel"])

    @property
    def runtime_packages(self) -> List[str]:
        return list(self._section("pip").get("runtime") or ["pyyaml"])

    @property
    def manifest_name(self) -> str:
        return str(self._section("pip").get("manifest") or "requirements.txt")

    # Application

    @property
    def app_name(self) -> str:
        return str(self._section("app").get("name") or "garak")

    @property
    def app_repo_url(self) -> str:
        return str(self._section("app").get("repo_url") or "https://github.com/NVIDIA/garak.git")

    @property
    def app_checkout_dir(self) -> str:
        return str(self._section("app").get("checkout_dir") or "/tmp/garak")

    @property
    def app_record_dir(self) -> str:
        return str(self._section("app").get("record_dir") or str(Path(self.home) / "garak"))

    @property
    def probe_output_lines(self) -> int:
        return int(self._section("app").get("probe_output_lines") or 60)

    # Logs

    @property
    def log_dir(self) -> str:
        return str(self._section("paths").get("log_dir") or str(Path(self.home) / "garak_install_logs"))

    def validate(self) -> "ProvisionConfig":
        if not _FPR_RE.match(self.expected_fingerprint.strip()):
            raise ConfigError(
                f"key.fingerprint must be 40 hex characters, got {self.expected_fingerprint!r}"
            )
        if not self.env_name.strip():
            raise ConfigError("conda.env_name must not be empty")
        return self


def home_from_env(environ: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    return env.get("HOME") or DEFAULT_HOME


def load_config(
    path: Optional[str] = None,
    *,
    home: Optional[str] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> ProvisionConfig:
    """Load provisioning config: defaults <- YAML file <- overrides."""

    raw: Dict[str, Any] = {}
    if path:
        p = Path(path)
        if not p.exists():
            raise ConfigError(f"Config file not found: {path}")
        if p.suffix.lower() not in {".yaml", ".yml"}:
            raise ConfigError("config must be YAML")

        try:
            import yaml  # type: ignore
        except Exception as e:
            raise ConfigError("PyYAML is required to read the config file") from e

        try:
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"{path} must contain a mapping/object")

    for section, values in (overrides or {}).items():
        merged = dict(raw.get(section) or {})
        merged.update({k: v for k, v in values.items() if v is not None})
        raw[section] = merged

    return ProvisionConfig(raw=raw, home=home or home_from_env()).validate()
