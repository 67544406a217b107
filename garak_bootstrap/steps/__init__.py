from .step_10_backup_source import BackupSourceStep
from .step_20_base_packages import BasePackagesStep
from .step_30_trust_key import TrustKeyStep, restore_backups
from .step_40_register_source import RegisterSourceStep
from .step_50_install_conda import InstallCondaStep
from .step_60_ensure_env import EnsureEnvStep
from .step_65_fetch_sources import FetchSourcesStep
from .step_70_install_deps import InstallDepsStep
from .step_80_install_app import InstallAppStep
from .step_90_post_install_checks import PostInstallChecksStep

__all__ = [
    "BackupSourceStep",
    "BasePackagesStep",
    "TrustKeyStep",
    "RegisterSourceStep",
    "InstallCondaStep",
    "EnsureEnvStep",
    "FetchSourcesStep",
    "InstallDepsStep",
    "InstallAppStep",
    "PostInstallChecksStep",
    "restore_backups",
]
