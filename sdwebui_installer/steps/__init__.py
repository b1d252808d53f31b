from .step_10_install_dependencies import InstallDependenciesStep
from .step_20_install_driver import InstallDriverStep
from .step_30_clone_repository import CloneRepositoryStep
from .step_40_bootstrap_environment import BootstrapEnvironmentStep
from .step_50_install_xformers import InstallXformersStep
from .step_60_fetch_checkpoint import FetchCheckpointStep
from .step_70_register_service import RegisterServiceStep, build_unit
from .step_80_cleanup import CleanupStep

__all__ = [
    "InstallDependenciesStep",
    "InstallDriverStep",
    "CloneRepositoryStep",
    "BootstrapEnvironmentStep",
    "InstallXformersStep",
    "FetchCheckpointStep",
    "RegisterServiceStep",
    "CleanupStep",
    "build_unit",
]
