"""Core business services for the node provisioner."""

from .config_service import ConfigService
from .remote_command_runner import RemoteCommandRunner
from .volume_attacher import VolumeAttacher
from .tool_installer import ToolInstaller
from .provisioning_agent import ProvisioningAgent
from .health_classifier import HealthClassifier
from .alert_dispatcher import AlertDispatcher
from .phase_executors import (
    CommonPhaseExecutor,
    InfrastructurePhaseExecutor,
    InstallPhaseExecutor,
    SyncPhaseExecutor
)

__all__ = [
    'ConfigService',
    'RemoteCommandRunner',
    'VolumeAttacher',
    'ToolInstaller',
    'ProvisioningAgent',
    'HealthClassifier',
    'AlertDispatcher',
    'CommonPhaseExecutor',
    'InfrastructurePhaseExecutor',
    'InstallPhaseExecutor',
    'SyncPhaseExecutor'
]
