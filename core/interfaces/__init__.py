"""Core interfaces for the node provisioner."""

from .config_interface import IConfigService
from .remote_command_interface import IRemoteCommandRunner
from .phase_interface import IPhaseExecutor, IPhaseOrchestrator
from .volume_interface import IVolumeAttacher
from .health_interface import IHealthReportSubscriber

__all__ = [
    'IConfigService',
    'IRemoteCommandRunner',
    'IPhaseExecutor',
    'IPhaseOrchestrator',
    'IVolumeAttacher',
    'IHealthReportSubscriber'
]
