"""Core data models for the node provisioner."""

from .config import NodeConfig, AWSConfig, DataVolumeConfig, NearNetwork, VolumeType
from .phase import Phase, PhaseName, PhaseStatus
from .remote_command import RemoteCommand, CommandResult, FailureKind
from .volume import VolumeAttachment, AttachmentState
from .bootstrap import BootstrapSettings, BootstrapRun, BootstrapStep, StepStatus
from .health import HealthSample, HealthReport, SyncStatus
from .alert import Alert, AlertRule, AlertState

__all__ = [
    'NodeConfig',
    'AWSConfig',
    'DataVolumeConfig',
    'NearNetwork',
    'VolumeType',
    'Phase',
    'PhaseName',
    'PhaseStatus',
    'RemoteCommand',
    'CommandResult',
    'FailureKind',
    'VolumeAttachment',
    'AttachmentState',
    'BootstrapSettings',
    'BootstrapRun',
    'BootstrapStep',
    'StepStatus',
    'HealthSample',
    'HealthReport',
    'SyncStatus',
    'Alert',
    'AlertRule',
    'AlertState'
]
