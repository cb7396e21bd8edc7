"""Bootstrap run data models."""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple


NONE_VALUE = "none"


class BootstrapStep(Enum):
    """Bootstrap steps, in execution order."""
    PERSIST_CONFIG = "persist_config"
    ENSURE_TOOLS = "ensure_tools"
    ATTACH_VOLUME = "attach_volume"
    RUN_SETUP = "run_setup"
    SIGNAL = "signal"


class StepStatus(Enum):
    """Outcome of one bootstrap log entry."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DEGRADED = "degraded"
    ATTEMPTED = "attempted"


@dataclass
class BootstrapSettings:
    """Flat configuration block handed to the node at boot."""

    region: str
    stack_name: str = NONE_VALUE
    stack_id: str = NONE_VALUE
    resource_id: str = NONE_VALUE
    network: str = "mainnet"
    version: str = "latest"
    assets_s3_path: str = NONE_VALUE
    data_volume_type: str = "gp3"
    data_volume_size: str = "0"
    limit_out_traffic_mbps: str = "1000"
    lifecycle_hook_name: str = NONE_VALUE
    asg_name: str = NONE_VALUE
    instance_id: str = NONE_VALUE
    availability_zone: str = NONE_VALUE

    ENV_KEYS = {
        "region": "AWS_REGION",
        "stack_name": "STACK_NAME",
        "stack_id": "STACK_ID",
        "resource_id": "RESOURCE_ID",
        "network": "NEAR_NETWORK",
        "version": "NEAR_VERSION",
        "assets_s3_path": "ASSETS_S3_PATH",
        "data_volume_type": "DATA_VOLUME_TYPE",
        "data_volume_size": "DATA_VOLUME_SIZE",
        "limit_out_traffic_mbps": "LIMIT_OUT_TRAFFIC_MBPS",
        "lifecycle_hook_name": "LIFECYCLE_HOOK_NAME",
        "asg_name": "ASG_NAME",
        "instance_id": "INSTANCE_ID",
        "availability_zone": "AVAILABILITY_ZONE",
    }

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "BootstrapSettings":
        """Build settings from snake_case keys or their environment-style names."""
        values = {}
        for item in fields(cls):
            env_key = cls.ENV_KEYS[item.name]
            if item.name in data and data[item.name] is not None:
                values[item.name] = str(data[item.name])
            elif env_key in data and data[env_key] is not None:
                values[item.name] = str(data[env_key])

        if "region" not in values:
            raise ValueError("Bootstrap configuration requires a region")

        return cls(**values)

    def to_environment(self) -> Dict[str, str]:
        """Settings as KEY=VALUE pairs for the node's environment file."""
        return {
            self.ENV_KEYS[item.name]: getattr(self, item.name) for item in fields(self)
        }

    @staticmethod
    def is_set(value: Optional[str]) -> bool:
        return bool(value) and value.lower() != NONE_VALUE

    @property
    def assets_location(self) -> Optional[Tuple[str, str]]:
        """(bucket, key) parsed from ``s3://bucket/key``."""
        if not self.is_set(self.assets_s3_path) or not self.assets_s3_path.startswith("s3://"):
            return None
        bucket, _, key = self.assets_s3_path[len("s3://"):].partition("/")
        if not bucket or not key:
            return None
        return bucket, key

    @property
    def uses_lifecycle_hook(self) -> bool:
        """Auto-scaling nodes complete a lifecycle hook instead of a stack resource."""
        return (
            not self.is_set(self.resource_id)
            and self.is_set(self.lifecycle_hook_name)
            and self.is_set(self.asg_name)
        )


@dataclass
class BootstrapLogEntry:
    """Single entry in a bootstrap run log."""
    step: BootstrapStep
    status: StepStatus
    message: str
    timestamp: datetime = field(default_factory=datetime.utcnow)
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.value,
            "status": self.status.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }


@dataclass
class BootstrapRun:
    """One execution of the bootstrap agent on one instance."""

    instance_id: str
    region: str
    received_config: Dict[str, str] = field(default_factory=dict)
    log: List[BootstrapLogEntry] = field(default_factory=list)

    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    signal_sent: bool = False

    def record(
        self, step: BootstrapStep, status: StepStatus, message: str, **details: Any
    ) -> BootstrapLogEntry:
        entry = BootstrapLogEntry(step=step, status=status, message=message, details=details)
        self.log.append(entry)
        return entry

    def entries_for(self, step: BootstrapStep) -> List[BootstrapLogEntry]:
        return [entry for entry in self.log if entry.step == step]

    def has_attempted(self, step: BootstrapStep) -> bool:
        return bool(self.entries_for(step))

    @property
    def failed_steps(self) -> List[BootstrapStep]:
        failed = []
        for entry in self.log:
            if entry.status == StepStatus.FAILED and entry.step not in failed:
                failed.append(entry.step)
        return failed

    def mark_finished(self) -> None:
        self.finished_at = datetime.utcnow()

    def get_summary(self) -> Dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "region": self.region,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "signal_sent": self.signal_sent,
            "failed_steps": [step.value for step in self.failed_steps],
            "entries": len(self.log),
        }
