"""Data volume attachment model."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AttachmentState(Enum):
    """Volume attachment state as seen by the bootstrap agent."""
    DETACHED = "detached"
    ATTACHING = "attaching"
    ATTACHED = "attached"
    UNKNOWN = "unknown"

    @classmethod
    def from_aws(cls, aws_state: Optional[str]) -> "AttachmentState":
        """Map an EC2 attachment state to ours."""
        state_mapping = {
            "attaching": cls.ATTACHING,
            "attached": cls.ATTACHED,
            "detaching": cls.DETACHED,
            "detached": cls.DETACHED,
        }
        return state_mapping.get(aws_state or "", cls.UNKNOWN)


@dataclass
class VolumeAttachment:
    """Binding of a durable data volume to an instance."""

    instance_id: str
    target_device_path: str
    volume_id: Optional[str] = None
    state: AttachmentState = AttachmentState.UNKNOWN
    attempts: int = 0
    error_message: Optional[str] = None

    @property
    def is_attached(self) -> bool:
        return self.state == AttachmentState.ATTACHED

    def mark_unknown(self, reason: str) -> None:
        self.state = AttachmentState.UNKNOWN
        self.error_message = reason
