"""Volume attacher interface."""

from abc import ABC, abstractmethod
from typing import Dict
from core.models.volume import VolumeAttachment


class IVolumeAttacher(ABC):
    """Interface for binding a durable data volume to an instance."""

    @abstractmethod
    async def attach(
        self,
        filter_tags: Dict[str, str],
        target_device_path: str,
        instance_id: str,
        availability_zone: str,
    ) -> VolumeAttachment:
        """Find a detached matching volume and attach it.

        Args:
            filter_tags: Tags a candidate volume must carry
            target_device_path: Device name for the attachment
            instance_id: Instance to attach to
            availability_zone: Zone the volume must be in

        Returns:
            VolumeAttachment in state Attached, or Unknown on any failure.
            Never raises.
        """
        pass
