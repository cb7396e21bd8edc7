"""AWS EC2 client for data volume operations."""

from typing import List, Dict, Any, Optional
from datetime import datetime

from .base_client import BaseAWSClient


class EC2Client(BaseAWSClient):
    """AWS EC2 client wrapper for volume operations."""

    service_name = "ec2"

    async def describe_volumes(
        self,
        volume_ids: Optional[List[str]] = None,
        filters: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Describe EBS volumes with optional filtering, in provider listing order."""
        try:
            self._ensure_client()
            params = {}
            if volume_ids:
                params["VolumeIds"] = volume_ids
            if filters:
                params["Filters"] = filters

            volumes = []
            paginator = self._client.get_paginator("describe_volumes")
            for page in paginator.paginate(**params):
                volumes.extend(page["Volumes"])

            return volumes
        except Exception as e:
            self._handle_error("Describe volumes", e)

    async def attach_volume(
        self, volume_id: str, instance_id: str, device: str
    ) -> Dict[str, Any]:
        """Attach a volume to an instance."""
        try:
            self._ensure_client()
            response = self._client.attach_volume(
                VolumeId=volume_id, InstanceId=instance_id, Device=device
            )
            return {
                "volume_id": volume_id,
                "instance_id": instance_id,
                "device": response.get("Device", device),
                "state": response.get("State"),
                "timestamp": datetime.utcnow().isoformat(),
            }
        except Exception as e:
            self._handle_error("Attach volume", e)

    async def get_attachment_state(self, volume_id: str, instance_id: str) -> Optional[str]:
        """Current attachment state of a volume on an instance, or None if not attached."""
        volumes = await self.describe_volumes(volume_ids=[volume_id])
        if not volumes:
            return None

        for attachment in volumes[0].get("Attachments", []):
            if attachment.get("InstanceId") == instance_id:
                return attachment.get("State")

        return None
