"""Data volume discovery and attachment."""

import asyncio
import logging
from typing import Dict, List, Any, Optional

from core.interfaces.volume_interface import IVolumeAttacher
from core.models.volume import VolumeAttachment, AttachmentState
from infrastructure.aws.ec2_client import EC2Client


class VolumeAttacher(IVolumeAttacher):
    """Binds the deployment's durable EBS volume to the running instance.

    Candidates are detached (``available``) volumes in the instance's zone that
    carry every filter tag. The first one in EC2 listing order is taken; there
    is no tie-break when several qualify, so deployments should tag volumes
    uniquely per node.

    Every failure path ends in an Unknown attachment and a log line, never an
    exception, so the bootstrap run can carry on in degraded mode.
    """

    def __init__(
        self,
        ec2_client: EC2Client,
        max_attempts: int = 30,
        poll_interval_seconds: float = 10,
    ):
        self.ec2_client = ec2_client
        self.max_attempts = max_attempts
        self.poll_interval_seconds = poll_interval_seconds
        self.logger = logging.getLogger(__name__)

    async def attach(
        self,
        filter_tags: Dict[str, str],
        target_device_path: str,
        instance_id: str,
        availability_zone: str,
    ) -> VolumeAttachment:
        attachment = VolumeAttachment(
            instance_id=instance_id, target_device_path=target_device_path
        )

        try:
            existing = await self._find_attached_volume(filter_tags, instance_id)
            if existing:
                attachment.volume_id = existing
                attachment.state = AttachmentState.ATTACHED
                self.logger.info(f"Volume {existing} is already attached to {instance_id}")
                return attachment

            candidates = await self.ec2_client.describe_volumes(
                filters=self._build_filters(filter_tags, availability_zone)
            )
        except Exception as e:
            attachment.mark_unknown(f"Volume lookup failed: {str(e)}")
            self.logger.warning(attachment.error_message)
            return attachment

        if not candidates:
            attachment.mark_unknown(
                f"No available volume in {availability_zone} matching tags {filter_tags}"
            )
            self.logger.warning(attachment.error_message)
            return attachment

        if len(candidates) > 1:
            self.logger.info(
                f"{len(candidates)} volumes match; using the first listed "
                f"({candidates[0]['VolumeId']})"
            )

        attachment.volume_id = candidates[0]["VolumeId"]
        attachment.state = AttachmentState.DETACHED

        try:
            await self.ec2_client.attach_volume(
                attachment.volume_id, instance_id, target_device_path
            )
            attachment.state = AttachmentState.ATTACHING
            self.logger.info(
                f"Attaching {attachment.volume_id} to {instance_id} at {target_device_path}"
            )
        except Exception as e:
            attachment.mark_unknown(f"Attach call for {attachment.volume_id} failed: {str(e)}")
            self.logger.warning(attachment.error_message)
            return attachment

        return await self._wait_until_attached(attachment)

    async def _wait_until_attached(self, attachment: VolumeAttachment) -> VolumeAttachment:
        """Poll at a fixed interval; the first Attached observation ends the wait."""
        for attempt in range(1, self.max_attempts + 1):
            await asyncio.sleep(self.poll_interval_seconds)
            attachment.attempts = attempt

            try:
                aws_state = await self.ec2_client.get_attachment_state(
                    attachment.volume_id, attachment.instance_id
                )
            except Exception as e:
                self.logger.warning(f"Attachment poll {attempt} failed: {str(e)}")
                continue

            attachment.state = AttachmentState.from_aws(aws_state)
            if attachment.is_attached:
                self.logger.info(
                    f"Volume {attachment.volume_id} attached after {attempt} poll(s)"
                )
                return attachment

            self.logger.debug(
                f"Attachment poll {attempt}/{self.max_attempts}: {aws_state or 'none'}"
            )

        attachment.mark_unknown(
            f"Volume {attachment.volume_id} not attached after {self.max_attempts} polls"
        )
        self.logger.warning(attachment.error_message)
        return attachment

    async def _find_attached_volume(
        self, filter_tags: Dict[str, str], instance_id: str
    ) -> Optional[str]:
        """Volume ID of a matching volume already attached to this instance (re-boot case)."""
        filters = [{"Name": "attachment.instance-id", "Values": [instance_id]}]
        filters.extend(self._tag_filters(filter_tags))

        for volume in await self.ec2_client.describe_volumes(filters=filters):
            for item in volume.get("Attachments", []):
                if item.get("InstanceId") == instance_id and item.get("State") == "attached":
                    return volume["VolumeId"]
        return None

    def _build_filters(
        self, filter_tags: Dict[str, str], availability_zone: str
    ) -> List[Dict[str, Any]]:
        filters = [
            {"Name": "status", "Values": ["available"]},
            {"Name": "availability-zone", "Values": [availability_zone]},
        ]
        filters.extend(self._tag_filters(filter_tags))
        return filters

    @staticmethod
    def _tag_filters(filter_tags: Dict[str, str]) -> List[Dict[str, Any]]:
        return [{"Name": f"tag:{key}", "Values": [value]} for key, value in filter_tags.items()]
