"""Unit tests for VolumeAttacher."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from core.models.volume import AttachmentState
from core.services.volume_attacher import VolumeAttacher


TAGS = {"Project": "AWSNear"}


class TestVolumeAttacher:
    """Test cases for VolumeAttacher."""

    def setup_method(self):
        """Set up a mocked EC2 client."""
        self.ec2_client = MagicMock()
        self.ec2_client.describe_volumes = AsyncMock()
        self.ec2_client.attach_volume = AsyncMock(return_value={"state": "attaching"})
        self.ec2_client.get_attachment_state = AsyncMock()
        self.attacher = VolumeAttacher(self.ec2_client, max_attempts=30, poll_interval_seconds=10)

    @pytest.mark.asyncio
    async def test_no_candidate_volume(self):
        self.ec2_client.describe_volumes.side_effect = [[], []]

        with patch("core.services.volume_attacher.asyncio.sleep", new=AsyncMock()) as sleep:
            attachment = await self.attacher.attach(TAGS, "/dev/sdf", "i-1", "us-east-1a")

        assert attachment.state == AttachmentState.UNKNOWN
        assert "No available volume" in attachment.error_message
        assert attachment.attempts == 0
        self.ec2_client.attach_volume.assert_not_called()
        self.ec2_client.get_attachment_state.assert_not_called()
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_candidate_filters(self):
        self.ec2_client.describe_volumes.side_effect = [[], []]

        await self.attacher.attach(TAGS, "/dev/sdf", "i-1", "us-east-1a")

        filters = self.ec2_client.describe_volumes.call_args_list[1].kwargs["filters"]
        assert {"Name": "status", "Values": ["available"]} in filters
        assert {"Name": "availability-zone", "Values": ["us-east-1a"]} in filters
        assert {"Name": "tag:Project", "Values": ["AWSNear"]} in filters

    @pytest.mark.asyncio
    async def test_attached_on_fifth_poll(self):
        self.ec2_client.describe_volumes.side_effect = [[], [{"VolumeId": "vol-1"}]]
        self.ec2_client.get_attachment_state.side_effect = ["attaching"] * 4 + ["attached"]

        with patch("core.services.volume_attacher.asyncio.sleep", new=AsyncMock()) as sleep:
            attachment = await self.attacher.attach(TAGS, "/dev/sdf", "i-1", "us-east-1a")

        assert attachment.is_attached
        assert attachment.volume_id == "vol-1"
        assert attachment.attempts == 5
        assert self.ec2_client.get_attachment_state.await_count == 5
        assert sleep.await_count == 5
        sleep.assert_awaited_with(10)
        self.ec2_client.attach_volume.assert_awaited_once_with("vol-1", "i-1", "/dev/sdf")

    @pytest.mark.asyncio
    async def test_first_listed_candidate_wins(self):
        self.ec2_client.describe_volumes.side_effect = [
            [], [{"VolumeId": "vol-a"}, {"VolumeId": "vol-b"}]
        ]
        self.ec2_client.get_attachment_state.return_value = "attached"

        with patch("core.services.volume_attacher.asyncio.sleep", new=AsyncMock()):
            attachment = await self.attacher.attach(TAGS, "/dev/sdf", "i-1", "us-east-1a")

        assert attachment.volume_id == "vol-a"

    @pytest.mark.asyncio
    async def test_never_attaches(self):
        attacher = VolumeAttacher(self.ec2_client, max_attempts=3, poll_interval_seconds=1)
        self.ec2_client.describe_volumes.side_effect = [[], [{"VolumeId": "vol-1"}]]
        self.ec2_client.get_attachment_state.return_value = "attaching"

        with patch("core.services.volume_attacher.asyncio.sleep", new=AsyncMock()):
            attachment = await attacher.attach(TAGS, "/dev/sdf", "i-1", "us-east-1a")

        assert attachment.state == AttachmentState.UNKNOWN
        assert attachment.attempts == 3
        assert "not attached after 3 polls" in attachment.error_message

    @pytest.mark.asyncio
    async def test_attach_call_failure(self):
        self.ec2_client.describe_volumes.side_effect = [[], [{"VolumeId": "vol-1"}]]
        self.ec2_client.attach_volume.side_effect = RuntimeError("VolumeInUse")

        with patch("core.services.volume_attacher.asyncio.sleep", new=AsyncMock()) as sleep:
            attachment = await self.attacher.attach(TAGS, "/dev/sdf", "i-1", "us-east-1a")

        assert attachment.state == AttachmentState.UNKNOWN
        assert "VolumeInUse" in attachment.error_message
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_poll_errors_are_retried(self):
        self.ec2_client.describe_volumes.side_effect = [[], [{"VolumeId": "vol-1"}]]
        self.ec2_client.get_attachment_state.side_effect = [RuntimeError("throttled"), "attached"]

        with patch("core.services.volume_attacher.asyncio.sleep", new=AsyncMock()):
            attachment = await self.attacher.attach(TAGS, "/dev/sdf", "i-1", "us-east-1a")

        assert attachment.is_attached
        assert attachment.attempts == 2

    @pytest.mark.asyncio
    async def test_already_attached_volume_is_reused(self):
        self.ec2_client.describe_volumes.side_effect = [[
            {
                "VolumeId": "vol-9",
                "Attachments": [{"InstanceId": "i-1", "State": "attached"}],
            }
        ]]

        attachment = await self.attacher.attach(TAGS, "/dev/sdf", "i-1", "us-east-1a")

        assert attachment.is_attached
        assert attachment.volume_id == "vol-9"
        self.ec2_client.attach_volume.assert_not_called()

    @pytest.mark.asyncio
    async def test_lookup_failure(self):
        self.ec2_client.describe_volumes.side_effect = RuntimeError("AccessDenied")

        attachment = await self.attacher.attach(TAGS, "/dev/sdf", "i-1", "us-east-1a")

        assert attachment.state == AttachmentState.UNKNOWN
        assert "AccessDenied" in attachment.error_message


if __name__ == "__main__":
    pytest.main([__file__])
