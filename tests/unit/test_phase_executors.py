"""Unit tests for the standard phase executors."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from core.exceptions import ProvisioningError, RemoteCommandFailed
from core.models.config import BootstrapConfig, InstallConfig
from core.models.remote_command import FailureKind, RemoteCommand
from core.services.phase_executors import (
    CommonPhaseExecutor,
    InfrastructurePhaseExecutor,
    InstallPhaseExecutor,
    SyncPhaseExecutor,
)


INFRA_INPUTS = {
    "Common.InstanceRoleArn": "arn:aws:iam::123456789012:role/near-node",
    "Infrastructure.InstanceId": "i-1",
    "Infrastructure.AssetsBucket": "near-assets",
    "Infrastructure.AssetsKey": "node/assets.zip",
}


def finished_command(output="", failure=None):
    command = RemoteCommand(target="i-1", command_lines=["true"], timeout_seconds=60, command_id="cmd-1")
    if failure:
        command.mark_failed(failure, output=output, exit_code=1)
    else:
        command.mark_succeeded(output)
    return command


class TestStackPhaseExecutors:
    """Common and Infrastructure phases read stack exports."""

    def setup_method(self):
        """Set up a mocked CloudFormation client."""
        self.cfn = MagicMock()
        self.cfn.get_stack_status = AsyncMock(return_value="CREATE_COMPLETE")
        self.cfn.get_stack_outputs = AsyncMock(return_value={
            "NearNodeInstanceRoleArn": "arn:role",
            "NearInstanceId": "i-1",
            "NearAssetsBucket": "near-assets",
            "NearAssetsKey": "node/assets.zip",
        })

    @pytest.mark.asyncio
    async def test_common_reads_role(self):
        outputs = await CommonPhaseExecutor(self.cfn, "near-nodes-common").execute({})

        assert outputs == {"InstanceRoleArn": "arn:role"}
        self.cfn.get_stack_outputs.assert_awaited_once_with("near-nodes-common", by_export_name=True)

    @pytest.mark.asyncio
    async def test_common_requires_deployed_stack(self):
        self.cfn.get_stack_status.return_value = None

        with pytest.raises(ProvisioningError):
            await CommonPhaseExecutor(self.cfn, "near-nodes-common").execute({})

    @pytest.mark.asyncio
    async def test_missing_export(self):
        self.cfn.get_stack_outputs.return_value = {}

        with pytest.raises(ProvisioningError) as exc_info:
            await CommonPhaseExecutor(self.cfn, "near-nodes-common").execute({})

        assert "NearNodeInstanceRoleArn" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_infrastructure_waits_for_completion(self):
        self.cfn.get_stack_status.side_effect = [None, "CREATE_IN_PROGRESS", "CREATE_COMPLETE"]
        executor = InfrastructurePhaseExecutor(self.cfn, "near-infrastructure", timeout_seconds=300)

        with patch("core.services.phase_executors.asyncio.sleep", new=AsyncMock()) as sleep:
            outputs = await executor.execute(INFRA_INPUTS)

        assert outputs == {
            "InstanceId": "i-1",
            "AssetsBucket": "near-assets",
            "AssetsKey": "node/assets.zip",
        }
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_infrastructure_rollback(self):
        self.cfn.get_stack_status.return_value = "ROLLBACK_IN_PROGRESS"
        executor = InfrastructurePhaseExecutor(self.cfn, "near-infrastructure", timeout_seconds=300)

        with pytest.raises(ProvisioningError):
            await executor.execute(INFRA_INPUTS)

    @pytest.mark.asyncio
    async def test_infrastructure_timeout(self):
        self.cfn.get_stack_status.return_value = "CREATE_IN_PROGRESS"
        executor = InfrastructurePhaseExecutor(
            self.cfn, "near-infrastructure", timeout_seconds=90, poll_interval_seconds=30
        )

        with patch("core.services.phase_executors.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ProvisioningError):
                await executor.execute(INFRA_INPUTS)

        assert self.cfn.get_stack_status.await_count == 3


class TestInstallPhaseExecutor:
    """Test cases for InstallPhaseExecutor."""

    def setup_method(self):
        """Set up a mocked remote runner."""
        self.runner = MagicMock()
        self.runner.run = AsyncMock(return_value=finished_command())
        self.install_config = InstallConfig()
        self.executor = InstallPhaseExecutor(
            self.runner, self.install_config, BootstrapConfig(), network="testnet", version="2.6.5"
        )

    def test_command_lines(self):
        lines = self.executor.build_command_lines("near-assets", "node/assets.zip")

        assert lines[0] == "set -e"
        assert "aws s3 cp s3://near-assets/node/assets.zip" in lines[2]
        assert lines[-1].startswith("/opt/near-assets/near-install.sh 2.6.5 testnet")

    @pytest.mark.asyncio
    async def test_success(self):
        outputs = await self.executor.execute(INFRA_INPUTS)

        assert outputs == {"InstallStatus": "SUCCEEDED", "InstallCommandId": "cmd-1"}
        target, _, timeout = self.runner.run.call_args.args
        assert target == "i-1"
        assert timeout == 4800

    @pytest.mark.asyncio
    async def test_failure_blocks_sync_by_default(self):
        self.runner.run.return_value = finished_command(failure=FailureKind.NON_ZERO_EXIT)

        with pytest.raises(RemoteCommandFailed):
            await self.executor.execute(INFRA_INPUTS)

    @pytest.mark.asyncio
    async def test_failure_reported_when_not_blocking(self):
        self.install_config.block_sync_on_failure = False
        self.runner.run.return_value = finished_command(failure=FailureKind.TIMEOUT)

        outputs = await self.executor.execute(INFRA_INPUTS)

        assert outputs["InstallStatus"] == "FAILED"


class TestSyncPhaseExecutor:
    """Test cases for SyncPhaseExecutor."""

    def setup_method(self):
        """Set up a mocked remote runner."""
        self.runner = MagicMock()
        self.runner.run = AsyncMock(return_value=finished_command("Created symlink\nactive\n"))
        self.executor = SyncPhaseExecutor(self.runner, "near.service", alerts_topic_arn="arn:topic")
        self.inputs = {"Infrastructure.InstanceId": "i-1", "Install.InstallStatus": "SUCCEEDED"}

    @pytest.mark.asyncio
    async def test_service_started(self):
        outputs = await self.executor.execute(self.inputs)

        assert outputs == {
            "SyncStatus": "ACTIVE",
            "SyncCommandId": "cmd-1",
            "AlertsTopicArn": "arn:topic",
        }
        assert "systemctl start near.service" in self.runner.run.call_args.args[1]

    @pytest.mark.asyncio
    async def test_service_not_active(self):
        self.runner.run.return_value = finished_command("failed\n")

        with pytest.raises(ProvisioningError):
            await self.executor.execute(self.inputs)

    @pytest.mark.asyncio
    async def test_unreachable_node(self):
        self.runner.run.return_value = finished_command(failure=FailureKind.UNREACHABLE)

        with pytest.raises(RemoteCommandFailed):
            await self.executor.execute(self.inputs)


if __name__ == "__main__":
    pytest.main([__file__])
