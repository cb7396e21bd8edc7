"""Unit tests for RemoteCommandRunner."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from botocore.exceptions import ClientError

from core.exceptions import RemoteCommandFailed
from core.models.remote_command import CommandResult, FailureKind
from core.services.remote_command_runner import RemoteCommandRunner


def invocation(status, details="", output="", exit_code=0):
    return {
        "command_id": "cmd-1",
        "instance_id": "i-1",
        "status": status,
        "status_details": details,
        "standard_output": output,
        "standard_error": "",
        "response_code": exit_code,
    }


class TestRemoteCommandRunner:
    """Test cases for RemoteCommandRunner."""

    def setup_method(self):
        """Set up a mocked SSM client."""
        self.ssm_client = MagicMock()
        self.ssm_client.run_shell_script = AsyncMock(return_value="cmd-1")
        self.ssm_client.get_command_invocation = AsyncMock()
        self.runner = RemoteCommandRunner(self.ssm_client, poll_interval_seconds=5)

    @pytest.mark.asyncio
    async def test_success(self):
        self.ssm_client.get_command_invocation.side_effect = [
            {},
            invocation("InProgress"),
            invocation("Success", "Success", output="12345\nactive\n"),
        ]

        with patch("core.services.remote_command_runner.asyncio.sleep", new=AsyncMock()) as sleep:
            command = await self.runner.run("i-1", ["echo 12345", "echo active"], 60)

        assert command.succeeded
        assert command.command_id == "cmd-1"
        assert command.output_lines() == ["12345", "active"]
        assert sleep.await_count == 3

        self.ssm_client.run_shell_script.assert_awaited_once_with(
            "i-1", ["echo 12345", "echo active"], 60, comment="echo 12345"
        )

    @pytest.mark.asyncio
    async def test_non_zero_exit(self):
        self.ssm_client.get_command_invocation.return_value = invocation(
            "Failed", "Failed", output="partial", exit_code=2
        )

        with patch("core.services.remote_command_runner.asyncio.sleep", new=AsyncMock()):
            command = await self.runner.run("i-1", ["false"], 60)

        assert command.result == CommandResult.FAILED
        assert command.failure_kind == FailureKind.NON_ZERO_EXIT
        assert command.exit_code == 2
        with pytest.raises(RemoteCommandFailed):
            command.raise_for_status()

    @pytest.mark.asyncio
    async def test_execution_timeout_reported_by_agent(self):
        self.ssm_client.get_command_invocation.return_value = invocation(
            "TimedOut", "ExecutionTimedOut", exit_code=-1
        )

        with patch("core.services.remote_command_runner.asyncio.sleep", new=AsyncMock()):
            command = await self.runner.run("i-1", ["sleep 999"], 60)

        assert command.failure_kind == FailureKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_polling_is_bounded(self):
        self.ssm_client.get_command_invocation.return_value = invocation("InProgress")

        with patch("core.services.remote_command_runner.asyncio.sleep", new=AsyncMock()) as sleep:
            command = await self.runner.run("i-1", ["sleep 999"], 30)

        assert command.failure_kind == FailureKind.TIMEOUT
        assert self.ssm_client.get_command_invocation.await_count == 6
        assert sleep.await_count == 6

    @pytest.mark.asyncio
    async def test_undeliverable_target(self):
        self.ssm_client.get_command_invocation.return_value = invocation(
            "Failed", "Undeliverable", exit_code=-1
        )

        with patch("core.services.remote_command_runner.asyncio.sleep", new=AsyncMock()):
            command = await self.runner.run("i-1", ["true"], 60)

        assert command.failure_kind == FailureKind.UNREACHABLE

    @pytest.mark.asyncio
    async def test_send_rejected_for_unknown_instance(self):
        self.ssm_client.run_shell_script.side_effect = ClientError(
            {"Error": {"Code": "InvalidInstanceId", "Message": "not managed"}}, "SendCommand"
        )

        command = await self.runner.run("i-1", ["true"], 60)

        assert command.failure_kind == FailureKind.UNREACHABLE
        self.ssm_client.get_command_invocation.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_rejected_for_other_reasons(self):
        self.ssm_client.run_shell_script.side_effect = ClientError(
            {"Error": {"Code": "InvalidDocument", "Message": "bad"}}, "SendCommand"
        )

        command = await self.runner.run("i-1", ["true"], 60)

        assert command.failure_kind == FailureKind.NON_ZERO_EXIT

    @pytest.mark.asyncio
    async def test_poll_errors_are_retried(self):
        self.ssm_client.get_command_invocation.side_effect = [
            RuntimeError("throttled"),
            invocation("Success", "Success", output="ok"),
        ]

        with patch("core.services.remote_command_runner.asyncio.sleep", new=AsyncMock()):
            command = await self.runner.run("i-1", ["true"], 60)

        assert command.succeeded

    def test_poll_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            RemoteCommandRunner(self.ssm_client, poll_interval_seconds=0)


if __name__ == "__main__":
    pytest.main([__file__])
