"""Remote command execution over SSM Run Command."""

import asyncio
import logging
import math
from typing import List

from botocore.exceptions import ClientError

from core.interfaces.remote_command_interface import IRemoteCommandRunner
from core.models.remote_command import RemoteCommand, FailureKind
from infrastructure.aws.ssm_client import SSMClient


# SSM invocation statuses that end polling
SUCCESS_STATUSES = {"Success"}
NON_ZERO_EXIT_STATUSES = {"Failed"}
TIMEOUT_STATUSES = {"TimedOut", "Cancelled", "Cancelling"}
UNREACHABLE_STATUS_DETAILS = {"Undeliverable", "DeliveryTimedOut", "Terminated", "InvalidPlatform"}

# Send errors that mean the target cannot be reached at all
UNREACHABLE_ERROR_CODES = {"InvalidInstanceId", "InvalidTarget", "UnsupportedPlatformType"}


class RemoteCommandRunner(IRemoteCommandRunner):
    """Runs shell lines on an SSM managed instance and waits, boundedly, for the result."""

    def __init__(self, ssm_client: SSMClient, poll_interval_seconds: float = 5):
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        self.ssm_client = ssm_client
        self.poll_interval_seconds = poll_interval_seconds
        self.logger = logging.getLogger(__name__)

    async def run(
        self, target: str, command_lines: List[str], timeout_seconds: int
    ) -> RemoteCommand:
        command = RemoteCommand(
            target=target, command_lines=list(command_lines), timeout_seconds=timeout_seconds
        )

        try:
            command.command_id = await self.ssm_client.run_shell_script(
                target,
                command.command_lines,
                timeout_seconds,
                comment=command.command_lines[0] if command.command_lines else None,
            )
        except ClientError as e:
            code = SSMClient.error_code(e)
            kind = FailureKind.UNREACHABLE if code in UNREACHABLE_ERROR_CODES else FailureKind.NON_ZERO_EXIT
            self.logger.error(f"Could not send command to {target}: {code}")
            command.mark_failed(kind, error_output=str(e))
            return command
        except Exception as e:
            self.logger.error(f"Could not send command to {target}: {str(e)}")
            command.mark_failed(FailureKind.UNREACHABLE, error_output=str(e))
            return command

        self.logger.info(f"Sent command {command.command_id} to {target}")

        await self._wait_for_completion(command)
        return command

    async def _wait_for_completion(self, command: RemoteCommand) -> None:
        """Poll the invocation at a fixed interval until it finishes or the timeout passes."""
        max_polls = max(1, math.ceil(command.timeout_seconds / self.poll_interval_seconds))

        for _ in range(max_polls):
            await asyncio.sleep(self.poll_interval_seconds)

            try:
                invocation = await self.ssm_client.get_command_invocation(
                    command.command_id, command.target
                )
            except Exception as e:
                self.logger.warning(f"Polling {command.command_id} failed: {str(e)}")
                continue

            if not invocation:
                # Not registered with the target yet
                continue

            if self._apply_invocation(command, invocation):
                return

        self.logger.error(
            f"Command {command.command_id} on {command.target} did not finish "
            f"within {command.timeout_seconds}s"
        )
        command.mark_failed(FailureKind.TIMEOUT)

    def _apply_invocation(self, command: RemoteCommand, invocation: dict) -> bool:
        """Record a finished invocation on the command. Returns False while still running."""
        status = invocation.get("status")
        details = invocation.get("status_details", "")
        output = invocation.get("standard_output", "")
        error_output = invocation.get("standard_error", "")
        exit_code = invocation.get("response_code", -1)

        if status in SUCCESS_STATUSES:
            command.mark_succeeded(output, exit_code=exit_code if exit_code >= 0 else 0)
        elif details in UNREACHABLE_STATUS_DETAILS:
            command.mark_failed(FailureKind.UNREACHABLE, output, None, error_output)
        elif status in TIMEOUT_STATUSES or details == "ExecutionTimedOut":
            command.mark_failed(FailureKind.TIMEOUT, output, exit_code, error_output)
        elif status in NON_ZERO_EXIT_STATUSES:
            command.mark_failed(FailureKind.NON_ZERO_EXIT, output, exit_code, error_output)
        else:
            return False

        if command.failed:
            self.logger.warning(
                f"Command {command.command_id} on {command.target} failed: "
                f"{status}/{details} (exit code {command.exit_code})"
            )
        return True
