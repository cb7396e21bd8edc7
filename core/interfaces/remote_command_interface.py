"""Remote command runner interface."""

from abc import ABC, abstractmethod
from typing import List
from core.models.remote_command import RemoteCommand


class IRemoteCommandRunner(ABC):
    """Interface for executing shell commands on a remote target."""

    @abstractmethod
    async def run(
        self, target: str, command_lines: List[str], timeout_seconds: int
    ) -> RemoteCommand:
        """Run a batch of shell lines on a target and wait for the result.

        Args:
            target: Remote target identifier (EC2 instance ID)
            command_lines: Shell lines, executed in order
            timeout_seconds: Upper bound on the wait for completion

        Returns:
            RemoteCommand with result, output and exit code. Failures are
            returned, not raised; ``failure_kind`` tells non-zero exit,
            timeout and unreachable target apart.
        """
        pass
