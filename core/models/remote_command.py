"""Remote command data model."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Any

from core.exceptions import RemoteCommandFailed


class CommandResult(Enum):
    """Outcome of a remote command."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FailureKind(Enum):
    """Why a remote command failed."""
    NON_ZERO_EXIT = "non_zero_exit"
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"


@dataclass
class RemoteCommand:
    """A batch of shell lines executed on one remote target."""

    target: str
    command_lines: List[str]
    timeout_seconds: int

    result: CommandResult = CommandResult.PENDING
    failure_kind: Optional[FailureKind] = None
    output: str = ""
    error_output: str = ""
    exit_code: Optional[int] = None
    command_id: Optional[str] = None

    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.result == CommandResult.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.result == CommandResult.FAILED

    def output_lines(self) -> List[str]:
        """Standard output split into stripped lines."""
        return [line.strip() for line in self.output.strip().splitlines()]

    def mark_succeeded(self, output: str, exit_code: int = 0) -> None:
        self.result = CommandResult.SUCCEEDED
        self.failure_kind = None
        self.output = output
        self.exit_code = exit_code
        self.finished_at = datetime.utcnow()

    def mark_failed(
        self,
        kind: FailureKind,
        output: str = "",
        exit_code: Optional[int] = None,
        error_output: str = "",
    ) -> None:
        self.result = CommandResult.FAILED
        self.failure_kind = kind
        self.output = output
        self.error_output = error_output
        self.exit_code = exit_code
        self.finished_at = datetime.utcnow()

    def raise_for_status(self) -> "RemoteCommand":
        """Raise RemoteCommandFailed unless the command succeeded."""
        if not self.succeeded:
            raise RemoteCommandFailed(self)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "command_id": self.command_id,
            "result": self.result.value,
            "failure_kind": self.failure_kind.value if self.failure_kind else None,
            "exit_code": self.exit_code,
            "timeout_seconds": self.timeout_seconds,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
