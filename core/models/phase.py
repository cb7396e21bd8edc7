from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Any

from core.exceptions import InvalidPhaseTransition


class PhaseName(Enum):
    """Standard provisioning phases, in execution order."""
    COMMON = "Common"
    INFRASTRUCTURE = "Infrastructure"
    INSTALL = "Install"
    SYNC = "Sync"


class PhaseStatus(Enum):
    """Phase execution status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (PhaseStatus.COMPLETED, PhaseStatus.FAILED)


def export_key(phase_name: str, key: str) -> str:
    """Globally unique name for a phase output."""
    return f"{phase_name}.{key}"


@dataclass
class Phase:
    """One stage of the provisioning pipeline.

    Completed and Failed are terminal for an attempt. The only way out of
    Failed is an explicit ``reset_for_retry``, which starts a new attempt.
    """
    name: str
    ordinal: int
    depends_on: Optional["Phase"] = None
    required_inputs: List[str] = field(default_factory=list)

    status: PhaseStatus = PhaseStatus.PENDING
    outputs: Dict[str, str] = field(default_factory=dict)
    attempt: int = 1

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    error_message: Optional[str] = None

    def __post_init__(self):
        if self.depends_on is None and self.ordinal != 0:
            raise ValueError(f"Phase '{self.name}' has no dependency but ordinal {self.ordinal}")
        if self.depends_on is not None and self.depends_on.ordinal != self.ordinal - 1:
            raise ValueError(
                f"Phase '{self.name}' (ordinal {self.ordinal}) must depend on a phase "
                f"with ordinal {self.ordinal - 1}, got '{self.depends_on.name}' "
                f"({self.depends_on.ordinal})"
            )

    @property
    def duration(self) -> Optional[timedelta]:
        if self.start_time and self.end_time:
            return self.end_time - self.start_time
        return None

    @property
    def is_completed(self) -> bool:
        return self.status == PhaseStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == PhaseStatus.FAILED

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def exported_outputs(self) -> Dict[str, str]:
        """Outputs under their namespaced export keys."""
        return {export_key(self.name, key): value for key, value in self.outputs.items()}

    def ancestors(self) -> List["Phase"]:
        """Dependency chain, nearest first."""
        chain = []
        current = self.depends_on
        while current is not None:
            chain.append(current)
            current = current.depends_on
        return chain

    def mark_started(self) -> None:
        """Mark phase as running."""
        if self.status != PhaseStatus.PENDING:
            raise InvalidPhaseTransition(
                f"Cannot start phase '{self.name}' from {self.status.value}"
            )
        self.status = PhaseStatus.RUNNING
        self.start_time = datetime.utcnow()
        self.end_time = None

    def mark_completed(self, outputs: Optional[Dict[str, str]] = None) -> None:
        """Mark phase as completed with its outputs."""
        if self.status != PhaseStatus.RUNNING:
            raise InvalidPhaseTransition(
                f"Cannot complete phase '{self.name}' from {self.status.value}"
            )
        self.status = PhaseStatus.COMPLETED
        self.end_time = datetime.utcnow()
        self.outputs = {key: str(value) for key, value in (outputs or {}).items()}

    def mark_failed(self, error: str) -> None:
        """Mark phase as failed."""
        if self.status != PhaseStatus.RUNNING:
            raise InvalidPhaseTransition(
                f"Cannot fail phase '{self.name}' from {self.status.value}"
            )
        self.status = PhaseStatus.FAILED
        self.end_time = datetime.utcnow()
        self.error_message = error

    def reset_for_retry(self) -> None:
        """Start a fresh attempt after a failure."""
        if self.status != PhaseStatus.FAILED:
            raise InvalidPhaseTransition(
                f"Only failed phases can be retried; '{self.name}' is {self.status.value}"
            )
        self.status = PhaseStatus.PENDING
        self.attempt += 1
        self.outputs = {}
        self.error_message = None
        self.start_time = None
        self.end_time = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "ordinal": self.ordinal,
            "depends_on": self.depends_on.name if self.depends_on else None,
            "status": self.status.value,
            "attempt": self.attempt,
            "outputs": dict(self.outputs),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "error_message": self.error_message,
        }

    def restore(self, data: Dict[str, Any]) -> None:
        """Load persisted lifecycle state onto a freshly defined phase."""
        self.status = PhaseStatus(data.get("status", PhaseStatus.PENDING.value))
        self.attempt = int(data.get("attempt", 1))
        self.outputs = dict(data.get("outputs") or {})
        self.error_message = data.get("error_message")
        self.start_time = _parse_time(data.get("start_time"))
        self.end_time = _parse_time(data.get("end_time"))


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
