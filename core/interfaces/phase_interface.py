"""Phase executor and orchestrator interfaces."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from core.models.phase import Phase


class IPhaseExecutor(ABC):
    """Does the work of one provisioning phase."""

    @abstractmethod
    async def execute(self, inputs: Dict[str, str]) -> Dict[str, str]:
        """Run the phase.

        Args:
            inputs: Namespaced exports of every ancestor phase
                (e.g. ``"Infrastructure.InstanceId"``) plus caller inputs

        Returns:
            The phase's own outputs, keyed without namespace

        Raises:
            Exception: Any error fails the phase
        """
        pass


class IPhaseOrchestrator(ABC):
    """Interface for ordered, dependency-gated phase execution."""

    @abstractmethod
    def define_phase(
        self,
        name: str,
        executor: IPhaseExecutor,
        depends_on: Optional[Phase] = None,
        required_inputs: Optional[List[str]] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Phase:
        """Register a phase.

        Args:
            name: Unique phase name
            executor: Executor that performs the phase
            depends_on: Phase that must complete first
            required_inputs: Namespaced keys that must be present at start
            timeout_seconds: Bound on one execution

        Returns:
            The new Phase, in Pending state
        """
        pass

    @abstractmethod
    async def start(self, phase: Phase, inputs: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Start a phase.

        Args:
            phase: Phase to run
            inputs: Extra caller inputs

        Returns:
            The phase outputs; cached outputs if already Completed

        Raises:
            DependencyNotSatisfied: Dependency not Completed or input missing
        """
        pass

    @abstractmethod
    def retry(self, phase: Phase) -> Phase:
        """Reset a Failed phase to Pending for a fresh attempt."""
        pass

    @abstractmethod
    async def run_all(self, inputs: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Run every phase in order, stopping at the first failure.

        Returns:
            All exported outputs
        """
        pass
