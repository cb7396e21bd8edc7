"""
Error classes for node provisioning.

Propagation contract:
- DependencyNotSatisfied and SignalDeliveryFailed always reach the caller.
- RemoteCommandFailed is fatal to the phase step that issued the command,
  but a bootstrap run records it and keeps going.
- VolumeUnavailable and ToolInstallFailed are recorded in the bootstrap run
  log and never abort the run.
"""

from typing import Optional, Sequence


class ProvisioningError(Exception):
    """Base exception for the node provisioner."""
    pass


class DependencyNotSatisfied(ProvisioningError):
    """
    A phase was started before its dependency completed, or an expected
    input key is missing.
    """

    def __init__(self, phase_name: str, reason: str, missing_inputs: Optional[Sequence[str]] = None):
        self.phase_name = phase_name
        self.reason = reason
        self.missing_inputs = list(missing_inputs or [])
        super().__init__(f"Phase '{phase_name}' cannot start: {reason}")


class InvalidPhaseTransition(ProvisioningError):
    """A phase lifecycle transition that is not allowed (e.g. out of a terminal state)."""
    pass


class VolumeUnavailable(ProvisioningError):
    """No matching data volume was found, or the attachment never completed."""
    pass


class ToolInstallFailed(ProvisioningError):
    """Every installation strategy for a required tool was exhausted."""

    def __init__(self, tool: str, attempts: Sequence[str]):
        self.tool = tool
        self.attempts = list(attempts)
        super().__init__(
            f"Could not install {tool} after trying: {', '.join(self.attempts) or 'nothing'}"
        )


class RemoteCommandFailed(ProvisioningError):
    """A remote command exited non-zero, timed out, or its target was unreachable."""

    def __init__(self, command):
        self.command = command
        kind = command.failure_kind.value if command.failure_kind else "unknown"
        super().__init__(
            f"Remote command on {command.target} failed ({kind}, exit code {command.exit_code})"
        )


class SignalDeliveryFailed(ProvisioningError):
    """Every signaling path was exhausted; the phase gate will time out."""

    def __init__(self, attempts: Sequence[str]):
        self.attempts = list(attempts)
        super().__init__(f"All completion signal attempts failed: {', '.join(self.attempts)}")
