import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional, Any

from core.exceptions import DependencyNotSatisfied
from core.interfaces.phase_interface import IPhaseExecutor, IPhaseOrchestrator
from core.interfaces.remote_command_interface import IRemoteCommandRunner
from core.models.config import NodeConfig
from core.models.phase import Phase, PhaseName, PhaseStatus, export_key
from core.services.phase_executors import (
    CommonPhaseExecutor,
    InfrastructurePhaseExecutor,
    InstallPhaseExecutor,
    SyncPhaseExecutor,
)
from infrastructure.aws.cloudformation_client import CloudFormationClient
from infrastructure.storage.json_handler import JSONHandler


class PhaseOrchestrator(IPhaseOrchestrator):
    """Runs provisioning phases strictly in order.

    A phase only sees the namespaced exports of the phases before it plus the
    caller's inputs. Phase state is written to ``state_file`` after every
    transition, so a re-deployment in a new process skips phases that already
    completed.
    """

    def __init__(self, state_file: Optional[str] = None, json_handler: Optional[JSONHandler] = None):
        self.state_file = state_file
        self.json_handler = json_handler or JSONHandler()
        self.logger = logging.getLogger(__name__)

        self._phases: Dict[str, Phase] = {}
        self._executors: Dict[str, IPhaseExecutor] = {}
        self._timeouts: Dict[str, Optional[float]] = {}
        self._saved_state = self._load_state()

    @property
    def phases(self) -> List[Phase]:
        return list(self._phases.values())

    def get_phase(self, name: str) -> Phase:
        if name not in self._phases:
            raise KeyError(f"Unknown phase: {name}")
        return self._phases[name]

    def define_phase(
        self,
        name: str,
        executor: IPhaseExecutor,
        depends_on: Optional[Phase] = None,
        required_inputs: Optional[List[str]] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Phase:
        if name in self._phases:
            raise ValueError(f"Phase '{name}' is already defined")

        # One global ordering: each new phase hangs off the previous one
        last = self.phases[-1] if self._phases else None
        if depends_on is not last:
            expected = last.name if last else "nothing"
            raise ValueError(f"Phase '{name}' must depend on {expected}")

        phase = Phase(
            name=name,
            ordinal=depends_on.ordinal + 1 if depends_on else 0,
            depends_on=depends_on,
            required_inputs=list(required_inputs or []),
        )
        self._restore(phase)

        self._phases[name] = phase
        self._executors[name] = executor
        self._timeouts[name] = timeout_seconds
        return phase

    def define_default_pipeline(
        self,
        config: NodeConfig,
        cloudformation_client: CloudFormationClient,
        runner: IRemoteCommandRunner,
    ) -> List[Phase]:
        """Define Common -> Infrastructure -> Install -> Sync."""
        common = self.define_phase(
            PhaseName.COMMON.value,
            CommonPhaseExecutor(cloudformation_client, config.common.stack_name),
            timeout_seconds=config.common.timeout_minutes * 60,
        )
        infrastructure = self.define_phase(
            PhaseName.INFRASTRUCTURE.value,
            InfrastructurePhaseExecutor(
                cloudformation_client,
                config.infrastructure.stack_name,
                timeout_seconds=config.infrastructure.timeout_minutes * 60,
            ),
            depends_on=common,
            required_inputs=[export_key(common.name, "InstanceRoleArn")],
            timeout_seconds=config.infrastructure.timeout_minutes * 60,
        )
        install = self.define_phase(
            PhaseName.INSTALL.value,
            InstallPhaseExecutor(
                runner,
                config.install_settings,
                config.bootstrap,
                network=config.network.value,
                version=config.version,
            ),
            depends_on=infrastructure,
            required_inputs=[
                export_key(infrastructure.name, "InstanceId"),
                export_key(infrastructure.name, "AssetsBucket"),
                export_key(infrastructure.name, "AssetsKey"),
            ],
            timeout_seconds=config.install.timeout_minutes * 60,
        )
        sync = self.define_phase(
            PhaseName.SYNC.value,
            SyncPhaseExecutor(
                runner,
                config.health_check.service_name,
                alerts_topic_arn=config.alerts.topic_arn,
            ),
            depends_on=install,
            required_inputs=[
                export_key(infrastructure.name, "InstanceId"),
                export_key(install.name, "InstallStatus"),
            ],
            timeout_seconds=config.sync.timeout_minutes * 60,
        )
        return [common, infrastructure, install, sync]

    def collect_inputs(self, phase: Phase, inputs: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Exports of every ancestor, oldest first, then the caller's inputs."""
        available = {}
        for ancestor in reversed(phase.ancestors()):
            available.update(ancestor.exported_outputs())
        available.update(inputs or {})
        return available

    async def start(self, phase: Phase, inputs: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        if phase.is_completed:
            self.logger.info(f"Phase {phase.name} already completed, reusing outputs")
            return dict(phase.outputs)

        dependency = phase.depends_on
        if dependency is not None and not dependency.is_completed:
            raise DependencyNotSatisfied(
                phase.name, f"'{dependency.name}' is {dependency.status.value}"
            )

        available = self.collect_inputs(phase, inputs)
        missing = [key for key in phase.required_inputs if key not in available]
        if missing:
            raise DependencyNotSatisfied(
                phase.name, f"missing inputs {', '.join(missing)}", missing_inputs=missing
            )

        phase.mark_started()
        self._save_state()
        self.logger.info(f"Starting phase {phase.name} (attempt {phase.attempt})")

        executor = self._executors[phase.name]
        timeout = self._timeouts.get(phase.name)

        try:
            if timeout:
                outputs = await asyncio.wait_for(executor.execute(available), timeout=timeout)
            else:
                outputs = await executor.execute(available)
        except asyncio.TimeoutError:
            phase.mark_failed(f"Timed out after {timeout}s")
            self._save_state()
            self.logger.error(f"Phase {phase.name} timed out after {timeout}s")
            raise
        except Exception as e:
            phase.mark_failed(str(e))
            self._save_state()
            self.logger.error(f"Phase {phase.name} failed: {str(e)}")
            raise

        phase.mark_completed(outputs)
        self._save_state()
        self.logger.info(f"Phase {phase.name} completed in {phase.duration}")
        return dict(phase.outputs)

    def retry(self, phase: Phase) -> Phase:
        phase.reset_for_retry()
        self._save_state()
        self.logger.info(f"Phase {phase.name} reset for attempt {phase.attempt}")
        return phase

    async def run_all(self, inputs: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        for phase in self.phases:
            await self.start(phase, inputs)
        return self.exports()

    def exports(self) -> Dict[str, str]:
        """Namespaced outputs of every completed phase."""
        exported = {}
        for phase in self.phases:
            if phase.is_completed:
                exported.update(phase.exported_outputs())
        return exported

    def get_status(self) -> List[Dict[str, Any]]:
        return [phase.to_dict() for phase in self.phases]

    def _restore(self, phase: Phase) -> None:
        saved = self._saved_state.get(phase.name)
        if not saved:
            return

        phase.restore(saved)
        if phase.status == PhaseStatus.RUNNING:
            # The process died mid-phase
            phase.status = PhaseStatus.FAILED
            phase.error_message = "Interrupted while running"
            phase.end_time = datetime.utcnow()
            self.logger.warning(f"Phase {phase.name} was interrupted; marking it failed")

    def _load_state(self) -> Dict[str, Dict[str, Any]]:
        if not self.state_file:
            return {}
        state = self.json_handler.read_json_or_default(self.state_file, {})
        phases = state.get("phases") if isinstance(state, dict) else None
        return phases if isinstance(phases, dict) else {}

    def _save_state(self) -> None:
        if not self.state_file:
            return
        try:
            self.json_handler.write_json(
                self.state_file,
                {
                    "updated_at": datetime.utcnow().isoformat(),
                    "phases": {phase.name: phase.to_dict() for phase in self.phases},
                },
            )
        except Exception as e:
            self.logger.error(f"Could not save phase state to {self.state_file}: {str(e)}")
