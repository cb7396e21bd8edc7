"""On-instance bootstrap agent."""

import logging
import socket
from typing import Awaitable, Callable, List, Optional, Tuple

from core.exceptions import SignalDeliveryFailed, ToolInstallFailed, VolumeUnavailable
from core.interfaces.volume_interface import IVolumeAttacher
from core.models.bootstrap import (
    BootstrapRun,
    BootstrapSettings,
    BootstrapStep,
    StepStatus,
)
from core.models.config import BootstrapConfig, DataVolumeConfig, VolumeType
from core.services.tool_installer import ToolInstaller, ToolSpec, DEFAULT_TOOLS, CFN_SIGNAL
from core.services.volume_attacher import VolumeAttacher
from infrastructure.aws.autoscaling_client import AutoScalingClient
from infrastructure.aws.cloudformation_client import CloudFormationClient
from infrastructure.aws.ec2_client import EC2Client
from infrastructure.aws.s3_client import S3Client
from infrastructure.storage.file_storage import FileStorage
from infrastructure.system.shell_runner import ShellRunner


IMDS_TOKEN_COMMAND = (
    'TOKEN=$(curl -sSf -X PUT "http://169.254.169.254/latest/api/token" '
    '-H "X-aws-ec2-metadata-token-ttl-seconds: 300") && '
    'curl -sSf -H "X-aws-ec2-metadata-token: $TOKEN" '
    '"http://169.254.169.254/latest/meta-data/{path}"'
)

SignalStrategy = Tuple[str, Callable[[], Awaitable[bool]]]


class ProvisioningAgent:
    """Runs once per instance boot and brings the node to the point where it can signal.

    There is no supervisor: if the process dies it is not restarted, and the
    next boot starts again from the top. Every step therefore tolerates work
    left behind by an earlier, interrupted run, and no step failure stops the
    run. The completion signal is always attempted last because the phase
    gate only waits for the signal; whether the payload actually worked is
    checked later by the install and sync phases and the health classifier.
    """

    def __init__(
        self,
        settings: BootstrapSettings,
        bootstrap_config: BootstrapConfig,
        data_volume: DataVolumeConfig,
        shell: ShellRunner,
        tool_installer: ToolInstaller,
        volume_attacher: IVolumeAttacher,
        s3_client: S3Client,
        cloudformation_client: CloudFormationClient,
        autoscaling_client: AutoScalingClient,
        file_storage: Optional[FileStorage] = None,
        tools: Optional[List[ToolSpec]] = None,
    ):
        self.settings = settings
        self.bootstrap_config = bootstrap_config
        self.data_volume = data_volume
        self.shell = shell
        self.tool_installer = tool_installer
        self.volume_attacher = volume_attacher
        self.s3_client = s3_client
        self.cloudformation_client = cloudformation_client
        self.autoscaling_client = autoscaling_client
        self.file_storage = file_storage or FileStorage()
        self.tools = tools if tools is not None else DEFAULT_TOOLS
        self.logger = logging.getLogger(__name__)

    @classmethod
    def create(
        cls,
        settings: BootstrapSettings,
        bootstrap_config: BootstrapConfig,
        data_volume: DataVolumeConfig,
    ) -> "ProvisioningAgent":
        """Wire the agent to real AWS clients using the instance's own credentials."""
        shell = ShellRunner()
        region = settings.region
        return cls(
            settings=settings,
            bootstrap_config=bootstrap_config,
            data_volume=data_volume,
            shell=shell,
            tool_installer=ToolInstaller(shell, bootstrap_config.tool_install_timeout_seconds),
            volume_attacher=VolumeAttacher(
                EC2Client(region),
                max_attempts=data_volume.attach_max_attempts,
                poll_interval_seconds=data_volume.attach_poll_interval_seconds,
            ),
            s3_client=S3Client(region),
            cloudformation_client=CloudFormationClient(region),
            autoscaling_client=AutoScalingClient(region),
        )

    async def run(self) -> BootstrapRun:
        """Execute every step in order and return the run log.

        Raises:
            SignalDeliveryFailed: No signaling path worked
        """
        bootstrap_run = BootstrapRun(
            instance_id=self.settings.instance_id,
            region=self.settings.region,
        )
        self.logger.info(f"Starting bootstrap in {self.settings.region}")

        steps = [
            (BootstrapStep.PERSIST_CONFIG, self._persist_config),
            (BootstrapStep.ENSURE_TOOLS, self._ensure_tools),
            (BootstrapStep.ATTACH_VOLUME, self._attach_volume),
            (BootstrapStep.RUN_SETUP, self._run_setup),
        ]

        for step, handler in steps:
            try:
                await handler(bootstrap_run)
            except Exception as e:
                self.logger.exception(f"Bootstrap step {step.value} crashed")
                self._record(bootstrap_run, step, StepStatus.FAILED, f"Unexpected error: {str(e)}")

        try:
            await self._signal(bootstrap_run)
        finally:
            bootstrap_run.mark_finished()
            self.logger.info(f"Bootstrap finished: {bootstrap_run.get_summary()}")

        return bootstrap_run

    def _record(
        self, bootstrap_run: BootstrapRun, step: BootstrapStep, status: StepStatus, message: str, **details
    ) -> None:
        bootstrap_run.record(step, status, message, **details)
        level = {
            StepStatus.SUCCEEDED: logging.INFO,
            StepStatus.ATTEMPTED: logging.INFO,
            StepStatus.DEGRADED: logging.WARNING,
            StepStatus.FAILED: logging.ERROR,
        }[status]
        self.logger.log(level, f"[{step.value}] {message}")

    async def _persist_config(self, bootstrap_run: BootstrapRun) -> None:
        """Step 1: write the received configuration to the environment file."""
        await self._resolve_identity(bootstrap_run)

        environment = self.settings.to_environment()
        bootstrap_run.received_config = environment

        try:
            self.file_storage.write_env_file(self.bootstrap_config.environment_file, environment)
        except Exception as e:
            self._record(
                bootstrap_run, BootstrapStep.PERSIST_CONFIG, StepStatus.FAILED,
                f"Could not write {self.bootstrap_config.environment_file}: {str(e)}",
            )
            return

        self._record(
            bootstrap_run, BootstrapStep.PERSIST_CONFIG, StepStatus.SUCCEEDED,
            f"Wrote {len(environment)} settings to {self.bootstrap_config.environment_file}",
        )

    async def _resolve_identity(self, bootstrap_run: BootstrapRun) -> None:
        """Fill instance id and zone from instance metadata when they were not passed in."""
        lookups = (
            ("instance_id", "instance-id"),
            ("availability_zone", "placement/availability-zone"),
        )
        for attribute, path in lookups:
            if self.settings.is_set(getattr(self.settings, attribute)):
                continue
            result = await self.shell.run(IMDS_TOKEN_COMMAND.format(path=path), timeout_seconds=30)
            if result.ok and result.stdout.strip():
                setattr(self.settings, attribute, result.stdout.strip())
            else:
                self.logger.warning(f"Could not read {path} from instance metadata")

        bootstrap_run.instance_id = self.settings.instance_id

    async def _ensure_tools(self, bootstrap_run: BootstrapRun) -> None:
        """Step 2: make sure the signaling client and the AWS CLI are installed."""
        for tool in self.tools:
            try:
                status = await self.tool_installer.ensure(tool)
            except ToolInstallFailed as e:
                self._record(
                    bootstrap_run, BootstrapStep.ENSURE_TOOLS, StepStatus.FAILED, str(e),
                    tool=e.tool, attempts=e.attempts,
                )
                continue

            self._record(
                bootstrap_run, BootstrapStep.ENSURE_TOOLS, StepStatus.SUCCEEDED,
                f"{tool.name} available at {status.path}",
                tool=tool.name, installed_by=status.installed_by,
            )

    async def _attach_volume(self, bootstrap_run: BootstrapRun) -> None:
        """Step 3: bind the durable data volume, or carry on without it."""
        volume_type = VolumeType.parse(self.settings.data_volume_type)
        if volume_type == VolumeType.INSTANCE_STORE:
            self._record(
                bootstrap_run, BootstrapStep.ATTACH_VOLUME, StepStatus.SUCCEEDED,
                "Instance store data volume, nothing to attach",
            )
            return

        if not (self.settings.is_set(self.settings.instance_id)
                and self.settings.is_set(self.settings.availability_zone)):
            error = VolumeUnavailable("Instance id or availability zone unknown")
            self._record(
                bootstrap_run, BootstrapStep.ATTACH_VOLUME, StepStatus.DEGRADED, str(error)
            )
            return

        attachment = await self.volume_attacher.attach(
            self.data_volume.tags,
            self.data_volume.device_path,
            self.settings.instance_id,
            self.settings.availability_zone,
        )

        if attachment.is_attached:
            self._record(
                bootstrap_run, BootstrapStep.ATTACH_VOLUME, StepStatus.SUCCEEDED,
                f"Volume {attachment.volume_id} attached at {attachment.target_device_path}",
                volume_id=attachment.volume_id, attempts=attachment.attempts,
            )
            return

        error = VolumeUnavailable(attachment.error_message or "Volume state unknown")
        self._record(
            bootstrap_run, BootstrapStep.ATTACH_VOLUME, StepStatus.DEGRADED,
            f"Continuing without data volume: {str(error)}",
            volume_id=attachment.volume_id, attempts=attachment.attempts,
        )

    async def _run_setup(self, bootstrap_run: BootstrapRun) -> None:
        """Step 4: download the setup payload and execute it with the persisted environment."""
        location = self.settings.assets_location
        if location is None:
            self._record(
                bootstrap_run, BootstrapStep.RUN_SETUP, StepStatus.FAILED,
                f"No usable asset location: {self.settings.assets_s3_path}",
            )
            return

        bucket, key = location
        config = self.bootstrap_config

        try:
            await self.s3_client.download_file(bucket, key, config.assets_archive)
            self.file_storage.extract_archive(config.assets_archive, config.assets_dir)
        except Exception as e:
            self._record(
                bootstrap_run, BootstrapStep.RUN_SETUP, StepStatus.FAILED,
                f"Could not fetch assets from s3://{bucket}/{key}: {str(e)}",
            )
            return

        script = f"{config.assets_dir.rstrip('/')}/{config.setup_script}"
        result = await self.shell.run(
            f"chmod +x {script} && {script}",
            timeout_seconds=config.payload_timeout_seconds,
            env=self.settings.to_environment(),
        )

        if result.ok:
            self._record(
                bootstrap_run, BootstrapStep.RUN_SETUP, StepStatus.SUCCEEDED,
                "Setup payload completed", exit_code=result.exit_code,
            )
        else:
            reason = "timed out" if result.timed_out else f"exited {result.exit_code}"
            self._record(
                bootstrap_run, BootstrapStep.RUN_SETUP, StepStatus.FAILED,
                f"Setup payload {reason}", exit_code=result.exit_code,
            )

    async def _signal(self, bootstrap_run: BootstrapRun) -> None:
        """Step 5: tell the orchestrator this instance is ready, trying each path in turn."""
        strategies = self._signal_strategies()
        attempts = []

        for name, send in strategies:
            attempts.append(name)
            try:
                delivered = await send()
            except Exception as e:
                self._record(
                    bootstrap_run, BootstrapStep.SIGNAL, StepStatus.ATTEMPTED,
                    f"Signal via {name} failed: {str(e)}", strategy=name,
                )
                continue

            if delivered:
                bootstrap_run.signal_sent = True
                self._record(
                    bootstrap_run, BootstrapStep.SIGNAL, StepStatus.SUCCEEDED,
                    f"Completion signal sent via {name}", strategy=name,
                )
                return

            self._record(
                bootstrap_run, BootstrapStep.SIGNAL, StepStatus.ATTEMPTED,
                f"Signal via {name} did not go through", strategy=name,
            )

        error = SignalDeliveryFailed(attempts)
        self._record(bootstrap_run, BootstrapStep.SIGNAL, StepStatus.FAILED, str(error))
        raise error

    def _signal_strategies(self) -> List[SignalStrategy]:
        settings = self.settings

        if settings.uses_lifecycle_hook:
            return [("complete-lifecycle-action", self._complete_lifecycle_action)]

        if not (settings.is_set(settings.stack_name) and settings.is_set(settings.resource_id)):
            self.logger.error("No stack resource or lifecycle hook configured to signal")
            return []

        strategies = [
            (f"cfn-signal ({location})", self._cfn_signal_command(location))
            for location in CFN_SIGNAL.locations
        ]
        strategies.append(("signal-resource-api", self._signal_resource_api))
        return strategies

    def _cfn_signal_command(self, location: str) -> Callable[[], Awaitable[bool]]:
        async def send() -> bool:
            if not self.shell.which(location):
                raise FileNotFoundError(f"{location} not found")
            result = await self.shell.run(
                [
                    location,
                    "--stack", self.settings.stack_name,
                    "--resource", self.settings.resource_id,
                    "--region", self.settings.region,
                ],
                timeout_seconds=120,
            )
            return result.ok

        return send

    async def _signal_resource_api(self) -> bool:
        unique_id = (
            self.settings.instance_id
            if self.settings.is_set(self.settings.instance_id)
            else socket.gethostname()
        )
        await self.cloudformation_client.signal_resource(
            self.settings.stack_name, self.settings.resource_id, unique_id
        )
        return True

    async def _complete_lifecycle_action(self) -> bool:
        if not self.settings.is_set(self.settings.instance_id):
            raise ValueError("Instance id is required to complete a lifecycle action")
        await self.autoscaling_client.complete_lifecycle_action(
            self.settings.asg_name,
            self.settings.lifecycle_hook_name,
            self.settings.instance_id,
        )
        return True

