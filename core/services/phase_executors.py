"""Executors for the four standard provisioning phases."""

import asyncio
import logging
import math
from typing import Dict, List, Optional

from core.exceptions import ProvisioningError
from core.interfaces.phase_interface import IPhaseExecutor
from core.interfaces.remote_command_interface import IRemoteCommandRunner
from core.models.config import InstallConfig, BootstrapConfig
from core.models.phase import PhaseName, export_key
from infrastructure.aws.cloudformation_client import CloudFormationClient


INSTALL_SUCCEEDED = "SUCCEEDED"
INSTALL_FAILED = "FAILED"


def _is_stack_complete(status: Optional[str]) -> bool:
    return bool(status) and status.endswith("_COMPLETE") and "ROLLBACK" not in status


def _is_stack_failed(status: Optional[str]) -> bool:
    return bool(status) and (status.endswith("_FAILED") or "ROLLBACK" in status)


class StackPhaseExecutor(IPhaseExecutor):
    """Reads named exports from an externally deployed CloudFormation stack."""

    # ExportName -> output key of this phase
    EXPORTS: Dict[str, str] = {}

    def __init__(self, cloudformation_client: CloudFormationClient, stack_name: str):
        self.cloudformation_client = cloudformation_client
        self.stack_name = stack_name
        self.logger = logging.getLogger(__name__)

    async def _read_exports(self) -> Dict[str, str]:
        exports = await self.cloudformation_client.get_stack_outputs(
            self.stack_name, by_export_name=True
        )
        missing = [name for name in self.EXPORTS if not exports.get(name)]
        if missing:
            raise ProvisioningError(
                f"Stack {self.stack_name} does not export {', '.join(missing)}"
            )
        return {key: exports[name] for name, key in self.EXPORTS.items()}


class CommonPhaseExecutor(StackPhaseExecutor):
    """Common phase: the shared instance role."""

    EXPORTS = {"NearNodeInstanceRoleArn": "InstanceRoleArn"}

    async def execute(self, inputs: Dict[str, str]) -> Dict[str, str]:
        status = await self.cloudformation_client.get_stack_status(self.stack_name)
        if not _is_stack_complete(status):
            raise ProvisioningError(
                f"Common stack {self.stack_name} is not deployed (status: {status or 'missing'})"
            )
        return await self._read_exports()


class InfrastructurePhaseExecutor(StackPhaseExecutor):
    """Infrastructure phase: waits for the node stack, which completes on the bootstrap signal."""

    EXPORTS = {
        "NearInstanceId": "InstanceId",
        "NearAssetsBucket": "AssetsBucket",
        "NearAssetsKey": "AssetsKey",
    }

    def __init__(
        self,
        cloudformation_client: CloudFormationClient,
        stack_name: str,
        timeout_seconds: float,
        poll_interval_seconds: float = 30,
    ):
        super().__init__(cloudformation_client, stack_name)
        self.timeout_seconds = timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds

    async def execute(self, inputs: Dict[str, str]) -> Dict[str, str]:
        role_arn = inputs[export_key(PhaseName.COMMON.value, "InstanceRoleArn")]
        self.logger.info(f"Waiting for {self.stack_name} (instance role {role_arn})")

        max_polls = max(1, math.ceil(self.timeout_seconds / self.poll_interval_seconds))
        status = None

        for poll in range(max_polls):
            status = await self.cloudformation_client.get_stack_status(self.stack_name)

            if _is_stack_complete(status):
                return await self._read_exports()
            if _is_stack_failed(status):
                raise ProvisioningError(f"Stack {self.stack_name} failed: {status}")

            self.logger.debug(f"{self.stack_name} is {status or 'not created yet'}")
            if poll < max_polls - 1:
                await asyncio.sleep(self.poll_interval_seconds)

        raise ProvisioningError(
            f"Stack {self.stack_name} not complete after {self.timeout_seconds}s "
            f"(last status: {status or 'missing'})"
        )


class InstallPhaseExecutor(IPhaseExecutor):
    """Install phase: fetches the assets on the node and runs the toolchain/binary build."""

    def __init__(
        self,
        runner: IRemoteCommandRunner,
        install_config: InstallConfig,
        bootstrap_config: BootstrapConfig,
        network: str,
        version: str,
    ):
        self.runner = runner
        self.install_config = install_config
        self.bootstrap_config = bootstrap_config
        self.network = network
        self.version = version
        self.logger = logging.getLogger(__name__)

    def build_command_lines(self, bucket: str, key: str) -> List[str]:
        config = self.install_config
        assets_dir = config.assets_dir.rstrip("/")
        script = f"{assets_dir}/{config.script_name}"
        return [
            "set -e",
            f"mkdir -p {assets_dir}",
            f"aws s3 cp s3://{bucket}/{key} /tmp/near-install-assets.zip",
            f"unzip -qo /tmp/near-install-assets.zip -d {assets_dir}",
            f"chmod +x {script}",
            f"set -a; . {self.bootstrap_config.environment_file}; set +a",
            f"{script} {self.version} {self.network} > {config.log_file} 2>&1",
        ]

    async def execute(self, inputs: Dict[str, str]) -> Dict[str, str]:
        infrastructure = PhaseName.INFRASTRUCTURE.value
        instance_id = inputs[export_key(infrastructure, "InstanceId")]
        bucket = inputs[export_key(infrastructure, "AssetsBucket")]
        key = inputs[export_key(infrastructure, "AssetsKey")]

        self.logger.info(f"Installing NEAR {self.version} ({self.network}) on {instance_id}")
        command = await self.runner.run(
            instance_id,
            self.build_command_lines(bucket, key),
            self.install_config.timeout_seconds,
        )

        if command.succeeded:
            return {"InstallStatus": INSTALL_SUCCEEDED, "InstallCommandId": command.command_id or ""}

        if self.install_config.block_sync_on_failure:
            command.raise_for_status()

        self.logger.warning(
            f"Install on {instance_id} failed ({command.failure_kind.value}); "
            f"continuing because block_sync_on_failure is off"
        )
        return {"InstallStatus": INSTALL_FAILED, "InstallCommandId": command.command_id or ""}


class SyncPhaseExecutor(IPhaseExecutor):
    """Sync phase: starts the node service and checks that it stays up."""

    def __init__(
        self,
        runner: IRemoteCommandRunner,
        service_name: str,
        alerts_topic_arn: Optional[str] = None,
        timeout_seconds: int = 300,
    ):
        self.runner = runner
        self.service_name = service_name
        self.alerts_topic_arn = alerts_topic_arn
        self.timeout_seconds = timeout_seconds
        self.logger = logging.getLogger(__name__)

    def build_command_lines(self) -> List[str]:
        return [
            "systemctl daemon-reload",
            f"systemctl enable {self.service_name}",
            f"systemctl start {self.service_name}",
            "sleep 5",
            f"systemctl is-active {self.service_name}",
        ]

    async def execute(self, inputs: Dict[str, str]) -> Dict[str, str]:
        instance_id = inputs[export_key(PhaseName.INFRASTRUCTURE.value, "InstanceId")]
        install_status = inputs[export_key(PhaseName.INSTALL.value, "InstallStatus")]

        if install_status != INSTALL_SUCCEEDED:
            self.logger.warning(f"Starting {self.service_name} although install reported {install_status}")

        command = await self.runner.run(instance_id, self.build_command_lines(), self.timeout_seconds)
        command.raise_for_status()

        lines = command.output_lines()
        if not lines or lines[-1] != "active":
            raise ProvisioningError(
                f"{self.service_name} is not active on {instance_id}: {lines[-1] if lines else 'no output'}"
            )

        return {
            "SyncStatus": "ACTIVE",
            "SyncCommandId": command.command_id or "",
            "AlertsTopicArn": self.alerts_topic_arn or "none",
        }
