"""Recurring node health collection and sync classification."""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from core.interfaces.health_interface import IHealthReportSubscriber
from core.interfaces.remote_command_interface import IRemoteCommandRunner
from core.models.config import HealthCheckConfig
from core.models.health import HealthSample, HealthReport
from infrastructure.aws.cloudwatch_client import CloudWatchClient
from infrastructure.storage.json_handler import JSONHandler


# Output line order of the collection script
SAMPLE_FIELDS = (
    "local_block_height",
    "syncing",
    "uptime_seconds",
    "protocol_version",
    "active_peers",
    "sent_bytes_per_sec",
    "received_bytes_per_sec",
    "service_active",
    "reference_block_height",
)


class MalformedSampleError(ValueError):
    """The collection script's output could not be parsed."""
    pass


def build_collection_commands(
    local_rpc_url: str, reference_rpc_url: str, service_name: str, http_timeout: int = 10
) -> List[str]:
    """Shell lines that print one value per line, in SAMPLE_FIELDS order.

    Every line prints exactly one value, even when the endpoint is down, so
    positions never shift.
    """
    def query(url: str, jq_filter: str, default: str) -> str:
        return (
            f'V=$(curl -s --max-time {http_timeout} {url} | jq -r "{jq_filter} // {default}" 2>/dev/null); '
            f'echo "${{V:-{default}}}"'
        )

    status_url = f"{local_rpc_url}/status"
    network_url = f"{local_rpc_url}/network_info"
    return [
        query(status_url, ".sync_info.latest_block_height", "0"),
        query(status_url, ".sync_info.syncing", "false"),
        query(status_url, ".uptime_sec", "0"),
        query(status_url, ".protocol_version", "0"),
        query(network_url, ".num_active_peers", "0"),
        query(network_url, ".sent_bytes_per_sec", "0"),
        query(network_url, ".received_bytes_per_sec", "0"),
        f'systemctl is-active --quiet {service_name} && echo "active" || echo "inactive"',
        query(f"{reference_rpc_url}/status", ".sync_info.latest_block_height", "0"),
    ]


def parse_sample(lines: List[str]) -> HealthSample:
    """Turn collection output into a HealthSample.

    Raises:
        MalformedSampleError: Wrong number of lines or a non-numeric value
    """
    if len(lines) != len(SAMPLE_FIELDS):
        raise MalformedSampleError(
            f"Expected {len(SAMPLE_FIELDS)} output lines, got {len(lines)}"
        )

    values = dict(zip(SAMPLE_FIELDS, lines))
    try:
        return HealthSample(
            service_active=values["service_active"] == "active",
            local_block_height=int(values["local_block_height"]),
            reference_block_height=int(values["reference_block_height"]),
            active_peers=int(values["active_peers"]),
            sent_bytes_per_sec=int(float(values["sent_bytes_per_sec"])),
            received_bytes_per_sec=int(float(values["received_bytes_per_sec"])),
            uptime_seconds=int(values["uptime_seconds"]),
            protocol_version=int(values["protocol_version"]),
            syncing=values["syncing"].lower() == "true",
        )
    except ValueError as e:
        raise MalformedSampleError(f"Unparseable health output: {str(e)}")


class HealthClassifier:
    """Samples a node on a fixed schedule and reduces each sample to a SyncStatus.

    The only state carried between ticks is the previous block height, kept
    in a local JSON state file keyed by instance id. Exactly one classifier
    may run per node: two classifiers sharing the state file would each read
    the other's heights and corrupt the block-height delta. No locking is
    done.

    A tick never raises. A failed collection still yields a report, with
    SERVICE_DOWN and zeroed metrics, and leaves the stored height untouched.
    """

    def __init__(
        self,
        instance_id: str,
        runner: IRemoteCommandRunner,
        cloudwatch_client: Optional[CloudWatchClient],
        config: HealthCheckConfig,
        reference_rpc_url: str,
        json_handler: Optional[JSONHandler] = None,
        subscribers: Optional[List[IHealthReportSubscriber]] = None,
    ):
        self.instance_id = instance_id
        self.runner = runner
        self.cloudwatch_client = cloudwatch_client
        self.config = config
        self.reference_rpc_url = reference_rpc_url
        self.json_handler = json_handler or JSONHandler()
        self.subscribers = list(subscribers or [])
        self.logger = logging.getLogger(__name__)
        self._stop_event: Optional[asyncio.Event] = None

    def subscribe(self, subscriber: IHealthReportSubscriber) -> None:
        self.subscribers.append(subscriber)

    def stop(self) -> None:
        """Ask a running loop to exit after the current tick."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def tick(self) -> HealthReport:
        """Collect, classify, emit and persist one sample."""
        previous = self._load_previous_height()

        try:
            sample = await self._collect_sample()
        except Exception as e:
            self.logger.error(f"Health collection for {self.instance_id} failed: {str(e)}")
            report = HealthReport.failed(self.instance_id, previous, str(e))
        else:
            report = HealthReport.from_sample(
                self.instance_id, sample, previous, self.config.interval_seconds
            )
            self._save_current_height(sample.local_block_height)

        self.logger.info(
            f"{self.instance_id}: status={report.status.name} "
            f"block={report.sample.local_block_height} delta={report.block_height_delta} "
            f"progress={report.sync_progress_percent:.2f}% peers={report.sample.active_peers}"
        )

        await self._emit_metrics(report)
        await self._notify_subscribers(report)
        return report

    async def run(self, max_ticks: Optional[int] = None) -> int:
        """Tick at a fixed cadence until stopped or ``max_ticks`` is reached.

        Returns:
            Number of ticks run
        """
        loop = asyncio.get_running_loop()
        ticks = 0
        self._stop_event = asyncio.Event()

        while not self._stop_event.is_set():
            started = loop.time()
            await self.tick()
            ticks += 1

            if max_ticks is not None and ticks >= max_ticks:
                break

            remaining = self.config.interval_seconds - (loop.time() - started)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=max(0, remaining))
            except asyncio.TimeoutError:
                pass

        return ticks

    async def _collect_sample(self) -> HealthSample:
        command_lines = build_collection_commands(
            self.config.local_rpc_url, self.reference_rpc_url, self.config.service_name
        )
        command = await self.runner.run(
            self.instance_id, command_lines, self.config.command_timeout_seconds
        )
        command.raise_for_status()
        return parse_sample(command.output_lines())

    async def _emit_metrics(self, report: HealthReport) -> None:
        if self.cloudwatch_client is None:
            return
        try:
            await self.cloudwatch_client.put_metric_data(
                self.config.metric_namespace,
                self.instance_id,
                report.metric_data(),
                timestamp=report.sample.timestamp,
            )
        except Exception as e:
            self.logger.error(f"Publishing health metrics failed: {str(e)}")

    async def _notify_subscribers(self, report: HealthReport) -> None:
        for subscriber in self.subscribers:
            try:
                await subscriber.on_report(report)
            except Exception as e:
                self.logger.error(
                    f"Health subscriber {type(subscriber).__name__} failed: {str(e)}"
                )

    def _load_previous_height(self) -> Optional[int]:
        state = self.json_handler.read_json_or_default(self.config.state_file, {})
        entry = state.get(self.instance_id) if isinstance(state, dict) else None
        if not entry:
            return None
        try:
            return int(entry["block_height"])
        except (KeyError, TypeError, ValueError):
            self.logger.warning(f"Ignoring malformed health state for {self.instance_id}")
            return None

    def _save_current_height(self, block_height: int) -> None:
        try:
            self.json_handler.update_json(
                self.config.state_file,
                {
                    self.instance_id: {
                        "block_height": block_height,
                        "updated_at": datetime.utcnow().isoformat(),
                    }
                },
            )
        except Exception as e:
            self.logger.error(f"Could not persist block height: {str(e)}")
