"""Node health and sync status models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Dict, Any, Optional, List, Tuple


SYNCED_PROGRESS_PERCENT = 99.5


class SyncStatus(IntEnum):
    """Ordinal sync classification (0=Down, 1=No Peers, 2=Stalled, 3=Synced, 4=Syncing)."""
    SERVICE_DOWN = 0
    NO_PEERS = 1
    STALLED = 2
    SYNCED = 3
    SYNCING = 4


# Metric name -> CloudWatch unit
METRIC_UNITS = {
    "ServiceHealth": "Count",
    "BlockHeight": "Count",
    "BlockHeightDelta": "Count",
    "SyncProgressPercent": "Percent",
    "SyncSpeedBlocksPerMin": "Count",
    "SyncLagBlocks": "Count",
    "SyncStatusDetailed": "Count",
    "ActivePeers": "Count",
    "NetworkSentBytesPerSec": "Bytes/Second",
    "NetworkReceivedBytesPerSec": "Bytes/Second",
    "UptimeSeconds": "Seconds",
    "ProtocolVersion": "Count",
}


@dataclass
class HealthSample:
    """Raw telemetry collected in one classifier tick."""
    service_active: bool = False
    local_block_height: int = 0
    reference_block_height: int = 0
    active_peers: int = 0
    sent_bytes_per_sec: int = 0
    received_bytes_per_sec: int = 0
    uptime_seconds: int = 0
    protocol_version: int = 0
    syncing: bool = False
    timestamp: datetime = field(default_factory=datetime.utcnow)


def compute_sync_progress(local_block_height: int, reference_block_height: int) -> float:
    """Percentage of the reference chain height reached locally; 0 without a reference.

    Truncated, never rounded, to two decimals so a node just short of the
    SYNCED threshold is not reported as past it.
    """
    if reference_block_height <= 0:
        return 0.0
    return (local_block_height * 10000 // reference_block_height) / 100


def compute_block_height_delta(current: int, previous: Optional[int]) -> int:
    """Blocks gained since the previous sample; 0 when there is no previous sample."""
    if not previous:
        return 0
    return current - previous


def classify_sync_status(
    service_active: bool,
    active_peers: int,
    block_height_delta: int,
    sync_progress_percent: float,
) -> SyncStatus:
    """Reduce a sample to a SyncStatus. First matching rule wins."""
    if not service_active:
        return SyncStatus.SERVICE_DOWN
    if active_peers == 0:
        return SyncStatus.NO_PEERS
    if block_height_delta == 0:
        return SyncStatus.STALLED
    if sync_progress_percent >= SYNCED_PROGRESS_PERCENT:
        return SyncStatus.SYNCED
    return SyncStatus.SYNCING


@dataclass
class HealthReport:
    """Derived health record for one tick."""

    instance_id: str
    sample: HealthSample
    previous_block_height: Optional[int]
    block_height_delta: int
    sync_progress_percent: float
    sync_speed_blocks_per_min: float
    sync_lag_blocks: int
    status: SyncStatus
    collection_failed: bool = False
    error_message: Optional[str] = None

    @classmethod
    def from_sample(
        cls,
        instance_id: str,
        sample: HealthSample,
        previous_block_height: Optional[int],
        interval_seconds: int,
    ) -> "HealthReport":
        delta = compute_block_height_delta(sample.local_block_height, previous_block_height)
        progress = compute_sync_progress(sample.local_block_height, sample.reference_block_height)
        interval_minutes = interval_seconds / 60 if interval_seconds > 0 else 1
        lag = (
            sample.reference_block_height - sample.local_block_height
            if sample.reference_block_height > 0
            else 0
        )
        return cls(
            instance_id=instance_id,
            sample=sample,
            previous_block_height=previous_block_height,
            block_height_delta=delta,
            sync_progress_percent=progress,
            sync_speed_blocks_per_min=round(delta / interval_minutes, 2),
            sync_lag_blocks=lag,
            status=classify_sync_status(sample.service_active, sample.active_peers, delta, progress),
        )

    @classmethod
    def failed(
        cls, instance_id: str, previous_block_height: Optional[int], error: str
    ) -> "HealthReport":
        """Worst-case report for a tick whose collection failed."""
        return cls(
            instance_id=instance_id,
            sample=HealthSample(),
            previous_block_height=previous_block_height,
            block_height_delta=0,
            sync_progress_percent=0.0,
            sync_speed_blocks_per_min=0.0,
            sync_lag_blocks=0,
            status=SyncStatus.SERVICE_DOWN,
            collection_failed=True,
            error_message=error,
        )

    def metrics(self) -> Dict[str, float]:
        """All raw and derived fields under their metric names."""
        return {
            "ServiceHealth": 1 if self.sample.service_active else 0,
            "BlockHeight": self.sample.local_block_height,
            "BlockHeightDelta": self.block_height_delta,
            "SyncProgressPercent": self.sync_progress_percent,
            "SyncSpeedBlocksPerMin": self.sync_speed_blocks_per_min,
            "SyncLagBlocks": self.sync_lag_blocks,
            "SyncStatusDetailed": int(self.status),
            "ActivePeers": self.sample.active_peers,
            "NetworkSentBytesPerSec": self.sample.sent_bytes_per_sec,
            "NetworkReceivedBytesPerSec": self.sample.received_bytes_per_sec,
            "UptimeSeconds": self.sample.uptime_seconds,
            "ProtocolVersion": self.sample.protocol_version,
        }

    def metric_data(self) -> List[Tuple[str, float, str]]:
        """(name, value, unit) triples ready for publishing."""
        return [(name, value, METRIC_UNITS[name]) for name, value in self.metrics().items()]

    def alert_metrics(self) -> Dict[str, float]:
        """Metrics as seen by alert evaluation; block-height data is absent when collection failed."""
        metrics = self.metrics()
        if self.collection_failed:
            for name in ("BlockHeight", "BlockHeightDelta"):
                metrics.pop(name, None)
        return metrics

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "timestamp": self.sample.timestamp.isoformat(),
            "status": self.status.name,
            "collection_failed": self.collection_failed,
            "error_message": self.error_message,
            "metrics": self.metrics(),
        }
