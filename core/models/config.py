from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


GIBIBYTES_TO_BYTES = 1024 ** 3

REFERENCE_RPC_URLS = {
    "mainnet": "https://rpc.mainnet.near.org",
    "testnet": "https://rpc.testnet.near.org",
    "betanet": "https://rpc.betanet.near.org",
}


class NearNetwork(Enum):
    """NEAR networks a node can join."""
    MAINNET = "mainnet"
    TESTNET = "testnet"
    BETANET = "betanet"


class VolumeType(Enum):
    """Data volume types."""
    GP3 = "gp3"
    IO1 = "io1"
    IO2 = "io2"
    INSTANCE_STORE = "instance-store"

    @classmethod
    def parse(cls, value: Optional[str]) -> "VolumeType":
        """Parse a volume type string, defaulting to gp3."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.GP3


class LogLevel(Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass
class AWSConfig:
    """AWS configuration."""
    region: str = "us-east-1"
    account_id: Optional[str] = None
    role_name: Optional[str] = None
    run_mode: str = "local"


@dataclass
class DataVolumeConfig:
    """Durable data volume configuration."""
    size_gib: int = 1024
    type: VolumeType = VolumeType.GP3
    iops: int = 6000
    throughput: int = 250
    device_path: str = "/dev/sdf"
    tags: Dict[str, str] = field(default_factory=lambda: {"Project": "AWSNear"})
    attach_max_attempts: int = 30
    attach_poll_interval_seconds: int = 10

    @property
    def size_bytes(self) -> int:
        return self.size_gib * GIBIBYTES_TO_BYTES


@dataclass
class PhaseConfig:
    """Per-phase settings."""
    timeout_minutes: int = 30
    stack_name: Optional[str] = None


@dataclass
class InstallConfig:
    """Remote install (toolchain + binary build) settings."""
    timeout_seconds: int = 4800
    script_name: str = "near-install.sh"
    assets_dir: str = "/opt/near-assets"
    log_file: str = "/var/log/near-install.log"
    block_sync_on_failure: bool = True


@dataclass
class BootstrapConfig:
    """On-instance bootstrap agent settings."""
    environment_file: str = "/etc/near-environment"
    log_file: str = "/var/log/near-bootstrap.log"
    assets_archive: str = "/tmp/near-assets.zip"
    assets_dir: str = "/opt/near-assets"
    setup_script: str = "near-setup.sh"
    payload_timeout_seconds: int = 3600
    tool_install_timeout_seconds: int = 900


@dataclass
class HealthCheckConfig:
    """Recurring health classification settings."""
    interval_seconds: int = 180
    command_timeout_seconds: int = 30
    poll_interval_seconds: int = 5
    local_rpc_url: str = "http://127.0.0.1:3030"
    reference_rpc_url: Optional[str] = None
    service_name: str = "near.service"
    metric_namespace: str = "NEAR/Sync"
    state_file: str = "state/health_state.json"

    def resolve_reference_url(self, network: NearNetwork) -> str:
        """Reference RPC endpoint, falling back to the public one for the network."""
        return self.reference_rpc_url or REFERENCE_RPC_URLS[network.value]


@dataclass
class AlertConfig:
    """Alert thresholds and notification target."""
    topic_arn: Optional[str] = None
    service_down_periods: int = 2
    stall_periods: int = 5
    stall_threshold: int = 0


@dataclass
class NodeConfig:
    """Complete provisioner configuration."""

    name: str = "near-node"
    network: NearNetwork = NearNetwork.MAINNET
    version: str = "latest"
    instance_type: str = "m7g.2xlarge"
    limit_out_traffic_mbps: int = 1000

    aws: AWSConfig = field(default_factory=AWSConfig)
    data_volume: DataVolumeConfig = field(default_factory=DataVolumeConfig)

    # Phase settings
    common: PhaseConfig = field(default_factory=lambda: PhaseConfig(timeout_minutes=10, stack_name="near-nodes-common"))
    infrastructure: PhaseConfig = field(default_factory=lambda: PhaseConfig(timeout_minutes=30, stack_name="near-infrastructure"))
    install: PhaseConfig = field(default_factory=lambda: PhaseConfig(timeout_minutes=90))
    sync: PhaseConfig = field(default_factory=lambda: PhaseConfig(timeout_minutes=10))

    install_settings: InstallConfig = field(default_factory=InstallConfig)
    bootstrap: BootstrapConfig = field(default_factory=BootstrapConfig)
    health_check: HealthCheckConfig = field(default_factory=HealthCheckConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)

    state_file: str = "state/phases.json"
    log_level: LogLevel = LogLevel.INFO

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.aws.region:
            errors.append("AWS region is required")

        if not self.version:
            errors.append("NEAR version is required")

        if self.data_volume.size_gib <= 0:
            errors.append("Data volume size must be positive")

        if self.data_volume.attach_max_attempts <= 0:
            errors.append("Volume attach attempts must be positive")

        if self.limit_out_traffic_mbps <= 0:
            errors.append("Outbound traffic limit must be positive")

        if self.install_settings.timeout_seconds <= 0:
            errors.append("Install timeout must be positive")

        if self.health_check.interval_seconds <= 0:
            errors.append("Health check interval must be positive")

        if self.alerts.service_down_periods < 1 or self.alerts.stall_periods < 1:
            errors.append("Alert evaluation periods must be at least 1")

        for phase_name in ("common", "infrastructure"):
            if not getattr(self, phase_name).stack_name:
                errors.append(f"Phase '{phase_name}' needs a stack_name")

        return errors
