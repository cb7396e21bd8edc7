"""Configuration service implementation."""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import asdict

from core.interfaces.config_interface import IConfigService
from core.models.bootstrap import BootstrapSettings
from core.models.config import (
    NodeConfig,
    AWSConfig,
    DataVolumeConfig,
    PhaseConfig,
    InstallConfig,
    BootstrapConfig,
    HealthCheckConfig,
    AlertConfig,
    NearNetwork,
    VolumeType,
    LogLevel,
)
from infrastructure.storage.file_storage import FileStorage


DEFAULT_CONFIG_PATH = "config/default.yml"


class ConfigService(IConfigService):
    """Implementation of configuration service."""

    # Environment variable -> dotted configuration key
    ENV_MAPPINGS = {
        "AWS_REGION": "aws.region",
        "AWS_ACCOUNT_ID": "aws.account_id",
        "NEAR_NETWORK": "network",
        "NEAR_VERSION": "version",
        "NEAR_INSTANCE_TYPE": "instance_type",
        "NEAR_DATA_VOL_SIZE": "data_volume.size_gib",
        "NEAR_DATA_VOL_TYPE": "data_volume.type",
        "NEAR_DATA_VOL_IOPS": "data_volume.iops",
        "NEAR_DATA_VOL_THROUGHPUT": "data_volume.throughput",
        "LIMIT_OUT_TRAFFIC_MBPS": "limit_out_traffic_mbps",
        "NEAR_ALERTS_TOPIC_ARN": "alerts.topic_arn",
        "NEAR_LOG_LEVEL": "log_level",
    }

    def __init__(self, config_file_path: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self._config_file_path = config_file_path
        self._node_config: Optional[NodeConfig] = None
        self._raw_config: Dict[str, Any] = {}
        self._environment_overrides: Dict[str, Any] = {}
        self._file_storage = FileStorage()

        if config_file_path:
            self._load_node_config_sync(config_file_path)

    async def load_config(self, config_path: Optional[str] = None) -> NodeConfig:
        """Load configuration from default or specified path."""
        return await self.load_node_config(config_path or DEFAULT_CONFIG_PATH)

    def _handle_error(self, operation: str, error: Exception) -> None:
        """Centralized error handling and logging."""
        self.logger.error(f"Error {operation}: {str(error)}")
        raise error

    async def load_node_config(self, config_path: str) -> NodeConfig:
        return self._load_node_config_sync(config_path)

    def _load_node_config_sync(self, config_file_path: str) -> NodeConfig:
        """Synchronous implementation of node config loading."""
        try:
            config_path = Path(config_file_path)

            if not config_path.exists():
                raise FileNotFoundError(
                    f"Configuration file not found: {config_file_path}"
                )

            with open(config_path, "r", encoding="utf-8") as file:
                raw_config = yaml.safe_load(file)

            if not raw_config:
                raise ValueError("Configuration file is empty or invalid")

            self._apply_environment_overrides(raw_config)
            self._node_config = self._parse_node_config(raw_config)
            self._config_file_path = config_file_path
            self._raw_config = raw_config

            return self._node_config

        except Exception as e:
            self._handle_error("loading node configuration", e)

    def load_bootstrap_settings(
        self, source: Optional[str] = None, default_region: Optional[str] = None
    ) -> BootstrapSettings:
        """Load the flat bootstrap block from an env file, or from YAML plus environment.

        A block without a region takes the loaded node configuration's region,
        then ``default_region``.
        """
        try:
            if source:
                data = self._file_storage.read_env_file(source)
            else:
                data = dict(self._raw_config.get("bootstrap_settings") or {})
                for env_key in BootstrapSettings.ENV_KEYS.values():
                    env_value = os.getenv(env_key)
                    if env_value is not None:
                        data[env_key] = env_value

            if not self._has_region(data):
                region = self._node_config.aws.region if self._node_config else default_region
                if region:
                    data["region"] = region

            return BootstrapSettings.from_mapping(data)

        except Exception as e:
            self._handle_error("loading bootstrap settings", e)

    @staticmethod
    def _has_region(data: Dict[str, Any]) -> bool:
        return bool(data.get("region") or data.get("AWS_REGION"))

    def validate(self) -> List[str]:
        """Validate the loaded configuration and return a list of errors."""
        if not self._node_config:
            return ["No node configuration loaded"]

        errors = self._node_config.validate()
        errors.extend(self._validate_aws_config(self._node_config.aws))
        return errors

    async def validate_config(self) -> bool:
        """Raise ValueError if the loaded configuration is invalid."""
        errors = self.validate()
        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")
        return True

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a configuration setting by key path (e.g., 'aws.region')."""
        if not self._node_config:
            return default

        value = asdict(self._node_config)
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_node_config(self) -> Optional[NodeConfig]:
        """Get the complete node configuration."""
        return self._node_config

    def set_environment_override(self, key: str, value: Any) -> None:
        """Set an override for a dotted configuration key, applied on next load."""
        self._environment_overrides[key] = value

    async def reload_config(self) -> None:
        """Reload configuration from source."""
        if not self._config_file_path:
            raise ValueError("No configuration file path available for reload")

        self._raw_config = {}
        await self.load_node_config(self._config_file_path)

    def _parse_node_config(self, raw_config: Dict[str, Any]) -> NodeConfig:
        """Parse raw configuration into NodeConfig object."""
        try:
            aws_data = raw_config.get("aws") or {}
            phases_data = raw_config.get("phases") or {}
            defaults = NodeConfig()

            return NodeConfig(
                name=raw_config.get("name", defaults.name),
                network=self._parse_network(raw_config.get("network", "mainnet")),
                version=str(raw_config.get("version", defaults.version)),
                instance_type=raw_config.get("instance_type", defaults.instance_type),
                limit_out_traffic_mbps=int(
                    raw_config.get("limit_out_traffic_mbps", defaults.limit_out_traffic_mbps)
                ),
                aws=AWSConfig(
                    region=aws_data.get("region", "us-east-1"),
                    account_id=self._parse_optional_str(aws_data.get("account_id")),
                    role_name=aws_data.get("role_name"),
                    run_mode=aws_data.get("run_mode", "local"),
                ),
                data_volume=self._parse_data_volume_config(raw_config.get("data_volume") or {}),
                common=self._parse_phase_config(phases_data.get("common") or {}, defaults.common),
                infrastructure=self._parse_phase_config(
                    phases_data.get("infrastructure") or {}, defaults.infrastructure
                ),
                install=self._parse_phase_config(phases_data.get("install") or {}, defaults.install),
                sync=self._parse_phase_config(phases_data.get("sync") or {}, defaults.sync),
                install_settings=self._create_config(InstallConfig, raw_config.get("install") or {}),
                bootstrap=self._create_config(BootstrapConfig, raw_config.get("bootstrap") or {}),
                health_check=self._create_config(HealthCheckConfig, raw_config.get("health_check") or {}),
                alerts=self._create_config(AlertConfig, raw_config.get("alerts") or {}),
                state_file=raw_config.get("state_file", defaults.state_file),
                log_level=self._parse_log_level(raw_config.get("log_level", "INFO")),
            )

        except Exception as e:
            raise ValueError(f"Error parsing node configuration: {str(e)}")

    def _create_config(self, config_class, data: Dict[str, Any]):
        """Build a flat settings dataclass, converting values to the defaults' types."""
        defaults = config_class()
        values = {}
        for key, default_value in asdict(defaults).items():
            if key not in data or data[key] is None:
                continue
            value = data[key]
            if isinstance(default_value, bool):
                value = self._parse_bool(value)
            elif isinstance(default_value, int):
                value = int(value)
            values[key] = value
        return config_class(**values)

    def _parse_data_volume_config(self, volume_data: Dict[str, Any]) -> DataVolumeConfig:
        """Parse data volume configuration."""
        defaults = DataVolumeConfig()
        return DataVolumeConfig(
            size_gib=int(volume_data.get("size_gib", defaults.size_gib)),
            type=VolumeType.parse(volume_data.get("type")),
            iops=int(volume_data.get("iops", defaults.iops)),
            throughput=int(volume_data.get("throughput", defaults.throughput)),
            device_path=volume_data.get("device_path", defaults.device_path),
            tags={str(k): str(v) for k, v in (volume_data.get("tags") or defaults.tags).items()},
            attach_max_attempts=int(
                volume_data.get("attach_max_attempts", defaults.attach_max_attempts)
            ),
            attach_poll_interval_seconds=int(
                volume_data.get("attach_poll_interval_seconds", defaults.attach_poll_interval_seconds)
            ),
        )

    def _parse_phase_config(self, phase_data: Dict[str, Any], defaults: PhaseConfig) -> PhaseConfig:
        """Parse phase configuration into PhaseConfig object."""
        return PhaseConfig(
            timeout_minutes=int(phase_data.get("timeout_minutes", defaults.timeout_minutes)),
            stack_name=phase_data.get("stack_name", defaults.stack_name),
        )

    def _parse_network(self, network_str: str) -> NearNetwork:
        """Parse network string into NearNetwork enum."""
        try:
            return NearNetwork(str(network_str).lower())
        except ValueError:
            raise ValueError(f"Unsupported NEAR network: {network_str}")

    def _parse_log_level(self, log_level_str: str) -> LogLevel:
        """Parse log level string into LogLevel enum."""
        try:
            return LogLevel[log_level_str.upper()]
        except (KeyError, AttributeError):
            return LogLevel.INFO

    @staticmethod
    def _parse_bool(value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "1")
        return bool(value)

    @staticmethod
    def _parse_optional_str(value: Any) -> Optional[str]:
        # YAML reads unquoted account ids as integers
        if value is None:
            return None
        return str(value).zfill(12) if isinstance(value, int) else str(value)

    def _apply_environment_overrides(self, config: Dict[str, Any]) -> None:
        """Apply environment variable overrides to configuration."""
        for key, value in self._environment_overrides.items():
            self._set_nested_value(config, key, value)

        for env_var, config_key in self.ENV_MAPPINGS.items():
            env_value = os.getenv(env_var)
            if env_value is not None and env_value != "":
                self._set_nested_value(config, config_key, env_value)

    def _set_nested_value(
        self, config: Dict[str, Any], key_path: str, value: Any
    ) -> None:
        """Set a nested value in configuration dictionary."""
        keys = key_path.split(".")
        current = config

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _validate_aws_config(self, aws_config: AWSConfig) -> List[str]:
        """Validate AWS configuration."""
        errors = []

        if aws_config.run_mode not in ("local", "pipeline"):
            errors.append(f"Unsupported AWS run_mode: {aws_config.run_mode}")

        if aws_config.role_name and not aws_config.account_id:
            errors.append("AWS role_name requires an account_id")

        if aws_config.account_id and (
            not aws_config.account_id.isdigit() or len(aws_config.account_id) != 12
        ):
            errors.append("AWS account_id must be 12 digits")

        return errors
