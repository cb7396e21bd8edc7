"""Configuration service interface."""

from abc import ABC, abstractmethod
from typing import Any, List, Optional
from core.models.config import NodeConfig
from core.models.bootstrap import BootstrapSettings


class IConfigService(ABC):
    """Interface for configuration management."""

    @abstractmethod
    async def load_node_config(self, config_path: str) -> NodeConfig:
        """Load node provisioning configuration from file.

        Args:
            config_path: Path to the configuration file

        Returns:
            NodeConfig object

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is empty or cannot be parsed
        """
        pass

    @abstractmethod
    def load_bootstrap_settings(
        self, source: Optional[str] = None, default_region: Optional[str] = None
    ) -> BootstrapSettings:
        """Load the flat bootstrap configuration block.

        Args:
            source: A ``KEY=VALUE`` environment file. When omitted, the
                ``bootstrap_settings`` section of the loaded YAML is used,
                overlaid with process environment variables.
            default_region: Region used when neither the block nor the loaded
                configuration names one

        Returns:
            BootstrapSettings object
        """
        pass

    @abstractmethod
    def validate(self) -> List[str]:
        """Validate the loaded configuration.

        Returns:
            List of error messages, empty when valid
        """
        pass

    @abstractmethod
    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a configuration setting by key.

        Args:
            key: Setting key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        pass

    @abstractmethod
    def get_node_config(self) -> Optional[NodeConfig]:
        """Get the complete node configuration."""
        pass

    @abstractmethod
    async def reload_config(self) -> None:
        """Reload configuration from source."""
        pass
