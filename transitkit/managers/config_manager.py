"""
Configuration management for the TransitKit client.

This module handles loading, saving, and validating application configuration
using Pydantic models for type safety and validation.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from version import __rest_api_url__, __obaco_api_url__, __version__

logger = logging.getLogger(__name__)


class RESTAPIConfig(BaseModel):
    """Configuration for REST API access."""

    base_url: str = __rest_api_url__
    api_key: str = Field(default="org.onebusaway.iphone", description="REST API key")
    app_uid: str = Field(default="", description="Anonymous per-install identifier")
    app_version: str = __version__
    timeout_seconds: int = Field(default=10, ge=1, le=60)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v):
        """Validate the base URL scheme."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return v


class ObacoConfig(BaseModel):
    """Configuration for the Obaco service."""

    enabled: bool = True
    base_url: str = __obaco_api_url__
    region_id: str = "1"


class NetworkConfig(BaseModel):
    """Configuration for the network operation queue."""

    max_concurrent_operations: int = Field(default=4, ge=1, le=16)


class AlertsConfig(BaseModel):
    """Configuration for agency alert aggregation."""

    recent_window_hours: float = Field(default=8, gt=0, le=72)
    auto_refresh_enabled: bool = True
    refresh_interval_minutes: int = Field(default=15, ge=1, le=240)

    def get_refresh_interval_seconds(self) -> int:
        """Get refresh interval in seconds."""
        return self.refresh_interval_minutes * 60


class ConfigData(BaseModel):
    """Main configuration data model."""

    rest_api: RESTAPIConfig = RESTAPIConfig()
    obaco: ObacoConfig = ObacoConfig()
    network: NetworkConfig = NetworkConfig()
    alerts: AlertsConfig = AlertsConfig()


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""

    pass


class ConfigManager:
    """
    Manages application configuration with file persistence.

    Handles loading configuration from JSON files, creating default
    configurations, and saving changes back to disk.
    """

    CONFIG_FILENAME = "config.json"
    PREFERENCES_FILENAME = "preferences.json"

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file. If None, uses the
                platform configuration directory
        """
        if config_path is None:
            self.config_path = self.get_default_config_path()
        else:
            self.config_path = Path(config_path)
        self.config: Optional[ConfigData] = None
        logger.debug(f"ConfigManager initialized with path: {self.config_path}")

    @staticmethod
    def get_config_dir() -> Path:
        """
        Get the platform configuration directory.

        On Windows, uses AppData/Roaming/TransitKit
        On Linux, uses XDG_CONFIG_HOME/TransitKit or ~/.config/TransitKit
        """
        if os.name == "nt":
            appdata = os.environ.get("APPDATA")
            if appdata:
                return Path(appdata) / "TransitKit"
            return Path.home() / "TransitKit"

        xdg_config = os.environ.get("XDG_CONFIG_HOME")
        if xdg_config:
            return Path(xdg_config) / "TransitKit"
        return Path.home() / ".config" / "TransitKit"

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get the default configuration file path."""
        return cls.get_config_dir() / cls.CONFIG_FILENAME

    def get_preferences_path(self) -> Path:
        """Get the preferences file stored alongside the configuration."""
        return self.config_path.parent / self.PREFERENCES_FILENAME

    def load_config(self) -> ConfigData:
        """
        Load configuration from file.

        If the configuration file doesn't exist, creates a default one.

        Returns:
            ConfigData: The loaded configuration

        Raises:
            ConfigurationError: If the configuration file is invalid
        """
        logger.debug(f"Loading config from: {self.config_path}")

        if not self.config_path.exists():
            logger.info(f"Config file doesn't exist, creating default at: {self.config_path}")
            self.create_default_config()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self.config = ConfigData(**data)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in config file: {e}") from e
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to load config: {e}") from e

        logger.debug(f"Successfully loaded config from: {self.config_path}")
        return self.config

    def save_config(self, config: ConfigData) -> bool:
        """
        Save configuration to file.

        Args:
            config: Configuration data to save

        Returns:
            bool: True if saved successfully, False otherwise
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(config.model_dump(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Failed to save config to {self.config_path}: {e}")
            return False

        self.config = config
        logger.info(f"Saved config to: {self.config_path}")
        return True

    def create_default_config(self) -> None:
        """Create a default configuration file."""
        self.save_config(ConfigData())

    def update_refresh_interval(self, minutes: int) -> None:
        """
        Update the alert refresh interval and save to file.

        Args:
            minutes: Refresh interval in minutes
        """
        if self.config is None:
            self.load_config()

        try:
            self.config.alerts = AlertsConfig(
                **{**self.config.alerts.model_dump(), "refresh_interval_minutes": minutes}
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid refresh interval: {e}") from e
        self.save_config(self.config)
