"""Configuration management using pydantic-settings."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeviceConfig(BaseSettings):
    """Device session settings.

    The readiness and retry timings compensate for the driver releasing the
    USB handle of a previous process late. They are tunable, not protocol timing.
    """

    driver: str | None = Field(default=None, description="'mock' or an import path 'module:callable' returning a handle")
    lock_file: Path = Field(default=Path("/tmp/loupedeck-controller.pid"), description="Process lock file path")
    lock_wait_timeout: float = Field(default=5.0, ge=0.0, description="Seconds to wait for a live lock holder")
    lock_poll_interval: float = Field(default=0.25, gt=0.0, description="Lock polling interval in seconds")
    ready_probe_attempts: int = Field(default=30, ge=1, description="Readiness probe attempts after connect")
    ready_probe_timeout: float = Field(default=1.0, gt=0.0, description="Timeout of a single readiness probe")
    ready_probe_interval: float = Field(default=1.0, ge=0.0, description="Delay between readiness probes")
    ready_grace_period: float = Field(default=5.0, ge=0.0, description="Extra wait once the device answered")
    led_timeout: float = Field(default=5.0, gt=0.0, description="Timeout of a single LED update attempt")
    led_retry_backoff: float = Field(default=3.0, ge=0.0, description="Delay before retrying a failed LED update")
    led_max_retries: int = Field(default=3, ge=1, description="LED update attempts before giving up")
    close_timeout: float = Field(default=2.0, gt=0.0, description="Bounded wait for the handle to close")
    shutdown_timeout: float = Field(default=5.0, gt=0.0, description="Overall shutdown budget in seconds")
    skip_led: bool = Field(default=False, description="Do not set physical button LED colours")


class DisplayConfig(BaseSettings):
    """Rendering and layout settings."""

    render_interval: float = Field(default=1.0, gt=0.0, description="Render loop interval in seconds")
    volume_step: int = Field(default=5, gt=0, le=100, description="Volume change per knob detent in percent")
    media_refresh_interval: float = Field(default=2.0, gt=0.0, description="Play/pause glyph refresh interval")
    layout_file: Path | None = Field(default=None, description="YAML layout file (built-in layout if unset)")
    layout_poll_interval: float = Field(default=1.0, gt=0.0, description="Layout file change polling interval")


class MQTTConfig(BaseSettings):
    """MQTT broker connection settings for the notification feed."""

    enabled: bool = Field(default=False, description="Subscribe to desktop notifications over MQTT")
    host: str = Field(default="localhost", description="MQTT broker hostname")
    port: int = Field(default=1883, description="MQTT broker port")
    username: str | None = Field(default=None, description="MQTT username")
    password: SecretStr | None = Field(default=None, description="MQTT password")
    client_id: str | None = Field(default=None, description="MQTT client ID (auto-generated if not set)")
    transport: Literal["tcp", "websockets"] = Field(default="tcp", description="MQTT transport protocol")
    websocket_path: str | None = Field(default=None, description="WebSocket path (e.g., '/mqtt')")
    tls: bool = Field(default=False, description="Enable TLS/SSL encryption")
    notification_topic: str = Field(default="loupedeck/notifications", description="Topic carrying notifications")


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_prefix="LOUPEDECK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    device: DeviceConfig = Field(default_factory=DeviceConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    mqtt: MQTTConfig = Field(default_factory=MQTTConfig)

    config_file: Path | None = Field(default=None, description="Path to YAML configuration file")

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "Settings":
        """Load settings from a YAML configuration file.

        Args:
            yaml_path: Path to the YAML configuration file.

        Returns:
            Settings instance with values from YAML merged with env vars.
        """
        with yaml_path.open() as f:
            yaml_config = yaml.safe_load(f) or {}

        device_config = DeviceConfig(**yaml_config.get("device", {}))
        display_config = DisplayConfig(**yaml_config.get("display", {}))
        mqtt_config = MQTTConfig(**yaml_config.get("mqtt", {}))

        return cls(
            device=device_config,
            display=display_config,
            mqtt=mqtt_config,
            config_file=yaml_path,
        )


def load_settings(config_path: Path | None = None) -> Settings:
    """Load application settings from config file and environment variables.

    Args:
        config_path: Optional path to YAML configuration file.

    Returns:
        Settings instance with merged configuration.
    """
    if config_path and config_path.exists():
        return Settings.from_yaml(config_path)
    return Settings()
