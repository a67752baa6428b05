"""
Configuration management for strip controller.

Loads configuration from YAML files with environment variable overrides.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from stripctl.core.models import DeviceEndpoint, OutletConfig


# Default configuration paths
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "stripctl"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
SYSTEM_CONFIG_FILE = Path("/etc/stripctl/config.yaml")

DEFAULT_OUTLET_COUNT = 6
DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_CONNECTION_TIMEOUT = 10.0
DEFAULT_RECONNECT_DELAY = 5.0


def _default_outlets() -> list[OutletConfig]:
    return [OutletConfig(index=i, name=f"Plug {i}") for i in range(DEFAULT_OUTLET_COUNT)]


def _parse_outlet(data: Any) -> OutletConfig:
    """Create OutletConfig from one entry of strip.outlets."""
    if not isinstance(data, dict) or "index" not in data:
        raise ValueError(f"outlet entry needs an index: {data!r}")
    index = int(data["index"])
    if index < 0:
        raise ValueError(f"outlet index must not be negative: {index}")
    return OutletConfig(index=index, name=data.get("name"))


@dataclass
class StripConfig:
    """Power strip address and managed outlets."""

    address: str = ""
    outlets: list[OutletConfig] = field(default_factory=_default_outlets)

    @property
    def outlet_indexes(self) -> list[int]:
        """Configured outlet indexes in display order."""
        return [outlet.index for outlet in self.outlets]

    def outlet_name(self, index: int) -> str:
        """Configured name for an outlet index."""
        for outlet in self.outlets:
            if outlet.index == index:
                return outlet.display_name
        return OutletConfig(index=index).display_name

    def to_endpoint(self) -> DeviceEndpoint:
        """Build the controller endpoint for this strip."""
        return DeviceEndpoint(self.address, tuple(self.outlet_indexes))


@dataclass
class ConnectionConfig:
    """Connection timing configuration."""

    poll_interval: float = DEFAULT_POLL_INTERVAL
    connection_timeout: float = DEFAULT_CONNECTION_TIMEOUT
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY


@dataclass
class HostConfig:
    """Host behaviour around the controller."""

    auto_on_at_launch: bool = False
    auto_off_on_shutdown: bool = False
    event_log: Path = field(default_factory=lambda: DEFAULT_CONFIG_DIR / "events.log")
    log_retention_days: int = 30


@dataclass
class Config:
    """Main configuration for strip controller."""

    strip: StripConfig = field(default_factory=StripConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    host: HostConfig = field(default_factory=HostConfig)
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        strip_data = data.get("strip", {}) or {}
        connection_data = data.get("connection", {}) or {}
        host_data = data.get("host", {}) or {}

        if "outlets" in strip_data:
            outlets = [_parse_outlet(o) for o in strip_data.get("outlets") or []]
        else:
            outlets = _default_outlets()

        strip = StripConfig(
            address=strip_data.get("address", "") or "",
            outlets=outlets,
        )

        connection = ConnectionConfig(
            poll_interval=float(
                connection_data.get("poll_interval", DEFAULT_POLL_INTERVAL)
            ),
            connection_timeout=float(
                connection_data.get("connection_timeout", DEFAULT_CONNECTION_TIMEOUT)
            ),
            reconnect_delay=float(
                connection_data.get("reconnect_delay", DEFAULT_RECONNECT_DELAY)
            ),
        )

        host = HostConfig(
            auto_on_at_launch=host_data.get("auto_on_at_launch", False),
            auto_off_on_shutdown=host_data.get("auto_off_on_shutdown", False),
            event_log=Path(
                host_data.get("event_log", str(DEFAULT_CONFIG_DIR / "events.log"))
            ).expanduser(),
            log_retention_days=host_data.get("log_retention_days", 30),
        )

        return cls(
            strip=strip,
            connection=connection,
            host=host,
            log_level=data.get("log_level", "INFO"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert Config to dictionary."""
        return {
            "strip": {
                "address": self.strip.address,
                "outlets": [
                    {"index": o.index, "name": o.display_name}
                    for o in self.strip.outlets
                ],
            },
            "connection": {
                "poll_interval": self.connection.poll_interval,
                "connection_timeout": self.connection.connection_timeout,
                "reconnect_delay": self.connection.reconnect_delay,
            },
            "host": {
                "auto_on_at_launch": self.host.auto_on_at_launch,
                "auto_off_on_shutdown": self.host.auto_off_on_shutdown,
                "event_log": str(self.host.event_log),
                "log_retention_days": self.host.log_retention_days,
            },
            "log_level": self.log_level,
        }


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from YAML file.

    Search order:
    1. Explicit path if provided
    2. STRIPCTL_CONFIG environment variable
    3. ~/.config/stripctl/config.yaml
    4. /etc/stripctl/config.yaml
    5. Default values

    Environment variable overrides:
    - STRIPCTL_ADDRESS: Override strip.address
    - STRIPCTL_POLL_INTERVAL: Override connection.poll_interval
    - STRIPCTL_CONNECTION_TIMEOUT: Override connection.connection_timeout
    - STRIPCTL_LOG_LEVEL: Override log_level

    Args:
        config_path: Optional explicit path to config file

    Returns:
        Loaded configuration

    Raises:
        ValueError: If the loaded file holds invalid values
    """
    # Determine config file path
    if config_path:
        paths_to_try = [config_path]
    else:
        env_path = os.environ.get("STRIPCTL_CONFIG")
        paths_to_try = []
        if env_path:
            paths_to_try.append(Path(env_path))
        paths_to_try.extend([DEFAULT_CONFIG_FILE, SYSTEM_CONFIG_FILE])

    # Try to load from file
    config_data = {}
    source = "defaults"
    for path in paths_to_try:
        if path.exists():
            try:
                with open(path) as f:
                    config_data = yaml.safe_load(f) or {}
                source = str(path)
                break
            except (OSError, yaml.YAMLError):
                continue

    if not isinstance(config_data, dict):
        raise ValueError(f"Invalid configuration in {source}: expected a mapping")
    try:
        config = Config.from_dict(config_data)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid configuration in {source}: {e}") from e
    return _apply_env_overrides(config)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    if "STRIPCTL_ADDRESS" in os.environ:
        config.strip.address = os.environ["STRIPCTL_ADDRESS"]

    if "STRIPCTL_POLL_INTERVAL" in os.environ:
        try:
            config.connection.poll_interval = float(os.environ["STRIPCTL_POLL_INTERVAL"])
        except ValueError:
            pass

    if "STRIPCTL_CONNECTION_TIMEOUT" in os.environ:
        try:
            config.connection.connection_timeout = float(
                os.environ["STRIPCTL_CONNECTION_TIMEOUT"]
            )
        except ValueError:
            pass

    if "STRIPCTL_LOG_LEVEL" in os.environ:
        config.log_level = os.environ["STRIPCTL_LOG_LEVEL"]

    return config


def save_config(config: Config, path: Path) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration to save
        path: Path to save to
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        f.write("# Power Strip Controller Configuration\n")
        f.write("# strip.address must be set to the strip's IP address or hostname\n\n")
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)


def get_default_config() -> Config:
    """Get default configuration without loading from file."""
    return Config()
