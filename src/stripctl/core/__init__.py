"""
Core components for strip controller.

Provides configuration, data models, and the error taxonomy.
"""

from stripctl.core.config import Config, load_config
from stripctl.core.errors import (
    DeviceProtocolError,
    NetworkError,
    StripError,
    wrap_error,
)
from stripctl.core.models import (
    ConnectionState,
    DeviceEndpoint,
    OutletConfig,
    OutletState,
    PowerState,
)

__all__ = [
    "Config",
    "load_config",
    "StripError",
    "NetworkError",
    "DeviceProtocolError",
    "wrap_error",
    "ConnectionState",
    "DeviceEndpoint",
    "OutletConfig",
    "OutletState",
    "PowerState",
]
