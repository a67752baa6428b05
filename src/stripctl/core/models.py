"""
Data models for strip controller.

Defines the device endpoint, per-outlet state snapshots, and outlet config.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Iterable, Optional


class PowerState(Enum):
    """Power state values."""

    ON = "on"
    OFF = "off"
    UNKNOWN = "unknown"


class ConnectionState(Enum):
    """Controller connection state values."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def default_outlet_name(index: int) -> str:
    """Display name used when the device reports no alias."""
    return f"Plug {index}"


def normalize_indexes(indexes: Iterable[int]) -> tuple[int, ...]:
    """
    Validate outlet indexes and drop duplicates, keeping first-seen order.

    Raises:
        ValueError: If an index is not a non-negative integer
    """
    seen: list[int] = []
    for index in indexes:
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise ValueError(f"Invalid outlet index: {index!r}")
        if index not in seen:
            seen.append(index)
    return tuple(seen)


@dataclass(frozen=True)
class DeviceEndpoint:
    """Network address of a strip and the outlets managed on it."""

    address: str
    outlet_indexes: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "outlet_indexes", normalize_indexes(self.outlet_indexes))

    def with_address(self, address: str) -> "DeviceEndpoint":
        """Return a copy pointing at another address."""
        return replace(self, address=address)

    def with_outlets(self, indexes: Iterable[int]) -> "DeviceEndpoint":
        """Return a copy managing another set of outlets."""
        return replace(self, outlet_indexes=tuple(indexes))


@dataclass(frozen=True)
class OutletState:
    """State of one outlet as read from the strip."""

    index: int
    name: str
    status: PowerState = PowerState.UNKNOWN

    @classmethod
    def unknown(cls, index: int) -> "OutletState":
        """Outlet whose state could not be read."""
        return cls(index=index, name=default_outlet_name(index))

    @classmethod
    def from_child(cls, index: int, child: Any) -> "OutletState":
        """
        Create OutletState from a child entry of the strip's system info.

        Args:
            index: Configured outlet index
            child: Child info dict (``{"id": ..., "alias": ..., "state": 0|1}``)

        Returns:
            OutletState, UNKNOWN if the child entry is malformed
        """
        if not isinstance(child, dict) or "state" not in child:
            return cls.unknown(index)
        name = child.get("alias") or default_outlet_name(index)
        status = PowerState.ON if child["state"] == 1 else PowerState.OFF
        return cls(index=index, name=str(name), status=status)

    def to_dict(self) -> dict[str, Any]:
        """Convert OutletState to dictionary."""
        return {"index": self.index, "name": self.name, "status": self.status.value}


@dataclass
class OutletConfig:
    """Configured outlet on a strip."""

    index: int
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Configured name, or the default outlet name."""
        return self.name or default_outlet_name(self.index)


def unknown_snapshot(indexes: Iterable[int]) -> list[OutletState]:
    """Snapshot with every outlet UNKNOWN, in configured order."""
    return [OutletState.unknown(index) for index in indexes]


def build_snapshot(indexes: Iterable[int], sysinfo: dict[str, Any]) -> list[OutletState]:
    """
    Map the strip's children to configured outlet indexes by position.

    Args:
        indexes: Configured outlet indexes, in display order
        sysinfo: System info payload returned by the strip

    Returns:
        One OutletState per index; indexes with no matching child are UNKNOWN
    """
    children = sysinfo.get("children") if isinstance(sysinfo, dict) else None
    if not isinstance(children, list):
        children = []

    snapshot = []
    for index in indexes:
        if 0 <= index < len(children):
            snapshot.append(OutletState.from_child(index, children[index]))
        else:
            snapshot.append(OutletState.unknown(index))
    return snapshot

