"""
Event dispatch for strip controller.

Provides typed controller events, listener registration, and pluggable
handlers for writing events to a log file or the console.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, ClassVar, Optional

from stripctl.core.models import OutletState, PowerState

logger = logging.getLogger(__name__)

DEFAULT_MAX_LISTENERS = 32
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class EventType(Enum):
    """Controller event names."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    STATUS_UPDATE = "status_update"
    PLUG_STATE_CHANGED = "plug_state_changed"
    ERROR = "error"
    LOG = "log"


class LogLevel(Enum):
    """Severity of a log event."""

    INFO = "info"
    WARNING = "warn"
    ERROR = "error"

    @property
    def logging_level(self) -> int:
        """Equivalent level for the logging module."""
        return {
            LogLevel.INFO: logging.INFO,
            LogLevel.WARNING: logging.WARNING,
            LogLevel.ERROR: logging.ERROR,
        }[self]


@dataclass
class StripEvent:
    """Base class for controller events."""

    type: ClassVar[EventType]
    timestamp: datetime = field(default_factory=datetime.now, kw_only=True)

    def describe(self) -> str:
        """Human readable description of the event."""
        return self.type.value

    def format(self) -> str:
        """Format event as a log line."""
        ts = self.timestamp.strftime(TIMESTAMP_FORMAT)
        return f"[{ts}] [{self.level.value.upper()}] {self.describe()}"

    @property
    def level(self) -> LogLevel:
        """Severity used when writing the event to a log."""
        return LogLevel.INFO


@dataclass
class Connected(StripEvent):
    """Session with the strip established."""

    type: ClassVar[EventType] = EventType.CONNECTED

    def describe(self) -> str:
        return "Connected to strip"


@dataclass
class Disconnected(StripEvent):
    """Session with the strip closed or lost."""

    type: ClassVar[EventType] = EventType.DISCONNECTED

    def describe(self) -> str:
        return "Disconnected from strip"

    @property
    def level(self) -> LogLevel:
        return LogLevel.WARNING


@dataclass
class StatusUpdate(StripEvent):
    """Fresh outlet snapshot from the polling loop."""

    type: ClassVar[EventType] = EventType.STATUS_UPDATE
    snapshot: list[OutletState] = field(default_factory=list)

    def describe(self) -> str:
        states = ", ".join(f"{o.index}={o.status.value.upper()}" for o in self.snapshot)
        return f"Status update: {states}"


@dataclass
class PlugStateChanged(StripEvent):
    """An outlet was switched by a command from this controller."""

    type: ClassVar[EventType] = EventType.PLUG_STATE_CHANGED
    index: int = 0
    state: PowerState = PowerState.UNKNOWN

    def describe(self) -> str:
        return f"Plug {self.index} turned {self.state.value.upper()}"


@dataclass
class ErrorEvent(StripEvent):
    """An operation against the strip failed."""

    type: ClassVar[EventType] = EventType.ERROR
    error: Optional[Exception] = None

    def describe(self) -> str:
        return str(self.error) if self.error else "Unknown error"

    @property
    def level(self) -> LogLevel:
        return LogLevel.ERROR


@dataclass
class LogEvent(StripEvent):
    """Log entry intended for the host's activity log."""

    type: ClassVar[EventType] = EventType.LOG
    log_level: LogLevel = LogLevel.INFO
    message: str = ""

    def describe(self) -> str:
        return self.message

    @property
    def level(self) -> LogLevel:
        return self.log_level


EventListener = Callable[[StripEvent], None]


class EventHandler(ABC):
    """Abstract base class for event handlers."""

    @abstractmethod
    def handle(self, event: StripEvent) -> bool:
        """
        Handle an event.

        Args:
            event: Event to handle

        Returns:
            True if the event was handled
        """
        pass

    def close(self) -> None:
        """Clean up handler resources."""
        pass


class LogFileHandler(EventHandler):
    """
    Event handler that appends events to a log file.

    Status updates are skipped; they arrive every poll interval and the
    resulting log would be mostly noise.
    """

    SKIPPED = (EventType.STATUS_UPDATE,)

    def __init__(self, log_path: Path, retention_days: int = 30):
        """
        Initialize log file handler.

        Args:
            log_path: Path to the event log file
            retention_days: Entries older than this are dropped by prune()
        """
        self.log_path = log_path
        self.retention_days = retention_days
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def handle(self, event: StripEvent) -> bool:
        """Write event to log file."""
        if event.type in self.SKIPPED:
            return False
        try:
            with open(self.log_path, "a") as f:
                f.write(event.format() + "\n")
            return True
        except OSError as e:
            logger.error(f"Failed to write event to log: {e}")
            return False

    def prune(self, now: Optional[datetime] = None) -> int:
        """
        Drop entries older than the retention window.

        Returns:
            Number of entries removed
        """
        if not self.log_path.exists():
            return 0

        cutoff = (now or datetime.now()) - timedelta(days=self.retention_days)
        kept = []
        removed = 0
        for line in self.log_path.read_text().splitlines():
            ts = _parse_timestamp(line)
            if ts is not None and ts < cutoff:
                removed += 1
            else:
                kept.append(line)

        if removed:
            self.log_path.write_text("".join(f"{line}\n" for line in kept))
        return removed


def _parse_timestamp(line: str) -> Optional[datetime]:
    """Parse the leading ``[timestamp]`` of a log line."""
    if not line.startswith("["):
        return None
    end = line.find("]")
    if end == -1:
        return None
    try:
        return datetime.strptime(line[1:end], TIMESTAMP_FORMAT)
    except ValueError:
        return None


class ConsoleHandler(EventHandler):
    """Event handler that prints to console."""

    _level_order = {
        LogLevel.INFO: 0,
        LogLevel.WARNING: 1,
        LogLevel.ERROR: 2,
    }

    _colors = {
        LogLevel.INFO: "\033[32m",  # Green
        LogLevel.WARNING: "\033[33m",  # Yellow
        LogLevel.ERROR: "\033[31m",  # Red
    }

    def __init__(self, min_level: LogLevel = LogLevel.INFO, color: bool = True):
        """
        Initialize console handler.

        Args:
            min_level: Minimum event level to display
            color: Whether to wrap lines in ANSI colour codes
        """
        self.min_level = min_level
        self.color = color

    def handle(self, event: StripEvent) -> bool:
        """Print event to console if level meets threshold."""
        if self._level_order[event.level] < self._level_order[self.min_level]:
            return False
        if self.color:
            print(f"{self._colors[event.level]}{event.format()}\033[0m")
        else:
            print(event.format())
        return True


@dataclass(eq=False)
class Subscription:
    """A registered listener and the event types it receives."""

    listener: EventListener
    event_types: frozenset[EventType] = frozenset()

    def wants(self, event: StripEvent) -> bool:
        """Check whether this subscription receives the event."""
        return not self.event_types or event.type in self.event_types


class EventDispatcher:
    """Delivers controller events to a bounded set of listeners."""

    def __init__(self, max_listeners: int = DEFAULT_MAX_LISTENERS):
        """
        Initialize event dispatcher.

        Args:
            max_listeners: Maximum number of registered listeners
        """
        self.max_listeners = max_listeners
        self._subscriptions: list[Subscription] = []
        self._handlers: list[EventHandler] = []

    @property
    def listener_count(self) -> int:
        """Return number of registered listeners."""
        return len(self._subscriptions)

    def add_listener(
        self, listener: EventListener, *event_types: EventType
    ) -> Subscription:
        """
        Register a listener.

        Args:
            listener: Callable receiving each matching event
            event_types: Event types to receive; all types when empty

        Returns:
            Subscription to pass to remove_listener()

        Raises:
            ValueError: If the listener limit is reached
        """
        if len(self._subscriptions) >= self.max_listeners:
            raise ValueError(f"Listener limit reached ({self.max_listeners})")
        subscription = Subscription(listener, frozenset(event_types))
        self._subscriptions.append(subscription)
        return subscription

    def remove_listener(self, subscription: Subscription) -> None:
        """Unregister a listener. Unknown subscriptions are ignored."""
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def add_handler(self, handler: EventHandler, *event_types: EventType) -> Subscription:
        """Register an event handler for the given (or all) event types."""
        subscription = self.add_listener(handler.handle, *event_types)
        self._handlers.append(handler)
        return subscription

    def emit(self, event: StripEvent) -> int:
        """
        Deliver an event to all matching listeners.

        Args:
            event: Event to deliver

        Returns:
            Number of listeners the event was delivered to
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if not subscription.wants(event):
                continue
            try:
                subscription.listener(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Listener for {event.type.value} failed: {e}")
        return delivered

    def close(self) -> None:
        """Close all handlers and drop every listener."""
        for handler in self._handlers:
            try:
                handler.close()
            except Exception as e:
                logger.error(f"Error closing handler: {e}")
        self._handlers.clear()
        self._subscriptions.clear()
