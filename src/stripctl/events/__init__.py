"""
Event module for strip controller.

Provides typed controller events, listener dispatch, event handlers, and
the host-side monitor that applies reconnect and auto on/off policy.
"""

from stripctl.events.dispatcher import (
    Connected,
    ConsoleHandler,
    Disconnected,
    ErrorEvent,
    EventDispatcher,
    EventHandler,
    EventType,
    LogEvent,
    LogFileHandler,
    LogLevel,
    PlugStateChanged,
    StatusUpdate,
    StripEvent,
    Subscription,
)
from stripctl.events.monitor import StripMonitor, format_status_table, status_summary

__all__ = [
    # Events
    "EventType",
    "StripEvent",
    "Connected",
    "Disconnected",
    "StatusUpdate",
    "PlugStateChanged",
    "ErrorEvent",
    "LogEvent",
    "LogLevel",
    # Dispatch
    "EventDispatcher",
    "Subscription",
    "EventHandler",
    "LogFileHandler",
    "ConsoleHandler",
    # Monitor
    "StripMonitor",
    "format_status_table",
    "status_summary",
]
