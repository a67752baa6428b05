"""Unit tests for event dispatch."""

from datetime import datetime, timedelta

import pytest

from stripctl.core.errors import NetworkError
from stripctl.core.models import OutletState, PowerState
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
)

NOW = datetime(2024, 6, 1, 12, 0, 0)


class TestEvents:
    """Tests for event dataclasses."""

    def test_event_types(self):
        """Test each event carries its type."""
        assert Connected().type == EventType.CONNECTED
        assert Disconnected().type == EventType.DISCONNECTED
        assert StatusUpdate().type == EventType.STATUS_UPDATE
        assert PlugStateChanged().type == EventType.PLUG_STATE_CHANGED
        assert ErrorEvent().type == EventType.ERROR
        assert LogEvent().type == EventType.LOG

    def test_format(self):
        """Test log line format."""
        event = PlugStateChanged(index=3, state=PowerState.ON, timestamp=NOW)
        assert event.format() == "[2024-06-01 12:00:00] [INFO] Plug 3 turned ON"

    def test_levels(self):
        """Test event severities."""
        assert Connected().level == LogLevel.INFO
        assert Disconnected().level == LogLevel.WARNING
        assert ErrorEvent(error=NetworkError("lost")).level == LogLevel.ERROR
        assert LogEvent(log_level=LogLevel.WARNING, message="x").level == LogLevel.WARNING

    def test_warning_format(self):
        """Test warnings are written with the short level name."""
        event = Disconnected(timestamp=NOW)
        assert event.format() == "[2024-06-01 12:00:00] [WARN] Disconnected from strip"

    def test_error_describe(self):
        """Test error events describe the error."""
        assert ErrorEvent(error=NetworkError("reset")).describe() == "reset"

    def test_status_describe(self):
        """Test status updates list every outlet."""
        event = StatusUpdate(
            snapshot=[
                OutletState(index=0, name="A", status=PowerState.ON),
                OutletState.unknown(1),
            ]
        )
        assert event.describe() == "Status update: 0=ON, 1=UNKNOWN"


class TestEventDispatcher:
    """Tests for EventDispatcher."""

    def test_emit_to_all(self):
        """Test a listener with no filter receives every event."""
        dispatcher = EventDispatcher()
        received = []
        dispatcher.add_listener(received.append)

        dispatcher.emit(Connected())
        dispatcher.emit(Disconnected())

        assert [e.type for e in received] == [EventType.CONNECTED, EventType.DISCONNECTED]

    def test_emit_filtered(self):
        """Test a listener only receives its event types."""
        dispatcher = EventDispatcher()
        received = []
        dispatcher.add_listener(received.append, EventType.ERROR)

        assert dispatcher.emit(Connected()) == 0
        assert dispatcher.emit(ErrorEvent(error=NetworkError("x"))) == 1
        assert len(received) == 1

    def test_remove_listener(self):
        """Test removed listeners stop receiving events."""
        dispatcher = EventDispatcher()
        received = []
        subscription = dispatcher.add_listener(received.append)

        dispatcher.remove_listener(subscription)
        dispatcher.remove_listener(subscription)
        dispatcher.emit(Connected())

        assert received == []
        assert dispatcher.listener_count == 0

    def test_listener_limit(self):
        """Test the listener limit is enforced."""
        dispatcher = EventDispatcher(max_listeners=2)
        dispatcher.add_listener(lambda e: None)
        dispatcher.add_listener(lambda e: None)

        with pytest.raises(ValueError, match="Listener limit"):
            dispatcher.add_listener(lambda e: None)

    def test_failing_listener_isolated(self):
        """Test one failing listener does not stop delivery to others."""
        dispatcher = EventDispatcher()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        dispatcher.add_listener(broken)
        dispatcher.add_listener(received.append)

        assert dispatcher.emit(Connected()) == 1
        assert len(received) == 1

    def test_close(self):
        """Test close drops listeners and closes handlers."""
        dispatcher = EventDispatcher()

        class RecordingHandler(EventHandler):
            closed = False

            def handle(self, event):
                return True

            def close(self):
                self.closed = True

        handler = RecordingHandler()
        dispatcher.add_handler(handler)
        dispatcher.close()

        assert handler.closed
        assert dispatcher.listener_count == 0


class TestLogFileHandler:
    """Tests for LogFileHandler."""

    def test_writes_events(self, tmp_path):
        """Test events are appended as log lines."""
        log_path = tmp_path / "logs" / "events.log"
        handler = LogFileHandler(log_path)

        assert handler.handle(Connected(timestamp=NOW)) is True
        assert handler.handle(PlugStateChanged(index=1, state=PowerState.OFF, timestamp=NOW))

        lines = log_path.read_text().splitlines()
        assert lines == [
            "[2024-06-01 12:00:00] [INFO] Connected to strip",
            "[2024-06-01 12:00:00] [INFO] Plug 1 turned OFF",
        ]

    def test_skips_status_updates(self, tmp_path):
        """Test status updates are not logged."""
        log_path = tmp_path / "events.log"
        handler = LogFileHandler(log_path)

        assert handler.handle(StatusUpdate()) is False
        assert not log_path.exists()

    def test_prune(self, tmp_path):
        """Test entries older than the retention window are removed."""
        log_path = tmp_path / "events.log"
        old = (NOW - timedelta(days=40)).strftime("%Y-%m-%d %H:%M:%S")
        recent = (NOW - timedelta(days=2)).strftime("%Y-%m-%d %H:%M:%S")
        log_path.write_text(
            f"[{old}] [INFO] Connected to strip\n"
            f"[{recent}] [INFO] Plug 0 turned ON\n"
            "continuation line\n"
        )
        handler = LogFileHandler(log_path, retention_days=30)

        removed = handler.prune(now=NOW)

        assert removed == 1
        assert log_path.read_text().splitlines() == [
            f"[{recent}] [INFO] Plug 0 turned ON",
            "continuation line",
        ]

    def test_prune_missing_file(self, tmp_path):
        """Test pruning a log that does not exist yet."""
        handler = LogFileHandler(tmp_path / "events.log")
        assert handler.prune() == 0


class TestConsoleHandler:
    """Tests for ConsoleHandler."""

    def test_prints_event(self, capsys):
        """Test events at or above the threshold are printed."""
        handler = ConsoleHandler(color=False)

        assert handler.handle(Connected(timestamp=NOW)) is True

        assert capsys.readouterr().out == "[2024-06-01 12:00:00] [INFO] Connected to strip\n"

    def test_min_level(self, capsys):
        """Test events below the threshold are dropped."""
        handler = ConsoleHandler(min_level=LogLevel.WARNING, color=False)

        assert handler.handle(Connected()) is False
        assert handler.handle(Disconnected()) is True
        assert "Disconnected from strip" in capsys.readouterr().out

    def test_color(self, capsys):
        """Test errors are wrapped in red."""
        handler = ConsoleHandler()
        handler.handle(ErrorEvent(error=NetworkError("reset")))

        out = capsys.readouterr().out
        assert out.startswith("\033[31m")
        assert out.rstrip("\n").endswith("\033[0m")
