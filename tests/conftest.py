"""Shared fixtures: an in-memory power strip and event recording."""

import asyncio
import copy
from typing import Any, Optional

import pytest

from stripctl.core.errors import DeviceProtocolError
from stripctl.core.models import DeviceEndpoint
from stripctl.events.dispatcher import EventDispatcher, EventType, StripEvent
from stripctl.power.base import SessionClient
from stripctl.power.controller import StripController


class FakeHandle:
    """Session handle returned by FakeStripClient."""

    def __init__(self, address: str):
        self.address = address


class FakeStripClient(SessionClient):
    """
    In-memory multi-outlet strip.

    Failures are injected by setting ``open_error``, ``query_error`` or
    ``command_error`` to an exception instance, or by adding child ids to
    ``failing_children`` (commands to those outlets are rejected).
    """

    def __init__(self, outlet_count: int = 6):
        self.children = [
            {"id": f"8006ABCD{i:02d}", "alias": f"Speaker {i}", "state": 0}
            for i in range(outlet_count)
        ]
        self.open_error: Optional[Exception] = None
        self.query_error: Optional[Exception] = None
        self.command_error: Optional[Exception] = None
        self.open_delay = 0.0
        self.failing_children: set[str] = set()

        self.opened: list[FakeHandle] = []
        self.closed: list[FakeHandle] = []
        self.commands: list[dict[str, Any]] = []
        self.query_count = 0

    async def open(self, address: str, timeout: float) -> FakeHandle:
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.open_error:
            raise self.open_error
        handle = FakeHandle(address)
        self.opened.append(handle)
        return handle

    async def query_sysinfo(self, handle: FakeHandle) -> dict[str, Any]:
        self.query_count += 1
        await asyncio.sleep(0)
        if self.query_error:
            raise self.query_error
        return {"alias": "Fake Strip", "children": copy.deepcopy(self.children)}

    async def send_command(
        self, handle: FakeHandle, address: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self.commands.append(payload)
        await asyncio.sleep(0)
        if self.command_error:
            raise self.command_error

        child_ids = payload["context"]["child_ids"]
        state = payload["system"]["set_relay_state"]["state"]
        for child in self.children:
            if child["id"] in child_ids:
                if child["id"] in self.failing_children:
                    raise DeviceProtocolError(f"Relay {child['id']} rejected command")
                child["state"] = state
        return {"system": {"set_relay_state": {"err_code": 0}}}

    async def close(self, handle: FakeHandle) -> None:
        self.closed.append(handle)

    def state_of(self, index: int) -> int:
        """Relay state (0/1) of an outlet on the fake device."""
        return self.children[index]["state"]


class EventRecorder:
    """Collects every event emitted on a dispatcher."""

    def __init__(self, dispatcher: EventDispatcher):
        self.events: list[StripEvent] = []
        dispatcher.add_listener(self.events.append)

    def of_type(self, event_type: EventType) -> list[StripEvent]:
        return [e for e in self.events if e.type == event_type]

    def count(self, event_type: EventType) -> int:
        return len(self.of_type(event_type))


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch, tmp_path):
    """Keep tests away from real config files and STRIPCTL_* variables."""
    for name in (
        "STRIPCTL_CONFIG",
        "STRIPCTL_ADDRESS",
        "STRIPCTL_POLL_INTERVAL",
        "STRIPCTL_CONNECTION_TIMEOUT",
        "STRIPCTL_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(
        "stripctl.core.config.DEFAULT_CONFIG_FILE", tmp_path / "home" / "config.yaml"
    )
    monkeypatch.setattr(
        "stripctl.core.config.SYSTEM_CONFIG_FILE", tmp_path / "etc" / "config.yaml"
    )


@pytest.fixture
def fake_client():
    """Healthy six-outlet strip with every outlet off."""
    return FakeStripClient()


@pytest.fixture
def endpoint():
    """Endpoint managing outlets 0, 1 and 2."""
    return DeviceEndpoint("192.168.1.80", (0, 1, 2))


@pytest.fixture
def controller(fake_client, endpoint):
    """Disconnected controller with a long poll interval."""
    return StripController(
        endpoint,
        client=fake_client,
        poll_interval=60.0,
        connection_timeout=1.0,
    )


@pytest.fixture
def recorder(controller):
    """Records every event the controller emits."""
    return EventRecorder(controller.events)
