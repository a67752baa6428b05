"""
Monitoring host for strip controller.

Keeps a controller connected, reconnecting after a fixed delay when the
session drops, and applies the auto-on / auto-off policy at start and stop.
"""

import asyncio
import logging
import signal
from typing import TYPE_CHECKING, Optional

from stripctl.core.models import OutletState, PowerState
from stripctl.events.dispatcher import EventType, StripEvent, Subscription

if TYPE_CHECKING:
    from stripctl.power.controller import StripController

logger = logging.getLogger(__name__)


class StripMonitor:
    """
    Long-running host around a StripController.

    The controller never retries on its own; this monitor owns the retry
    policy: one reconnect attempt every ``reconnect_delay`` seconds after the
    session is lost, until connected or stopped.
    """

    def __init__(
        self,
        controller: "StripController",
        reconnect_delay: float = 5.0,
        auto_on_at_launch: bool = False,
        auto_off_on_shutdown: bool = False,
    ):
        """
        Initialize strip monitor.

        Args:
            controller: Controller to keep connected
            reconnect_delay: Seconds to wait before each reconnect attempt
            auto_on_at_launch: Turn on all outlets after the first connect
            auto_off_on_shutdown: Turn off all outlets when stopping
        """
        self.controller = controller
        self.reconnect_delay = reconnect_delay
        self.auto_on_at_launch = auto_on_at_launch
        self.auto_off_on_shutdown = auto_off_on_shutdown

        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._subscription: Optional[Subscription] = None

    @property
    def is_running(self) -> bool:
        """Check if monitor is running."""
        return self._running

    async def run(self, install_signal_handlers: bool = True) -> None:
        """
        Connect and keep the controller connected until stop() is called.

        Args:
            install_signal_handlers: Stop on SIGTERM/SIGINT
        """
        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self._running = True

        if install_signal_handlers:
            for signum in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(signum, self.stop)

        self._subscription = self.controller.events.add_listener(
            self._on_disconnected, EventType.DISCONNECTED
        )

        address = self.controller.endpoint.address
        logger.info(f"Starting strip monitor for {address}")

        try:
            if await self.controller.connect():
                if self.auto_on_at_launch:
                    logger.info("Auto-on enabled, turning on all outlets...")
                    await self.controller.turn_on_all()
            else:
                self._schedule_reconnect()

            await self._stop_event.wait()
        finally:
            await self._shutdown()
            if install_signal_handlers:
                for signum in (signal.SIGTERM, signal.SIGINT):
                    loop.remove_signal_handler(signum)

        logger.info("Strip monitor stopped")

    def stop(self) -> None:
        """Ask the monitor to stop."""
        if not self._running:
            return
        logger.info("Stopping strip monitor...")
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()

    def pause(self) -> None:
        """Pause status polling (nobody is watching)."""
        self.controller.stop_polling()
        logger.info("Status updates paused")

    def resume(self) -> None:
        """Resume status polling if connected."""
        if self.controller.is_connected:
            self.controller.start_polling()
            logger.info("Status updates resumed")

    async def _shutdown(self) -> None:
        self._running = False
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
            self._reconnect_task = None

        if self._subscription is not None:
            self.controller.events.remove_listener(self._subscription)
            self._subscription = None

        if self.auto_off_on_shutdown and self.controller.is_connected:
            logger.info("Shutting down - turning off all outlets...")
            await self.controller.turn_off_all()

        await self.controller.disconnect()

    def _on_disconnected(self, event: StripEvent) -> None:
        if self._running:
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._reconnect_loop()
        )

    async def _reconnect_loop(self) -> None:
        while self._running and not self.controller.is_connected:
            logger.info(f"Reconnecting in {self.reconnect_delay}s...")
            await asyncio.sleep(self.reconnect_delay)
            if not self._running:
                break
            await self.controller.connect()


def status_summary(snapshot: list[OutletState], connected: bool) -> str:
    """
    One-line summary of a status snapshot.

    Args:
        snapshot: Outlet states from get_status()
        connected: Whether the controller is connected

    Returns:
        Summary string such as "Status: 2/6 outlets ON"
    """
    if not connected:
        return "Status: Disconnected"

    on_count = sum(1 for outlet in snapshot if outlet.status == PowerState.ON)
    total = len(snapshot)

    if on_count == 0:
        return "Status: All outlets OFF"
    if on_count == total:
        return "Status: All outlets ON"
    return f"Status: {on_count}/{total} outlets ON"


def format_status_table(
    snapshot: list[OutletState],
    names: Optional[dict[int, str]] = None,
) -> str:
    """
    Format a status snapshot as a table.

    Args:
        snapshot: Outlet states from get_status()
        names: Optional configured names, used when the device reports none

    Returns:
        Formatted table string
    """
    if not snapshot:
        return "No outlets configured."

    names = names or {}
    lines = []
    header = f"{'INDEX':<6} {'NAME':<24} {'STATUS':<8}"
    lines.append(header)
    lines.append("-" * len(header))

    for outlet in snapshot:
        name = outlet.name
        if outlet.status == PowerState.UNKNOWN and outlet.index in names:
            name = names[outlet.index]
        lines.append(f"{outlet.index:<6} {name:<24} {outlet.status.value.upper():<8}")

    return "\n".join(lines)
