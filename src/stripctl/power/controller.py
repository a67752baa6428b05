"""
Strip controller.

Owns the session with one multi-outlet strip: connection lifecycle,
per-outlet switching, background status polling, and connectivity-loss
detection. Observers receive typed events through an EventDispatcher.

Concurrency model
- Runs on a single asyncio event loop.
- Every device request goes through ``_request``, which holds a per-controller
  lock, so the session never has two requests in flight. ``turn_on_all`` and
  ``turn_off_all`` fan out with ``asyncio.gather`` but their wire exchanges
  still queue on that lock.
- Every request is bounded by ``connection_timeout``.
- Each connect/disconnect bumps a session generation. Results belonging to an
  older generation ended by ``disconnect()`` are discarded without events.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from stripctl.core.config import DEFAULT_CONNECTION_TIMEOUT, DEFAULT_POLL_INTERVAL
from stripctl.core.errors import NetworkError, StripError, wrap_error
from stripctl.core.models import (
    ConnectionState,
    DeviceEndpoint,
    OutletState,
    PowerState,
    build_snapshot,
    default_outlet_name,
    unknown_snapshot,
)
from stripctl.events.dispatcher import (
    Connected,
    Disconnected,
    ErrorEvent,
    EventDispatcher,
    LogEvent,
    LogLevel,
    PlugStateChanged,
    StatusUpdate,
)
from stripctl.power.base import SessionClient, relay_payload, resolve_child

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StripController:
    """
    Controller for a single networked power strip.

    Operations never raise on device or network failure: they return False
    (or an UNKNOWN snapshot) and emit an ErrorEvent instead.
    """

    def __init__(
        self,
        endpoint: DeviceEndpoint,
        client: Optional[SessionClient] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        connection_timeout: float = DEFAULT_CONNECTION_TIMEOUT,
        events: Optional[EventDispatcher] = None,
    ):
        """
        Initialize strip controller.

        Args:
            endpoint: Address of the strip and outlets to manage
            client: Session client; defaults to the python-kasa client
            poll_interval: Seconds between status polls while connected
            connection_timeout: Upper bound in seconds for every device request
            events: Dispatcher to emit events on; a new one is created if omitted
        """
        if client is None:
            from stripctl.power.kasa import KasaSessionClient

            client = KasaSessionClient()

        self.client = client
        self.poll_interval = poll_interval
        self.connection_timeout = connection_timeout
        self.events = events or EventDispatcher()

        self._endpoint = endpoint
        self._handle: Any = None
        self._state = ConnectionState.DISCONNECTED
        self._generation = 0
        # Generation that ended in connectivity loss; its late failures still
        # surface as errors
        self._lost_generation: Optional[int] = None
        self._request_lock = asyncio.Lock()
        self._connect_lock = asyncio.Lock()
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def endpoint(self) -> DeviceEndpoint:
        """Current device endpoint."""
        return self._endpoint

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if a session with the strip is active."""
        return self._state is ConnectionState.CONNECTED

    @property
    def is_polling(self) -> bool:
        """Check if the polling loop is running."""
        return self._poll_task is not None and not self._poll_task.done()

    # --- Connection lifecycle ---

    async def connect(self) -> bool:
        """
        Open a session with the strip and start polling.

        Returns:
            True if connected (or already connected), False on failure
        """
        async with self._connect_lock:
            if self.is_connected:
                logger.debug("connect() called while already connected")
                return True

            endpoint = self._endpoint
            generation = self._generation
            self._state = ConnectionState.CONNECTING
            self._log(LogLevel.INFO, f"Attempting to connect to strip at {endpoint.address}...")

            try:
                handle = await self._bounded(
                    self.client.open, endpoint.address, self.connection_timeout
                )
            except StripError as e:
                if generation == self._generation:
                    self._state = ConnectionState.DISCONNECTED
                    self._log(LogLevel.ERROR, f"Failed to connect: {e}")
                    self.events.emit(ErrorEvent(error=e))
                return False
            except asyncio.CancelledError:
                if generation == self._generation:
                    self._state = ConnectionState.DISCONNECTED
                raise

            if generation != self._generation:
                # disconnect() or an address change happened while opening
                await self._close_quietly(handle)
                return False

            self._handle = handle
            self._state = ConnectionState.CONNECTED
            self._generation += 1
            self._lost_generation = None
            self._log(LogLevel.INFO, "Successfully connected to strip")
            self.events.emit(Connected())

            self.start_polling()
            return True

    async def disconnect(self) -> None:
        """Stop polling and close the session. Safe to call in any state."""
        self.stop_polling()
        handle = self._handle
        self._handle = None
        self._state = ConnectionState.DISCONNECTED
        self._generation += 1
        self._lost_generation = None

        if handle is not None:
            await self._close_quietly(handle)

        self._log(LogLevel.INFO, "Disconnected from strip")
        self.events.emit(Disconnected())

    async def _handle_connection_lost(self) -> None:
        """Tear down a session that failed with a network error. Emits at most once per loss."""
        if not self.is_connected:
            return

        self._lost_generation = self._generation
        self._generation += 1
        self._state = ConnectionState.DISCONNECTED
        self.stop_polling()
        handle = self._handle
        self._handle = None
        self.events.emit(Disconnected())

        if handle is not None:
            await self._close_quietly(handle)

    async def _close_quietly(self, handle: Any) -> None:
        try:
            await asyncio.wait_for(self.client.close(handle), self.connection_timeout)
        except Exception as e:
            logger.debug(f"Error closing session: {e}")

    # --- Queries and commands ---

    async def get_status(self) -> list[OutletState]:
        """
        Read the state of every configured outlet.

        Returns:
            One OutletState per configured index, in configured order. All
            UNKNOWN when not connected or when the read fails.
        """
        indexes = self._endpoint.outlet_indexes
        if not self.is_connected:
            self._log(LogLevel.WARNING, "Cannot get status - not connected to strip")
            return unknown_snapshot(indexes)

        handle = self._handle
        generation = self._generation
        try:
            sysinfo = await self._request(self.client.query_sysinfo, handle)
        except StripError as e:
            await self._handle_failure(e, generation, "getting status")
            return unknown_snapshot(indexes)

        return build_snapshot(indexes, sysinfo)

    async def turn_on(self, index: int) -> bool:
        """Turn on a single outlet. Sibling outlets are not affected."""
        return await self._set_outlet(index, PowerState.ON)

    async def turn_off(self, index: int) -> bool:
        """Turn off a single outlet. Sibling outlets are not affected."""
        return await self._set_outlet(index, PowerState.OFF)

    async def turn_on_all(self) -> bool:
        """
        Turn on every configured outlet.

        Returns:
            True only if every outlet was switched; all outlets are attempted
        """
        self._log(LogLevel.INFO, "Turning ON all outlets...")
        return await self._set_all(self.turn_on)

    async def turn_off_all(self) -> bool:
        """
        Turn off every configured outlet.

        Returns:
            True only if every outlet was switched; all outlets are attempted
        """
        self._log(LogLevel.INFO, "Turning OFF all outlets...")
        return await self._set_all(self.turn_off)

    async def _set_all(self, action: Callable[[int], Awaitable[bool]]) -> bool:
        indexes = self._endpoint.outlet_indexes
        results = await asyncio.gather(*(action(index) for index in indexes))
        return all(results)

    async def _set_outlet(self, index: int, state: PowerState) -> bool:
        word = state.value.upper()
        if not self.is_connected:
            self._log(LogLevel.ERROR, f"Cannot turn {state.value} - not connected to strip")
            return False

        handle = self._handle
        address = self._endpoint.address
        generation = self._generation
        try:
            sysinfo = await self._request(self.client.query_sysinfo, handle)
            child = resolve_child(sysinfo, index)
            payload = relay_payload(child["id"], state is PowerState.ON)
            await self._request(self.client.send_command, handle, address, payload)
        except StripError as e:
            await self._handle_failure(e, generation, f"turning {state.value} plug {index}")
            return False

        if generation != self._generation:
            logger.debug(f"Plug {index} switched {word} after session ended")
            return True

        name = child.get("alias") or default_outlet_name(index)
        self._log(LogLevel.INFO, f"Turned {word} plug {index} ({name})")
        self.events.emit(PlugStateChanged(index=index, state=state))
        return True

    # --- Polling ---

    def start_polling(self) -> None:
        """
        Start the status polling loop. Must be called from the event loop.

        Restarts the loop if it is already running. Does nothing while
        disconnected.
        """
        if not self.is_connected:
            logger.debug("start_polling() ignored while disconnected")
            return

        self.stop_polling()
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        logger.debug(f"Status polling started ({self.poll_interval}s interval)")

    def stop_polling(self) -> None:
        """Stop the status polling loop. Does nothing if it is not running."""
        task = self._poll_task
        self._poll_task = None
        if task is None or task.done():
            return
        # The loop exits on its own when stopped from inside a poll tick
        if task is not asyncio.current_task():
            task.cancel()
        logger.debug("Status polling stopped")

    async def _poll_loop(self) -> None:
        task = asyncio.current_task()
        while self._poll_task is task:
            await asyncio.sleep(self.poll_interval)
            generation = self._generation
            snapshot = await self.get_status()
            if generation == self._generation and self.is_connected:
                self.events.emit(StatusUpdate(snapshot=snapshot))

    # --- Reconfiguration ---

    async def update_endpoint_address(self, address: str) -> None:
        """
        Point the controller at another strip address.

        The current session is closed first; call connect() afterwards.
        """
        if address == self._endpoint.address:
            return
        await self.disconnect()
        self._endpoint = self._endpoint.with_address(address)
        self._log(LogLevel.INFO, f"Strip address changed to {address}")

    def update_outlet_indexes(self, indexes: Iterable[int]) -> None:
        """
        Replace the set of managed outlets. An existing session is kept.

        Raises:
            ValueError: If an index is negative or not an integer
        """
        self._endpoint = self._endpoint.with_outlets(indexes)

    # --- Internals ---

    async def _bounded(self, func: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Run a client call under the connection timeout, translating errors."""
        try:
            return await asyncio.wait_for(func(*args), self.connection_timeout)
        except StripError:
            raise
        except Exception as e:
            raise wrap_error(e)

    async def _request(
        self, func: Callable[..., Awaitable[T]], handle: Any, *args: Any
    ) -> T:
        """Run a client call against the open session, one at a time."""
        async with self._request_lock:
            if handle is None or handle is not self._handle:
                raise NetworkError("Session closed before request was sent")
            return await self._bounded(func, handle, *args)

    async def _handle_failure(self, error: StripError, generation: int, action: str) -> None:
        """Classify a failed request and notify observers."""
        if generation != self._generation and generation != self._lost_generation:
            logger.debug(f"Discarding stale failure while {action}: {error}")
            return

        if isinstance(error, NetworkError):
            self._log(LogLevel.ERROR, f"Connection lost while {action}: {error}")
            if generation == self._generation:
                await self._handle_connection_lost()
        else:
            self._log(LogLevel.ERROR, f"Error while {action}: {error}")

        self.events.emit(ErrorEvent(error=error))

    def _log(self, level: LogLevel, message: str) -> None:
        logger.log(level.logging_level, message)
        self.events.emit(LogEvent(log_level=level, message=message))
