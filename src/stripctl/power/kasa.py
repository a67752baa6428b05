"""
Kasa session client.

Talks to TP-Link Kasa power strips (HS300, KP303, KP400, ...) via the
python-kasa library.
"""

import logging
from typing import Any

from kasa import Device, Discover

from stripctl.core.errors import DeviceProtocolError, wrap_error
from stripctl.power.base import SessionClient, check_response

logger = logging.getLogger(__name__)

SYSINFO_QUERY = {"system": {"get_sysinfo": {}}}


class KasaSessionClient(SessionClient):
    """
    Session client for TP-Link Kasa strips.

    The handle is the python-kasa Device. Queries go through the device's
    protocol with retries disabled; retry policy belongs to the caller.
    """

    async def open(self, address: str, timeout: float) -> Device:
        """Discover the strip at ``address`` and read its initial state."""
        seconds = max(1, int(timeout))
        try:
            device = await Discover.discover_single(
                address, discovery_timeout=seconds, timeout=seconds
            )
        except Exception as e:
            raise wrap_error(e, f"Unable to connect to {address}")

        try:
            await device.update()
        except BaseException as e:
            # Includes cancellation by the caller's timeout
            await self.close(device)
            if isinstance(e, Exception):
                raise wrap_error(e, f"Unable to connect to {address}")
            raise

        logger.debug(f"Opened session with {device.alias or address} ({device.model})")
        return device

    async def query_sysinfo(self, handle: Device) -> dict[str, Any]:
        """Query system info, which includes every child outlet."""
        response = await self._query(handle, SYSINFO_QUERY)
        try:
            sysinfo = response["system"]["get_sysinfo"]
        except (KeyError, TypeError):
            raise DeviceProtocolError(f"Malformed sysinfo response: {response!r}")
        if not isinstance(sysinfo, dict):
            raise DeviceProtocolError(f"Malformed sysinfo response: {response!r}")
        return sysinfo

    async def send_command(
        self, handle: Device, address: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Send a raw command through the open session."""
        if handle.host != address:
            logger.debug(f"Session is for {handle.host}, command addressed to {address}")
        return await self._query(handle, payload)

    async def close(self, handle: Device) -> None:
        """Close the device transport."""
        try:
            await handle.disconnect()
        except Exception as e:
            logger.debug(f"Error closing session with {handle.host}: {e}")

    async def _query(self, handle: Device, request: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await handle.protocol.query(request, retry_count=0)
        except Exception as e:
            raise wrap_error(e, f"Request to {handle.host} failed")
        return check_response(response)
