"""
Base classes for strip session clients.

Defines the abstract request/response interface the controller drives, and
helpers for building strip protocol payloads.
"""

from abc import ABC, abstractmethod
from typing import Any

from stripctl.core.errors import DeviceProtocolError


class SessionClient(ABC):
    """
    Abstract base class for strip session clients.

    Implementations raise NetworkError or DeviceProtocolError; the controller
    treats any other exception as protocol-class.
    """

    @abstractmethod
    async def open(self, address: str, timeout: float) -> Any:
        """
        Open a session with the strip.

        Args:
            address: IP address or hostname of the strip
            timeout: Connection timeout in seconds

        Returns:
            Opaque connection handle
        """
        pass

    @abstractmethod
    async def query_sysinfo(self, handle: Any) -> dict[str, Any]:
        """
        Query the strip's system info.

        Args:
            handle: Handle returned by open()

        Returns:
            System info payload, including the ``children`` list
        """
        pass

    @abstractmethod
    async def send_command(
        self, handle: Any, address: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Send a raw protocol command.

        Args:
            handle: Handle returned by open()
            address: Address of the strip the command is meant for
            payload: Protocol request

        Returns:
            Device response
        """
        pass

    async def close(self, handle: Any) -> None:
        """Release a session. Default implementation does nothing."""
        pass


def relay_payload(child_id: str, on: bool) -> dict[str, Any]:
    """Build a relay-state command addressed to a single outlet."""
    return {
        "context": {"child_ids": [child_id]},
        "system": {"set_relay_state": {"state": 1 if on else 0}},
    }


def resolve_child(sysinfo: dict[str, Any], index: int) -> dict[str, Any]:
    """
    Find the child entry for an outlet index.

    Args:
        sysinfo: System info payload returned by the strip
        index: Outlet index (position in the children list)

    Returns:
        Child info dict with a non-empty ``id``

    Raises:
        DeviceProtocolError: If the strip reports no such outlet
    """
    children = sysinfo.get("children") if isinstance(sysinfo, dict) else None
    if not isinstance(children, list) or not 0 <= index < len(children):
        raise DeviceProtocolError(f"Strip has no outlet at index {index}")

    child = children[index]
    if not isinstance(child, dict) or not child.get("id"):
        raise DeviceProtocolError(f"Outlet {index} has no child id")
    return child


def check_response(response: Any) -> dict[str, Any]:
    """
    Validate a device response.

    The strip answers ``{module: {method: {"err_code": 0, ...}}}``; any
    non-zero ``err_code`` means the command was rejected.

    Raises:
        DeviceProtocolError: If the response is malformed or reports an error
    """
    if not isinstance(response, dict):
        raise DeviceProtocolError(f"Malformed response: {response!r}")

    for module, methods in response.items():
        if not isinstance(methods, dict):
            continue
        for method, result in methods.items():
            if isinstance(result, dict) and result.get("err_code", 0) != 0:
                msg = result.get("err_msg", "device error")
                raise DeviceProtocolError(
                    f"{module}.{method} failed with code {result['err_code']}: {msg}"
                )
    return response
