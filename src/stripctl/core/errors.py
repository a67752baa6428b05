"""
Error taxonomy for strip controller.

Session clients translate raw transport failures into these types so the
controller branches on error kind instead of inspecting messages.
"""

import asyncio
from typing import Optional


class StripError(Exception):
    """Base error for strip operations."""


class NetworkError(StripError):
    """Connection reset, timeout, refused or unreachable host."""


class DeviceProtocolError(StripError):
    """Malformed response, missing outlet, or command rejected by the device."""


# Exception types that mean the session itself is gone
_NETWORK_TYPES = (OSError, asyncio.TimeoutError)


def is_network_error(exc: BaseException, max_depth: int = 8) -> bool:
    """
    Check whether an exception, or anything in its cause chain, is network-class.

    Args:
        exc: Exception raised by the transport
        max_depth: Maximum number of chained exceptions to inspect

    Returns:
        True for resets, timeouts, refused and unreachable hosts
    """
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and len(seen) < max_depth:
        if isinstance(current, NetworkError):
            return True
        if isinstance(current, DeviceProtocolError):
            return False
        if isinstance(current, _NETWORK_TYPES):
            return True
        seen.add(id(current))
        nxt = current.__cause__ or current.__context__
        current = nxt if nxt is not None and id(nxt) not in seen else None
    return False


def wrap_error(exc: BaseException, message: Optional[str] = None) -> StripError:
    """
    Translate a raw exception into the strip error taxonomy.

    Args:
        exc: Exception raised by the transport
        message: Optional context prefix for the error message

    Returns:
        ``exc`` itself if it is already a StripError, otherwise a new
        NetworkError or DeviceProtocolError with ``exc`` as its cause
    """
    if isinstance(exc, StripError):
        return exc

    detail = str(exc) or exc.__class__.__name__
    text = f"{message}: {detail}" if message else detail
    error: StripError
    if is_network_error(exc):
        error = NetworkError(text)
    else:
        error = DeviceProtocolError(text)
    error.__cause__ = exc
    return error
