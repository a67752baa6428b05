"""
Power strip control module.

Provides the strip controller and the session clients it drives.
"""

from stripctl.power.base import SessionClient
from stripctl.power.controller import StripController

__all__ = [
    "SessionClient",
    "StripController",
]
