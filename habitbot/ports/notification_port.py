"""Notification port — abstract interface for sending messages to users.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol


class NotificationError(Exception):
    """Raised when a message could not be delivered."""


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules.

    Implementations raise NotificationError on failure and never retry.
    """

    async def send_message(self, contact: str, text: str) -> None: ...
