"""Duplex transport abstraction.

A WebSocketAdapter opens message-oriented duplex connections. The
SubscriptionChannel layered on top turns a connection into ordered,
typed channel events; the adapter only moves bytes.

Implementations:
- WebSocketsAdapter: real connections via the websockets package
- MockWebSocketAdapter: in-memory connections for tests
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable


@runtime_checkable
class DuplexConnection(Protocol):
    """An open, message-oriented duplex connection."""

    @property
    def close_code(self) -> int | None:
        """Close code once the connection is closed, else None."""
        ...

    @property
    def close_reason(self) -> str:
        """Close reason once the connection is closed."""
        ...

    async def send(self, data: bytes) -> None:
        """Send one binary frame.

        Raises:
            ConnectionLostError: If the connection is closed
        """
        ...

    def messages(self) -> AsyncIterator[bytes]:
        """Yield inbound frames until the connection closes.

        Ends normally on a clean close. Raises TransportError on an
        abnormal one.
        """
        ...

    async def close(self) -> None:
        """Start a graceful close. Safe to call more than once."""
        ...


@runtime_checkable
class WebSocketAdapter(Protocol):
    """Opens duplex connections. Must support concurrent independent connects."""

    async def connect(self, url: str) -> DuplexConnection:
        """Open a connection.

        Raises:
            TransportError: If the connection cannot be established
        """
        ...
