"""WebSocket duplex transport.

Thin adapter over the websockets package. Ping/pong keepalive is handled
by websockets itself, below the subscription protocols.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from ..errors import ConnectionLostError, TransportError

logger = logging.getLogger(__name__)


class WebSocketsConnection:
    """DuplexConnection backed by a websockets client connection."""

    def __init__(self, websocket: Any, url: str):
        self._websocket = websocket
        self.url = url

    @property
    def close_code(self) -> int | None:
        return self._websocket.close_code

    @property
    def close_reason(self) -> str:
        return self._websocket.close_reason or ""

    async def send(self, data: bytes) -> None:
        try:
            await self._websocket.send(data)
        except ConnectionClosed as e:
            raise ConnectionLostError(
                f"Cannot send, connection closed: {e}",
                code=self.close_code,
                reason=self.close_reason,
            ) from e

    async def messages(self) -> AsyncIterator[bytes]:
        try:
            async for message in self._websocket:
                yield message.encode("utf-8") if isinstance(message, str) else message
        except ConnectionClosedError as e:
            raise TransportError(f"Connection to {self.url} closed abnormally: {e}") from e

    async def close(self) -> None:
        await self._websocket.close()


class WebSocketsAdapter:
    """WebSocketAdapter that opens real WebSocket connections."""

    def __init__(
        self,
        ping_interval: float | None = 30.0,
        ping_timeout: float | None = 10.0,
        open_timeout: float | None = 10.0,
    ):
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.open_timeout = open_timeout

    async def connect(self, url: str) -> WebSocketsConnection:
        logger.debug(f"Opening WebSocket connection to {url}")
        try:
            websocket = await websockets.connect(
                url,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout,
                open_timeout=self.open_timeout,
            )
        except (OSError, TimeoutError, WebSocketException) as e:
            raise TransportError(f"Failed to connect to {url}: {e}") from e
        return WebSocketsConnection(websocket, url)
