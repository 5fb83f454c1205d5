"""In-memory duplex transport for testing.

No actual I/O - frames sent by the client are recorded, and the test
plays the server by pushing frames and closing the connection.

Usage:
    def server(conn: MockConnection, frame: bytes) -> None:
        if json.loads(frame).get("kind") == "Next":
            conn.push(block_bytes)

    adapter = MockWebSocketAdapter(on_send=server)
    stream = await open_block_stream(adapter, "ws://peer/block/stream", JsonCodec())

    assert adapter.connections[0].sent[0] == b'{"from_block_height":1}'
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable

from ..errors import ConnectionLostError, TransportError

SendHook = Callable[["MockConnection", bytes], Awaitable[None] | None]
ConnectHook = Callable[["MockConnection"], Awaitable[None] | None]

_CLOSED = object()


class MockConnection:
    """One in-memory connection: the test is the server side."""

    def __init__(self, url: str, on_send: SendHook | None = None):
        self.url = url
        self.sent: list[bytes] = []
        self.close_calls = 0
        self._on_send = on_send
        self._inbox: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False
        self._close_code: int | None = None
        self._close_reason = ""

    @property
    def close_code(self) -> int | None:
        return self._close_code

    @property
    def close_reason(self) -> str:
        return self._close_reason

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, data: bytes) -> None:
        if self._closed:
            raise ConnectionLostError(
                "Cannot send, connection closed", code=self._close_code, reason=self._close_reason
            )
        self.sent.append(data)
        if self._on_send is not None:
            result = self._on_send(self, data)
            if inspect.isawaitable(result):
                await result

    async def messages(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._inbox.get()
            if item is _CLOSED:
                return
            if isinstance(item, Exception):
                raise item
            yield item  # type: ignore[misc]

    async def close(self) -> None:
        self.close_calls += 1
        self._finish(1000, "")

    # Server side

    def push(self, data: bytes | str) -> None:
        """Deliver a frame to the client."""
        if self._closed:
            return
        self._inbox.put_nowait(data.encode("utf-8") if isinstance(data, str) else data)

    def server_close(self, code: int = 1000, reason: str = "") -> None:
        """Close the connection from the server side."""
        self._finish(code, reason)

    def fail(self, message: str = "connection reset") -> None:
        """Drop the connection abnormally."""
        if self._closed:
            return
        self._closed = True
        self._close_code = 1006
        self._close_reason = message
        self._inbox.put_nowait(TransportError(message))

    def _finish(self, code: int, reason: str) -> None:
        if self._closed:
            return
        self._closed = True
        self._close_code = code
        self._close_reason = reason
        self._inbox.put_nowait(_CLOSED)


class MockWebSocketAdapter:
    """WebSocketAdapter producing MockConnections."""

    def __init__(
        self,
        on_send: SendHook | None = None,
        on_connect: ConnectHook | None = None,
        fail_with: str | None = None,
    ):
        self._on_send = on_send
        self._on_connect = on_connect
        self._fail_with = fail_with
        self.connections: list[MockConnection] = []

    @property
    def last(self) -> MockConnection:
        """Most recently opened connection."""
        return self.connections[-1]

    async def connect(self, url: str) -> MockConnection:
        if self._fail_with is not None:
            raise TransportError(f"Failed to connect to {url}: {self._fail_with}")

        connection = MockConnection(url, on_send=self._on_send)
        self.connections.append(connection)
        if self._on_connect is not None:
            result = self._on_connect(connection)
            if inspect.isawaitable(result):
                await result
        return connection
