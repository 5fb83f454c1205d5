"""Subscription channel - the shared duplex abstraction.

Wraps a DuplexConnection as an explicit state machine that publishes a
typed, ordered event sequence:

    ChannelOpened -> ChannelMessage* -> ChannelClosed

States:
    CONNECTING -> OPEN -> ACCEPTED -> CLOSING -> CLOSED
    (CLOSED is reachable from every state and is terminal)

On open the channel sends the protocol's subscribe frame; once it is out
the handshake is complete and accepted() resolves. If the connection
closes (or never opens) first, accepted() raises HandshakeError. Nothing
here reconnects.

A channel has a single consumer of next_event(); engines that fan out
(EventStream) do so on top of it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import Enum

from .errors import ConnectionLostError, HandshakeError
from .transport.base import DuplexConnection, WebSocketAdapter

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000


class ChannelState(str, Enum):
    """Channel lifecycle."""

    CONNECTING = "connecting"
    OPEN = "open"
    ACCEPTED = "accepted"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(frozen=True)
class ChannelOpened:
    """The connection is open."""


@dataclass(frozen=True)
class ChannelMessage:
    """One raw inbound frame, not yet decoded."""

    data: bytes


@dataclass(frozen=True)
class ChannelClosed:
    """The connection is closed. Always the last event."""

    code: int | None
    reason: str
    was_clean: bool


ChannelEvent = ChannelOpened | ChannelMessage | ChannelClosed


class SubscriptionChannel:
    """Duplex channel with a one-time subscribe handshake."""

    def __init__(
        self,
        adapter: WebSocketAdapter,
        url: str,
        subscribe_frame: bytes,
        name: str = "channel",
    ):
        self.url = url
        self.name = name
        self._adapter = adapter
        self._subscribe_frame = subscribe_frame
        self._state = ChannelState.CONNECTING
        self._connection: DuplexConnection | None = None
        self._events: asyncio.Queue[ChannelEvent] = asyncio.Queue()
        self._closed_event: ChannelClosed | None = None
        self._closed = asyncio.Event()
        self._accept_settled = asyncio.Event()
        self._accept_error: HandshakeError | None = None
        self._close_requested = False
        self._reader_task: asyncio.Task[None] | None = None

    @classmethod
    def connect(
        cls,
        adapter: WebSocketAdapter,
        url: str,
        subscribe_frame: bytes,
        *,
        name: str = "channel",
    ) -> SubscriptionChannel:
        """Start connecting. Must be called from a running event loop.

        Args:
            adapter: Opens the underlying connection
            url: ws:// or wss:// endpoint URL
            subscribe_frame: Encoded subscribe request sent right after open
            name: Label used in log messages

        Returns:
            The channel, in CONNECTING state; await accepted() next
        """
        channel = cls(adapter, url, subscribe_frame, name=name)
        channel._reader_task = asyncio.create_task(channel._run(), name=f"{name}-reader")
        return channel

    @property
    def state(self) -> ChannelState:
        """Current channel state."""
        return self._state

    def is_closed(self) -> bool:
        return self._state == ChannelState.CLOSED

    async def accepted(self) -> None:
        """Wait for the subscribe handshake.

        Raises:
            HandshakeError: If the channel closed before the handshake completed
        """
        await self._accept_settled.wait()
        if self._accept_error is not None:
            raise self._accept_error

    async def next_event(self) -> ChannelEvent:
        """Next channel event in arrival order.

        Once the channel is closed and drained, keeps returning the same
        ChannelClosed event.
        """
        if self._closed_event is not None and self._events.empty():
            return self._closed_event
        return await self._events.get()

    async def send(self, data: bytes) -> None:
        """Send one frame.

        Raises:
            ConnectionLostError: If the channel is not open
        """
        if self._connection is None or self._state in (ChannelState.CLOSING, ChannelState.CLOSED):
            raise ConnectionLostError(f"[{self.name}] cannot send, channel is {self._state.value}")
        await self._connection.send(data)

    async def wait_closed(self) -> ChannelClosed:
        """Wait until the channel is fully closed."""
        await self._closed.wait()
        assert self._closed_event is not None
        return self._closed_event

    async def close(self) -> None:
        """Close gracefully and wait until fully closed. Idempotent."""
        if self._state == ChannelState.CLOSED:
            return
        if self._close_requested:
            await self._closed.wait()
            return

        self._close_requested = True
        logger.debug(f"[{self.name}] closing connection...")

        if self._connection is None or not self._accept_settled.is_set():
            # Handshake unfinished: abandon the attempt
            if self._reader_task is not None:
                self._reader_task.cancel()
        else:
            self._state = ChannelState.CLOSING
            await self._connection.close()

        await self._closed.wait()
        if self._reader_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task

    async def _run(self) -> None:
        """Background task: connect, handshake, then pump inbound frames."""
        code: int | None = None
        reason = ""
        failed = False
        try:
            self._connection = await self._adapter.connect(self.url)
            self._state = ChannelState.OPEN
            logger.debug(f"[{self.name}] connection opened: {self.url}")
            self._events.put_nowait(ChannelOpened())

            await self._connection.send(self._subscribe_frame)
            if self._state == ChannelState.OPEN:
                self._state = ChannelState.ACCEPTED
            self._accept_settled.set()

            async for data in self._connection.messages():
                logger.debug(f"[{self.name}] message ({len(data)} bytes)")
                self._events.put_nowait(ChannelMessage(data))

            code = self._connection.close_code
            reason = self._connection.close_reason
        except asyncio.CancelledError:
            reason = "closed before accept"
            if self._connection is not None:
                await self._connection.close()
            raise
        except Exception as e:
            logger.warning(f"[{self.name}] connection error: {e}")
            failed = True
            reason = str(e)
            if self._connection is not None:
                code = self._connection.close_code
        finally:
            self._finish(code, reason, was_clean=not failed and code == NORMAL_CLOSURE)

    def _finish(self, code: int | None, reason: str, was_clean: bool) -> None:
        if self._state == ChannelState.CLOSED:
            return
        self._state = ChannelState.CLOSED
        closed = ChannelClosed(code=code, reason=reason, was_clean=was_clean)
        self._closed_event = closed
        self._events.put_nowait(closed)

        if not self._accept_settled.is_set():
            self._accept_error = HandshakeError(
                "Handshake acquiring failed - connection closed", code=code, reason=reason
            )
            self._accept_settled.set()

        self._closed.set()
        logger.info(
            f"[{self.name}] connection closed; code: {code}, reason: {reason!r}, "
            f"was clean: {was_clean}"
        )
