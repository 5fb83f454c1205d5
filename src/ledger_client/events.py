"""Event streaming - push-based, filtered fan-out.

Protocol:
- On open the client sends a one-time Subscribe(filters); the channel's
  accept signal is the only acknowledgement.
- Every inbound frame afterwards is an event. There is no pull and no
  backpressure; the server paces itself.
- An undecodable frame fails the whole stream: the channel is closed and
  the error is kept on EventStream.error. Frames are never dropped.

Any number of listeners and iterators can share one stream:

    stream = await open_event_stream(adapter, url, codec, filters=[...])
    unsubscribe = stream.on(handle_event)
    async for event in stream:
        ...
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import Any

from .channel import ChannelClosed, ChannelMessage, SubscriptionChannel
from .errors import ProtocolViolationError
from .protocol.codec import Codec
from .protocol.models import EventBox, EventFilter, EventSubscriptionRequest
from .transport.base import WebSocketAdapter

logger = logging.getLogger(__name__)

# Type for event listeners
EventListener = Callable[[Any], Awaitable[None] | None]

_END = object()


class EventStream:
    """Decoded events from one subscription, published to all listeners."""

    def __init__(self, channel: SubscriptionChannel, codec: Codec):
        self._channel = channel
        self._codec = codec
        self._listeners: list[EventListener] = []
        self._queues: list[asyncio.Queue[Any]] = []
        self._error: ProtocolViolationError | None = None
        self._closed_info: ChannelClosed | None = None
        self._done = asyncio.Event()
        self._dispatch_task: asyncio.Task[None] | None = None

    @property
    def channel(self) -> SubscriptionChannel:
        return self._channel

    @property
    def error(self) -> ProtocolViolationError | None:
        """Protocol violation that failed the stream, if any."""
        return self._error

    def is_closed(self) -> bool:
        return self._channel.is_closed()

    def on(self, listener: EventListener) -> Callable[[], None]:
        """Attach a listener called with every decoded event.

        Args:
            listener: Function or coroutine function called with each event

        Returns:
            Unsubscribe function
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait_closed(self) -> ChannelClosed:
        """Wait until the stream is closed and every event is dispatched."""
        await self._done.wait()
        assert self._closed_info is not None
        return self._closed_info

    async def stop(self) -> None:
        """Close the subscription. Idempotent."""
        await self._channel.close()
        task = self._dispatch_task
        if task is not None and task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def __aiter__(self) -> AsyncIterator[Any]:
        """Yield events until the stream closes.

        Raises:
            ProtocolViolationError: If the stream failed on a bad frame
        """
        queue: asyncio.Queue[Any] = asyncio.Queue()
        if self._done.is_set():
            queue.put_nowait(_END)
        else:
            self._queues.append(queue)

        try:
            while True:
                item = await queue.get()
                if item is _END:
                    break
                yield item
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

        if self._error is not None:
            raise self._error

    async def __aenter__(self) -> EventStream:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    def _start(self) -> None:
        self._dispatch_task = asyncio.create_task(self._dispatch(), name="events-dispatch")

    async def _dispatch(self) -> None:
        """Background task decoding frames and publishing events."""
        try:
            while True:
                event = await self._channel.next_event()

                if isinstance(event, ChannelClosed):
                    self._closed_info = event
                    break

                if isinstance(event, ChannelMessage):
                    await self._handle_message(event.data)
        finally:
            if self._closed_info is None:
                self._closed_info = ChannelClosed(
                    code=None, reason="dispatch stopped", was_clean=False
                )
            for queue in list(self._queues):
                queue.put_nowait(_END)
            self._done.set()

    async def _handle_message(self, data: bytes) -> None:
        if self._error is not None:
            return

        try:
            event = self._codec.decode(data, EventBox)
        except ProtocolViolationError as e:
            logger.error(f"Undecodable frame on event stream, closing: {e}")
            self._error = ProtocolViolationError(f"Cannot decode event: {e}")
            await self._channel.close()
            return

        await self.publish(event)

    async def publish(self, event: Any) -> None:
        """Deliver one event to every listener and iterator."""
        for queue in list(self._queues):
            queue.put_nowait(event)

        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Error in event listener for {type(event).__name__}")


async def open_event_stream(
    adapter: WebSocketAdapter,
    url: str,
    codec: Codec,
    filters: Sequence[EventFilter] | None = None,
) -> EventStream:
    """Open an event subscription and wait for it to be accepted.

    Raises:
        HandshakeError: If the connection closed before accept
    """
    subscribe = codec.encode(EventSubscriptionRequest(filters=list(filters or [])))
    channel = SubscriptionChannel.connect(adapter, url, subscribe, name="events")
    stream = EventStream(channel, codec)
    stream._start()
    try:
        await channel.accepted()
    except BaseException:
        # Includes cancellation: never leave the connection behind
        await stream.stop()
        raise
    logger.info(f"Event stream subscribed with {len(filters or [])} filter(s)")
    return stream
