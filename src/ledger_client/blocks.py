"""Block streaming - pull-based, one block per request.

Protocol:
- On open the client sends Subscribe(from_block_height); the channel's
  accept signal acknowledges it.
- Before each block the client sends Next. The server must not push
  ahead of Next, and the client never has two Next frames outstanding.
- Each Next is answered by exactly one block frame. Any other frame is a
  protocol violation.
- A channel close ends the stream cleanly; there is no error.

States:
    CONNECTING -> AWAITING_ACCEPT -> (READY <-> AWAITING_BLOCK) -> CLOSED
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

from .channel import ChannelClosed, ChannelMessage, SubscriptionChannel
from .errors import ConnectionLostError, ProtocolViolationError
from .protocol.codec import Codec
from .protocol.models import BlockStreamNext, BlockSubscriptionRequest, SignedBlock
from .transport.base import WebSocketAdapter

logger = logging.getLogger(__name__)


class BlockStreamState(str, Enum):
    CONNECTING = "connecting"
    AWAITING_ACCEPT = "awaiting_accept"
    READY = "ready"
    AWAITING_BLOCK = "awaiting_block"
    CLOSED = "closed"


class BlockStream:
    """Lazy, flow-controlled sequence of committed blocks.

    Usage:
        async with await open_block_stream(adapter, url, codec, from_height=2) as stream:
            async for block in stream:
                print(block.height)
    """

    def __init__(self, channel: SubscriptionChannel, codec: Codec):
        self._channel = channel
        self._codec = codec
        self._state = BlockStreamState.CONNECTING
        self._pull_lock = asyncio.Lock()
        self._next_frame = codec.encode(BlockStreamNext())
        self._next_outstanding = False
        self.last_height: int | None = None

    @property
    def state(self) -> BlockStreamState:
        if self._channel.is_closed():
            return BlockStreamState.CLOSED
        return self._state

    @property
    def channel(self) -> SubscriptionChannel:
        return self._channel

    def is_closed(self) -> bool:
        return self._channel.is_closed()

    async def _await_accept(self) -> None:
        self._state = BlockStreamState.AWAITING_ACCEPT
        await self._channel.accepted()
        self._state = BlockStreamState.READY

    async def next_block(self) -> SignedBlock | None:
        """Pull one block.

        Returns:
            The next block, or None once the channel is closed

        Raises:
            ProtocolViolationError: If the server sent something other than a block
        """
        async with self._pull_lock:
            if self._channel.is_closed():
                self._state = BlockStreamState.CLOSED
                return None

            self._state = BlockStreamState.AWAITING_BLOCK
            # A cancelled pull leaves its Next unanswered, even mid-send; reuse it
            if not self._next_outstanding:
                self._next_outstanding = True
                try:
                    await self._channel.send(self._next_frame)
                except ConnectionLostError:
                    # stop() raced the pull; the close path ends the stream
                    self._next_outstanding = False
                    logger.debug("Channel closed before Next could be sent")

            while True:
                event = await self._channel.next_event()

                if isinstance(event, ChannelClosed):
                    self._state = BlockStreamState.CLOSED
                    return None

                if isinstance(event, ChannelMessage):
                    return await self._decode_block(event.data)

                # ChannelOpened is not interesting past the handshake

    async def _decode_block(self, data: bytes) -> SignedBlock:
        self._next_outstanding = False
        try:
            block = self._codec.decode(data, SignedBlock)
        except ProtocolViolationError as e:
            logger.error(f"Unexpected frame on block stream: {e}")
            await self._channel.close()
            self._state = BlockStreamState.CLOSED
            raise ProtocolViolationError(f"Expected a block from the block stream: {e}") from e

        self.last_height = block.height
        self._state = BlockStreamState.READY
        logger.debug(f"Received block at height {block.height}")
        return block

    async def stop(self) -> None:
        """Close the stream. Safe at any time, including mid-pull; idempotent."""
        await self._channel.close()
        self._state = BlockStreamState.CLOSED

    def __aiter__(self) -> BlockStream:
        return self

    async def __anext__(self) -> SignedBlock:
        block = await self.next_block()
        if block is None:
            raise StopAsyncIteration
        return block

    async def __aenter__(self) -> BlockStream:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()


async def open_block_stream(
    adapter: WebSocketAdapter,
    url: str,
    codec: Codec,
    from_height: int = 1,
) -> BlockStream:
    """Open a block stream and wait for the subscription to be accepted.

    Args:
        adapter: Duplex transport
        url: Full ws:// URL of the block stream endpoint
        codec: Codec for frames
        from_height: First block height to deliver (>= 1)

    Raises:
        ValueError: If from_height is below 1
        HandshakeError: If the connection closed before accept
    """
    if from_height < 1:
        raise ValueError(f"from_height must be at least 1, got {from_height}")

    subscribe = codec.encode(BlockSubscriptionRequest(from_block_height=from_height))
    channel = SubscriptionChannel.connect(adapter, url, subscribe, name="blocks-stream")
    stream = BlockStream(channel, codec)
    try:
        await stream._await_accept()
    except BaseException:
        # Includes cancellation: never leave the connection behind
        await stream.stop()
        raise
    logger.info(f"Block stream subscribed from height {from_height}")
    return stream
