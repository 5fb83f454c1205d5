"""Ledger Client - protocol layer for a ledger peer's Torii gateway.

Provides:
- Queries: cursor-driven pagination over signed requests
- Blocks: pull-based, flow-controlled block stream
- Events: push-based, filtered event stream
- Transactions: submit, optionally waiting for approval/rejection/expiry

Transports are injectable (httpx client, WebSocket adapter) so the same
code runs against real peers and in-memory fakes.
"""

from .api import ApiTelemetry, MainAPI, WebSocketAPI
from .blocks import BlockStream, BlockStreamState, open_block_stream
from .channel import (
    ChannelClosed,
    ChannelEvent,
    ChannelMessage,
    ChannelOpened,
    ChannelState,
    SubscriptionChannel,
)
from .client import Client, TransactionHandle, TransactionState
from .config import ClientConfig
from .errors import (
    CodecError,
    ConnectionLostError,
    HandshakeError,
    LedgerClientError,
    ProtocolViolationError,
    QueryCardinalityError,
    QueryValidationError,
    ResponseError,
    TransactionAbortedError,
    TransactionExpiredError,
    TransactionRejectedError,
    TransportError,
)
from .events import EventStream, open_event_stream
from .find import FindAPI
from .protocol import JsonCodec, KeyPair
from .query import (
    QueryExecutor,
    QueryHandle,
    collect_all,
    expect_exactly_one,
    expect_zero_or_one,
)

__all__ = [
    # Client
    "Client",
    "ClientConfig",
    "TransactionHandle",
    "TransactionState",
    "KeyPair",
    "JsonCodec",
    # Raw APIs
    "MainAPI",
    "ApiTelemetry",
    "WebSocketAPI",
    # Queries
    "FindAPI",
    "QueryExecutor",
    "QueryHandle",
    "collect_all",
    "expect_exactly_one",
    "expect_zero_or_one",
    # Streams
    "SubscriptionChannel",
    "ChannelState",
    "ChannelEvent",
    "ChannelOpened",
    "ChannelMessage",
    "ChannelClosed",
    "BlockStream",
    "BlockStreamState",
    "open_block_stream",
    "EventStream",
    "open_event_stream",
    # Errors
    "LedgerClientError",
    "TransportError",
    "ConnectionLostError",
    "HandshakeError",
    "ResponseError",
    "ProtocolViolationError",
    "CodecError",
    "QueryValidationError",
    "QueryCardinalityError",
    "TransactionRejectedError",
    "TransactionExpiredError",
    "TransactionAbortedError",
]
