"""Ledger client.

Ties the raw endpoints, the query executor and the subscription streams
together for one account, and implements transaction submission with
optional confirmation.

Usage:
    key_pair = KeyPair.from_private_hex(os.environ["ACCOUNT_PRIVATE_KEY"])
    async with Client(ClientConfig.from_env(), key_pair) as client:
        tx = client.transaction([{"Register": {"Domain": {"id": "looking_glass"}}}])
        await tx.submit(verify=True)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from enum import Enum
from typing import Any

import httpx

from .api import MainAPI, WebSocketAPI
from .blocks import BlockStream
from .config import ClientConfig
from .errors import (
    ConnectionLostError,
    TransactionAbortedError,
    TransactionExpiredError,
    TransactionRejectedError,
)
from .events import EventStream
from .find import FindAPI
from .protocol.codec import Codec, JsonCodec
from .protocol.crypto import KeyPair, sign_transaction, transaction_hash
from .protocol.models import (
    AccountId,
    EventFilter,
    SignedTransaction,
    TransactionEvent,
    TransactionEventFilter,
    TransactionPayload,
    TransactionRejectionReason,
    TransactionStatus,
)
from .query import QueryExecutor
from .transport.base import WebSocketAdapter
from .transport.http import HttpTransport
from .transport.websocket import WebSocketsAdapter
from .util import first_completed

logger = logging.getLogger(__name__)


class Client:
    """Client for one account on one peer."""

    def __init__(
        self,
        config: ClientConfig,
        key_pair: KeyPair,
        *,
        http_client: httpx.AsyncClient | None = None,
        ws_adapter: WebSocketAdapter | None = None,
        codec: Codec | None = None,
    ):
        self.config = config
        self.key_pair = key_pair
        self.codec = codec or JsonCodec()

        self.http = HttpTransport(config.torii_url, client=http_client, timeout=config.timeout)
        # Raw API calls
        self.api = MainAPI(self.http, self.codec)
        # Raw WebSocket API calls
        self.socket = WebSocketAPI(
            config.torii_url,
            ws_adapter
            or WebSocketsAdapter(
                ping_interval=config.ws_ping_interval,
                ping_timeout=config.ws_ping_timeout,
                open_timeout=config.ws_open_timeout,
            ),
            self.codec,
        )
        # Shortcuts for querying data
        self.find = FindAPI(QueryExecutor(self.api, self.authority(), key_pair))

    def authority(self) -> AccountId:
        return AccountId(
            signatory=self.key_pair.public_key_hex(), domain=self.config.account_domain
        )

    def transaction(
        self,
        instructions: Sequence[dict[str, Any]],
        *,
        time_to_live_ms: int | None = None,
        nonce: int | None = None,
        metadata: dict[str, Any] | None = None,
        creation_time_ms: int | None = None,
    ) -> TransactionHandle:
        """Build and sign a transaction. Nothing is sent yet."""
        payload = TransactionPayload(
            chain=self.config.chain,
            authority=self.authority(),
            instructions=list(instructions),
            creation_time_ms=creation_time_ms
            if creation_time_ms is not None
            else int(time.time() * 1000),
            time_to_live_ms=time_to_live_ms or self.config.transaction_ttl_ms,
            nonce=nonce,
            metadata=metadata or {},
        )
        signed = sign_transaction(self.codec, payload, self.key_pair)
        return TransactionHandle(signed, self)

    async def events(self, filters: Sequence[EventFilter] | None = None) -> EventStream:
        return await self.socket.events(filters)

    async def blocks(self, from_height: int = 1) -> BlockStream:
        return await self.socket.blocks_stream(from_height)

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


class TransactionState(str, Enum):
    """Lifecycle of a transaction handle."""

    CREATED = "created"
    SUBMITTED = "submitted"
    AWAITING_CONFIRMATION = "awaiting_confirmation"

    # Terminal
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    ABORTED = "aborted"
    STREAM_CLOSED = "stream_closed"


TERMINAL_STATES = frozenset(
    {
        TransactionState.APPROVED,
        TransactionState.REJECTED,
        TransactionState.EXPIRED,
        TransactionState.ABORTED,
        TransactionState.STREAM_CLOSED,
    }
)


class TransactionHandle:
    """A signed transaction and its submission state."""

    def __init__(self, transaction: SignedTransaction, client: Client):
        self._client = client
        self.transaction = transaction
        self.hash = transaction_hash(client.codec, transaction)
        self.state = TransactionState.CREATED

    def _settle(self, state: TransactionState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Transaction {self.hash} already settled as {self.state.value}")
        self.state = state
        logger.info(f"Transaction {self.hash[:12]}: {state.value}")

    async def submit(self, *, verify: bool = False, abort: asyncio.Event | None = None) -> None:
        """Send the transaction.

        Args:
            verify: Wait until the transaction is approved, rejected or expired
            abort: Set to give up waiting (only with verify)

        Raises:
            TransactionRejectedError: Rejected, with the reason attached
            TransactionExpiredError: Expired before commit
            ConnectionLostError: The event stream closed before an outcome
            TransactionAbortedError: abort was set first
            ResponseError: The peer did not accept the transaction
            RuntimeError: The handle was already submitted
        """
        if self.state != TransactionState.CREATED:
            raise RuntimeError(
                f"Transaction {self.hash} was already submitted ({self.state.value})"
            )

        if not verify:
            await self._client.api.transaction(self.transaction)
            self.state = TransactionState.SUBMITTED
            logger.info(f"Transaction {self.hash[:12]}: submitted")
            return

        if abort is not None and abort.is_set():
            self._settle(TransactionState.ABORTED)
            raise TransactionAbortedError("aborted before submission")

        # Listen first so an early confirmation cannot be missed
        stream = await self._client.events(filters=[TransactionEventFilter(hash=self.hash)])
        try:
            await self._submit_and_confirm(stream, abort)
        finally:
            await stream.stop()

    async def _submit_and_confirm(self, stream: EventStream, abort: asyncio.Event | None) -> None:
        outcome: asyncio.Future[TransactionStatus] = asyncio.get_running_loop().create_future()

        async def on_event(event: Any) -> None:
            if (
                isinstance(event, TransactionEvent)
                and event.hash == self.hash
                and event.status.is_terminal()
                and not outcome.done()
            ):
                outcome.set_result(event.status)

        stream.on(on_event)

        if abort is not None and abort.is_set():
            self._settle(TransactionState.ABORTED)
            raise TransactionAbortedError("aborted before submission")

        await self._client.api.transaction(self.transaction)
        self.state = TransactionState.AWAITING_CONFIRMATION
        logger.debug(f"Transaction {self.hash[:12]}: accepted by peer, awaiting confirmation")

        give_up = abort or asyncio.Event()
        winner, result = await first_completed(outcome, stream.wait_closed(), give_up.wait())

        if winner == 0:
            status: TransactionStatus = result
            if status.kind == "Approved":
                self._settle(TransactionState.APPROVED)
                return
            if status.kind == "Rejected":
                self._settle(TransactionState.REJECTED)
                raise TransactionRejectedError(
                    status.reason or TransactionRejectionReason(kind="Unknown")
                )
            self._settle(TransactionState.EXPIRED)
            raise TransactionExpiredError()

        if winner == 1:
            self._settle(TransactionState.STREAM_CLOSED)
            if stream.error is not None:
                raise stream.error
            raise ConnectionLostError(
                "Events stream was unexpectedly closed", code=result.code, reason=result.reason
            )

        self._settle(TransactionState.ABORTED)
        raise TransactionAbortedError()
