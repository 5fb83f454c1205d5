"""Unit tests for Client and transaction submit-then-confirm.

The HTTP side is served by httpx.MockTransport and the event stream by
MockWebSocketAdapter, so both halves of the protocol run in-process.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable

import httpx
import pytest

from ledger_client import Client, ClientConfig, TransactionState
from ledger_client.channel import SubscriptionChannel
from ledger_client.errors import (
    ConnectionLostError,
    ProtocolViolationError,
    ResponseError,
    TransactionAbortedError,
    TransactionExpiredError,
    TransactionRejectedError,
)
from ledger_client.protocol import (
    SignedTransaction,
    TransactionEvent,
    TransactionRejectionReason,
    TransactionStatus,
    verify_signature,
)
from ledger_client.transport.mock import MockWebSocketAdapter

TORII_URL = "http://peer.test"
INSTRUCTIONS = [{"Register": {"Domain": {"id": "looking_glass"}}}]


def _make_client(
    key_pair, handler: Callable[[httpx.Request], httpx.Response], adapter: MockWebSocketAdapter
) -> Client:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return Client(
        ClientConfig(torii_url=TORII_URL, chain="test-chain"),
        key_pair,
        http_client=http_client,
        ws_adapter=adapter,
    )


def _status_event(tx_hash: str, kind: str, reason=None) -> TransactionEvent:
    return TransactionEvent(hash=tx_hash, status=TransactionStatus(kind=kind, reason=reason))


# =============================================================================
# Transaction building
# =============================================================================


class TestTransactionBuilding:
    """Tests for Client.transaction()."""

    def test_payload_fields(self, key_pair) -> None:
        client = _make_client(key_pair, lambda request: httpx.Response(200), MockWebSocketAdapter())

        handle = client.transaction(INSTRUCTIONS, nonce=7, creation_time_ms=1_000)
        payload = handle.transaction.payload

        assert payload.chain == "test-chain"
        assert payload.authority == client.authority()
        assert str(payload.authority) == f"{key_pair.public_key_hex()}@wonderland"
        assert payload.instructions == INSTRUCTIONS
        assert payload.creation_time_ms == 1_000
        assert payload.time_to_live_ms == 100_000
        assert payload.nonce == 7
        assert handle.state == TransactionState.CREATED

    def test_signature_covers_payload(self, key_pair, codec) -> None:
        client = _make_client(key_pair, lambda request: httpx.Response(200), MockWebSocketAdapter())

        handle = client.transaction(INSTRUCTIONS, creation_time_ms=1_000)

        assert verify_signature(
            key_pair.public_key_hex(),
            codec.encode(handle.transaction.payload),
            handle.transaction.signature,
        )

    def test_hash_differs_per_payload(self, key_pair) -> None:
        client = _make_client(key_pair, lambda request: httpx.Response(200), MockWebSocketAdapter())

        first = client.transaction(INSTRUCTIONS, creation_time_ms=1_000)
        second = client.transaction(INSTRUCTIONS, creation_time_ms=2_000)
        again = client.transaction(INSTRUCTIONS, creation_time_ms=1_000)

        assert len(first.hash) == 64
        assert first.hash != second.hash
        assert first.hash == again.hash


# =============================================================================
# Fire-and-forget
# =============================================================================


class TestSubmitWithoutVerify:
    """Tests for submit(verify=False)."""

    @pytest.mark.asyncio
    async def test_posts_signed_transaction(self, key_pair, codec) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200)

        adapter = MockWebSocketAdapter()
        client = _make_client(key_pair, handler, adapter)
        handle = client.transaction(INSTRUCTIONS)

        await handle.submit()

        assert handle.state == TransactionState.SUBMITTED
        assert adapter.connections == []
        assert len(requests) == 1
        assert requests[0].method == "POST"
        assert requests[0].url.path == "/transaction"
        assert requests[0].headers["content-type"] == "application/json"
        assert codec.decode(requests[0].content, SignedTransaction) == handle.transaction

    @pytest.mark.asyncio
    async def test_rejected_by_peer(self, key_pair) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, text="bad signature")

        client = _make_client(key_pair, handler, MockWebSocketAdapter())
        handle = client.transaction(INSTRUCTIONS)

        with pytest.raises(ResponseError) as exc_info:
            await handle.submit()

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "bad signature"
        assert handle.state == TransactionState.CREATED

    @pytest.mark.asyncio
    async def test_second_submit_raises(self, key_pair) -> None:
        client = _make_client(key_pair, lambda request: httpx.Response(200), MockWebSocketAdapter())
        handle = client.transaction(INSTRUCTIONS)
        await handle.submit()

        with pytest.raises(RuntimeError, match="already submitted"):
            await handle.submit()


# =============================================================================
# Submit and confirm
# =============================================================================


class TestSubmitWithVerify:
    """Tests for submit(verify=True)."""

    @pytest.mark.asyncio
    async def test_approved(self, key_pair) -> None:
        adapter = MockWebSocketAdapter()
        handle = None

        def handler(request: httpx.Request) -> httpx.Response:
            adapter.last.push(_status_event(handle.hash, "Queued").model_dump_json())
            adapter.last.push(_status_event(handle.hash, "Approved").model_dump_json())
            return httpx.Response(200)

        client = _make_client(key_pair, handler, adapter)
        handle = client.transaction(INSTRUCTIONS)

        await handle.submit(verify=True)

        assert handle.state == TransactionState.APPROVED
        assert adapter.last.url == "ws://peer.test/events"
        assert adapter.last.closed
        assert adapter.last.close_calls == 1

    @pytest.mark.asyncio
    async def test_subscription_filters_on_hash(self, key_pair) -> None:
        adapter = MockWebSocketAdapter()
        handle = None

        def handler(request: httpx.Request) -> httpx.Response:
            adapter.last.push(_status_event(handle.hash, "Approved").model_dump_json())
            return httpx.Response(200)

        client = _make_client(key_pair, handler, adapter)
        handle = client.transaction(INSTRUCTIONS)
        await handle.submit(verify=True)

        subscribe = json.loads(adapter.last.sent[0])
        assert subscribe["filters"][0]["kind"] == "Transaction"
        assert subscribe["filters"][0]["hash"] == handle.hash

    @pytest.mark.asyncio
    async def test_listens_before_posting(self, key_pair, monkeypatch) -> None:
        """The subscription is accepted before the transaction is sent."""
        calls: list[str] = []
        adapter = MockWebSocketAdapter(on_send=lambda conn, frame: calls.append("subscribe"))
        original_accepted = SubscriptionChannel.accepted

        async def recording_accepted(self) -> None:
            await original_accepted(self)
            calls.append("accepted")

        monkeypatch.setattr(SubscriptionChannel, "accepted", recording_accepted)
        handle = None

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append("post")
            adapter.last.push(_status_event(handle.hash, "Approved").model_dump_json())
            return httpx.Response(200)

        client = _make_client(key_pair, handler, adapter)
        handle = client.transaction(INSTRUCTIONS)
        await handle.submit(verify=True)

        assert calls == ["subscribe", "accepted", "post"]

    @pytest.mark.asyncio
    async def test_rejected_keeps_reason(self, key_pair) -> None:
        adapter = MockWebSocketAdapter()
        reason = TransactionRejectionReason(kind="Validation", message="not permitted")
        handle = None

        def handler(request: httpx.Request) -> httpx.Response:
            adapter.last.push(_status_event(handle.hash, "Rejected", reason).model_dump_json())
            return httpx.Response(200)

        client = _make_client(key_pair, handler, adapter)
        handle = client.transaction(INSTRUCTIONS)

        with pytest.raises(TransactionRejectedError) as exc_info:
            await handle.submit(verify=True)

        assert exc_info.value.reason == reason
        assert handle.state == TransactionState.REJECTED
        assert adapter.last.closed

    @pytest.mark.asyncio
    async def test_expired(self, key_pair) -> None:
        adapter = MockWebSocketAdapter()
        handle = None

        def handler(request: httpx.Request) -> httpx.Response:
            adapter.last.push(_status_event(handle.hash, "Expired").model_dump_json())
            return httpx.Response(200)

        client = _make_client(key_pair, handler, adapter)
        handle = client.transaction(INSTRUCTIONS)

        with pytest.raises(TransactionExpiredError):
            await handle.submit(verify=True)

        assert handle.state == TransactionState.EXPIRED
        assert adapter.last.closed

    @pytest.mark.asyncio
    async def test_ignores_other_transactions(self, key_pair) -> None:
        adapter = MockWebSocketAdapter()
        handle = None

        def handler(request: httpx.Request) -> httpx.Response:
            adapter.last.push(_status_event("ff" * 32, "Rejected").model_dump_json())
            adapter.last.push(_status_event(handle.hash, "Approved").model_dump_json())
            return httpx.Response(200)

        client = _make_client(key_pair, handler, adapter)
        handle = client.transaction(INSTRUCTIONS)

        await handle.submit(verify=True)

        assert handle.state == TransactionState.APPROVED

    @pytest.mark.asyncio
    async def test_stream_closed_before_outcome(self, key_pair) -> None:
        adapter = MockWebSocketAdapter()

        def handler(request: httpx.Request) -> httpx.Response:
            adapter.last.server_close(1001, "going away")
            return httpx.Response(200)

        client = _make_client(key_pair, handler, adapter)
        handle = client.transaction(INSTRUCTIONS)

        with pytest.raises(ConnectionLostError, match="unexpectedly closed") as exc_info:
            await handle.submit(verify=True)

        assert exc_info.value.code == 1001
        assert handle.state == TransactionState.STREAM_CLOSED

    @pytest.mark.asyncio
    async def test_undecodable_event_fails_submit(self, key_pair) -> None:
        adapter = MockWebSocketAdapter()

        def handler(request: httpx.Request) -> httpx.Response:
            adapter.last.push(b"garbage")
            return httpx.Response(200)

        client = _make_client(key_pair, handler, adapter)
        handle = client.transaction(INSTRUCTIONS)

        with pytest.raises(ProtocolViolationError):
            await handle.submit(verify=True)

        assert handle.state == TransactionState.STREAM_CLOSED

    @pytest.mark.asyncio
    async def test_post_failure_closes_stream(self, key_pair) -> None:
        adapter = MockWebSocketAdapter()
        client = _make_client(key_pair, lambda request: httpx.Response(500), adapter)
        handle = client.transaction(INSTRUCTIONS)

        with pytest.raises(ResponseError):
            await handle.submit(verify=True)

        assert adapter.last.closed
        assert handle.state == TransactionState.CREATED

    @pytest.mark.asyncio
    async def test_abort_while_waiting(self, key_pair) -> None:
        adapter = MockWebSocketAdapter()
        abort = asyncio.Event()

        def handler(request: httpx.Request) -> httpx.Response:
            abort.set()
            return httpx.Response(200)

        client = _make_client(key_pair, handler, adapter)
        handle = client.transaction(INSTRUCTIONS)

        with pytest.raises(TransactionAbortedError):
            await handle.submit(verify=True, abort=abort)

        assert handle.state == TransactionState.ABORTED
        assert adapter.last.closed

    @pytest.mark.asyncio
    async def test_abort_already_set(self, key_pair) -> None:
        """Nothing is sent when the caller has already given up."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200)

        adapter = MockWebSocketAdapter()
        client = _make_client(key_pair, handler, adapter)
        handle = client.transaction(INSTRUCTIONS)
        abort = asyncio.Event()
        abort.set()

        with pytest.raises(TransactionAbortedError):
            await handle.submit(verify=True, abort=abort)

        assert requests == []
        assert adapter.connections == []
        assert handle.state == TransactionState.ABORTED

    @pytest.mark.asyncio
    async def test_refused_event_stream(self, key_pair) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200)

        client = _make_client(key_pair, handler, MockWebSocketAdapter(fail_with="refused"))
        handle = client.transaction(INSTRUCTIONS)

        with pytest.raises(ConnectionLostError):
            await handle.submit(verify=True)

        assert requests == []

    @pytest.mark.asyncio
    async def test_timeout_during_subscribe_closes_stream(self, key_pair) -> None:
        """A caller timeout while the subscription is pending tears it down."""
        requests: list[httpx.Request] = []
        gate = asyncio.Event()

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200)

        async def hold_subscribe(conn, frame: bytes) -> None:
            await gate.wait()

        adapter = MockWebSocketAdapter(on_send=hold_subscribe)
        client = _make_client(key_pair, handler, adapter)
        handle = client.transaction(INSTRUCTIONS)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(handle.submit(verify=True), timeout=0.05)

        assert adapter.last.closed
        assert adapter.last.close_calls == 1
        assert requests == []
        assert handle.state == TransactionState.CREATED


# =============================================================================
# Streams and lifecycle
# =============================================================================


class TestClientStreams:
    """Tests for Client.blocks()/events() URL wiring."""

    @pytest.mark.asyncio
    async def test_blocks_url(self, key_pair) -> None:
        adapter = MockWebSocketAdapter()
        client = _make_client(key_pair, lambda request: httpx.Response(200), adapter)

        stream = await client.blocks(from_height=5)
        await stream.stop()

        assert adapter.last.url == "ws://peer.test/block/stream"
        assert json.loads(adapter.last.sent[0]) == {"from_block_height": 5}

    @pytest.mark.asyncio
    async def test_https_maps_to_wss(self, key_pair) -> None:
        adapter = MockWebSocketAdapter()
        client = Client(
            ClientConfig(torii_url="https://peer.test:8443/"),
            key_pair,
            http_client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(200))
            ),
            ws_adapter=adapter,
        )

        stream = await client.events()
        await stream.stop()

        assert adapter.last.url == "wss://peer.test:8443/events"

    @pytest.mark.asyncio
    async def test_injected_http_client_not_closed(self, key_pair) -> None:
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200))
        )
        async with Client(ClientConfig(torii_url=TORII_URL), key_pair, http_client=http_client):
            pass

        assert not http_client.is_closed
        await http_client.aclose()
