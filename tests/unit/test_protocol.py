"""Unit tests for protocol models, the JSON codec and signing."""

from __future__ import annotations

import json

import pytest

from ledger_client.errors import CodecError, ProtocolViolationError
from ledger_client.protocol import (
    AccountId,
    BlockEvent,
    BlockSubscriptionRequest,
    Codec,
    DataEvent,
    EventBox,
    ForwardCursor,
    JsonCodec,
    KeyPair,
    QueryRequest,
    StartRequest,
    TransactionEvent,
    TransactionPayload,
    TransactionStatus,
    sign_query,
    sign_transaction,
    transaction_hash,
    verify_signature,
)
from ledger_client.protocol.models import ContinueRequest, QueryWithParams


class TestAccountId:
    """Tests for AccountId."""

    def test_str_and_parse(self) -> None:
        account = AccountId.parse("ed0120ab@wonderland")

        assert account.signatory == "ed0120ab"
        assert account.domain == "wonderland"
        assert str(account) == "ed0120ab@wonderland"

    @pytest.mark.parametrize("value", ["ed0120ab", "@wonderland", "ed0120ab@"])
    def test_parse_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            AccountId.parse(value)


class TestModels:
    """Tests for model constraints and tagged unions."""

    def test_block_subscription_height_floor(self) -> None:
        with pytest.raises(ValueError):
            BlockSubscriptionRequest(from_block_height=0)

    def test_status_terminal(self) -> None:
        assert not TransactionStatus(kind="Queued").is_terminal()
        for kind in ("Approved", "Rejected", "Expired"):
            assert TransactionStatus(kind=kind).is_terminal()


class TestJsonCodec:
    """Tests for JsonCodec."""

    def test_implements_codec(self, codec) -> None:
        assert isinstance(codec, Codec)
        assert codec.content_type == "application/json"

    def test_encode_is_compact(self, codec) -> None:
        assert codec.encode(BlockSubscriptionRequest(from_block_height=2)) == (
            b'{"from_block_height":2}'
        )

    def test_encode_plain_values(self, codec) -> None:
        assert json.loads(codec.encode({"a": [1, 2]})) == {"a": [1, 2]}

    def test_decode_tagged_union(self, codec) -> None:
        request = codec.decode(
            b'{"kind": "Continue", "cursor": {"query_id": "q_9f2c", "position": 20}}',
            QueryRequest,
        )

        assert request == ContinueRequest(cursor=ForwardCursor(query_id="q_9f2c", position=20))

    def test_decode_event_variants(self, codec) -> None:
        frames = [
            b'{"kind": "Transaction", "hash": "ab", "status": {"kind": "Approved"}}',
            b'{"kind": "Block", "height": 4, "status": "Committed"}',
            b'{"kind": "Data", "entity": "domain"}',
        ]

        events = [codec.decode(frame, EventBox) for frame in frames]

        assert [type(e) for e in events] == [TransactionEvent, BlockEvent, DataEvent]

    def test_decode_unknown_variant(self, codec) -> None:
        with pytest.raises(CodecError):
            codec.decode(b'{"kind": "Trigger"}', EventBox)

    def test_decode_garbage(self, codec) -> None:
        with pytest.raises(ProtocolViolationError):
            codec.decode(b"\x00\x01", StartRequest)


class TestKeyPair:
    """Tests for KeyPair."""

    def test_from_private_hex_round_trip(self) -> None:
        key_pair = KeyPair.from_private_hex("22" * 32)

        assert key_pair.private_key_bytes() == bytes.fromhex("22" * 32)
        assert len(key_pair.public_key_bytes()) == 32

    def test_wrong_length(self) -> None:
        with pytest.raises(ValueError, match="32 bytes"):
            KeyPair.from_private_hex("22" * 16)

    def test_sign_and_verify(self) -> None:
        key_pair = KeyPair.generate()
        signature = key_pair.sign(b"message").hex()

        assert verify_signature(key_pair.public_key_hex(), b"message", signature)
        assert not verify_signature(key_pair.public_key_hex(), b"other", signature)


class TestSigning:
    """Tests for query and transaction signing."""

    def test_sign_query(self, codec, key_pair) -> None:
        authority = AccountId(signatory=key_pair.public_key_hex(), domain="wonderland")
        request = StartRequest(query=QueryWithParams(query="FindDomains"))

        signed = sign_query(codec, request, authority, key_pair)

        assert signed.payload.request == request
        assert signed.payload.authority == authority
        assert verify_signature(authority.signatory, codec.encode(signed.payload), signed.signature)

    def test_transaction_hash(self, key_pair) -> None:
        codec = JsonCodec()
        authority = AccountId(signatory=key_pair.public_key_hex(), domain="wonderland")
        payload = TransactionPayload(chain="c", authority=authority, creation_time_ms=1)

        signed = sign_transaction(codec, payload, key_pair)
        other = sign_transaction(codec, payload.model_copy(update={"nonce": 1}), key_pair)

        assert transaction_hash(codec, signed) == transaction_hash(codec, signed)
        assert transaction_hash(codec, signed) != transaction_hash(codec, other)
        assert len(bytes.fromhex(transaction_hash(codec, signed))) == 32
