"""Pytest configuration and shared fixtures."""

from collections.abc import Callable

import pytest

from ledger_client.protocol import BlockHeader, JsonCodec, KeyPair, SignedBlock


@pytest.fixture
def codec() -> JsonCodec:
    return JsonCodec()


@pytest.fixture
def key_pair() -> KeyPair:
    """Deterministic account key."""
    return KeyPair.from_private_hex("11" * 32)


@pytest.fixture
def block_frame(codec: JsonCodec) -> Callable[[int], bytes]:
    """Factory for encoded blocks at a given height."""

    def make(height: int) -> bytes:
        return codec.encode(SignedBlock(header=BlockHeader(height=height)))

    return make
