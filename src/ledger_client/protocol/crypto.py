"""
Ed25519 account keys and request signing.

Queries and transactions are signed as a whole: the signature covers the
codec encoding of the payload, so every Continue request of a paginated
query carries its own signature.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from .codec import Codec
from .models import (
    AccountId,
    QueryPayload,
    QueryRequest,
    SignedQuery,
    SignedTransaction,
    TransactionPayload,
)

__all__ = [
    "KeyPair",
    "sign_query",
    "sign_transaction",
    "transaction_hash",
    "verify_signature",
]


@dataclass(frozen=True, slots=True)
class KeyPair:
    """
    Ed25519 keypair identifying an account.

    Attributes:
        private_key: The Ed25519 private key.
    """

    private_key: ed25519.Ed25519PrivateKey

    @classmethod
    def generate(cls) -> KeyPair:
        """Generate a new random keypair."""
        return cls(private_key=ed25519.Ed25519PrivateKey.generate())

    @classmethod
    def from_private_hex(cls, value: str) -> KeyPair:
        """
        Load keypair from a hex-encoded 32-byte private key.

        Raises:
            ValueError: If value is not 32 bytes of hex.
        """
        data = bytes.fromhex(value)
        if len(data) != 32:
            raise ValueError(f"Expected 32 bytes, got {len(data)}")
        return cls(private_key=ed25519.Ed25519PrivateKey.from_private_bytes(data))

    def private_key_bytes(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def public_key_bytes(self) -> bytes:
        return self.private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    def public_key_hex(self) -> str:
        return self.public_key_bytes().hex()

    def sign(self, message: bytes) -> bytes:
        """
        Sign a message.

        Returns:
            64-byte Ed25519 signature.
        """
        return self.private_key.sign(message)


def verify_signature(public_key_hex: str, message: bytes, signature_hex: str) -> bool:
    """
    Verify an Ed25519 signature.

    Returns:
        True if signature is valid, False otherwise.
    """
    public_key = ed25519.Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
    try:
        public_key.verify(bytes.fromhex(signature_hex), message)
        return True
    except InvalidSignature:
        return False


def sign_query(
    codec: Codec, request: QueryRequest, authority: AccountId, key_pair: KeyPair
) -> SignedQuery:
    """Sign a query request on behalf of authority."""
    payload = QueryPayload(request=request, authority=authority)
    return SignedQuery(payload=payload, signature=codec.sign(payload, key_pair))


def sign_transaction(
    codec: Codec, payload: TransactionPayload, key_pair: KeyPair
) -> SignedTransaction:
    return SignedTransaction(payload=payload, signature=codec.sign(payload, key_pair))


def transaction_hash(codec: Codec, transaction: SignedTransaction) -> str:
    """
    Hash a signed transaction.

    BLAKE2b-256 over the encoded transaction, hex encoded. This is the
    value pipeline events carry in their `hash` field.
    """
    return hashlib.blake2b(codec.encode(transaction), digest_size=32).hexdigest()
