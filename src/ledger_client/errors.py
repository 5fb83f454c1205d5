"""Error taxonomy for the ledger client.

Every failure reaches the immediate caller as a subclass of
LedgerClientError, so callers can tell apart:
- transport failures (refused, closed, timed out)
- protocol violations (wrong response variant, undecodable frame)
- service-reported errors (decoded validation failures)
- transaction outcomes (rejected, expired)
- cancellation (caller gave up)

Nothing in this package retries automatically.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocol.models import TransactionRejectionReason, ValidationFail


class LedgerClientError(Exception):
    """Base class for all ledger client errors."""


class TransportError(LedgerClientError):
    """The underlying HTTP or duplex transport failed."""


class ConnectionLostError(TransportError):
    """A duplex channel closed while the caller still depended on it."""

    def __init__(self, message: str, code: int | None = None, reason: str = ""):
        super().__init__(message)
        self.code = code
        self.reason = reason


class HandshakeError(ConnectionLostError):
    """The channel closed before the subscription handshake completed."""


class ResponseError(LedgerClientError):
    """The server answered with an unexpected HTTP status."""

    def __init__(self, status_code: int, reason_phrase: str, message: str):
        super().__init__(f"{status_code} ({reason_phrase}): {message}")
        self.status_code = status_code
        self.message = message


class ProtocolViolationError(LedgerClientError):
    """The peer sent something the protocol does not allow here."""


class CodecError(ProtocolViolationError):
    """Bytes could not be decoded into the expected value."""


class QueryValidationError(LedgerClientError):
    """The service rejected a query with a decoded validation failure."""

    def __init__(self, reason: ValidationFail):
        super().__init__(f"query validation failed: {reason.kind}: {reason.message or ''}".rstrip())
        self.reason = reason


class QueryCardinalityError(LedgerClientError):
    """A query returned a different number of items than required."""

    def __init__(self, message: str, count: int):
        super().__init__(message)
        self.count = count


class TransactionRejectedError(LedgerClientError):
    """The transaction was rejected by the ledger."""

    def __init__(self, reason: TransactionRejectionReason):
        super().__init__(f"transaction rejected: {reason.kind}")
        self.reason = reason


class TransactionExpiredError(LedgerClientError):
    """The transaction expired before it was committed."""

    def __init__(self, message: str = "transaction expired"):
        super().__init__(message)


class TransactionAbortedError(LedgerClientError):
    """The caller aborted waiting for the transaction outcome."""

    def __init__(self, message: str = "aborted"):
        super().__init__(message)
