"""Wire-level protocol: domain models, codec and signing.

Key concepts:
- Models: pydantic values exchanged with the ledger service
- Codec: turns models into bytes and back, and signs payloads
- Signing: every query request and transaction is signed as a whole
"""

from .codec import Codec, JsonCodec
from .crypto import KeyPair, sign_query, sign_transaction, transaction_hash, verify_signature
from .models import (
    AccountId,
    BlockEvent,
    BlockEventFilter,
    BlockHeader,
    BlockStreamNext,
    BlockSubscriptionRequest,
    ContinueRequest,
    DataEvent,
    DataEventFilter,
    EventBox,
    EventFilter,
    EventSubscriptionRequest,
    ForwardCursor,
    HealthResult,
    IterableResponse,
    PeerInfo,
    QueryOutput,
    QueryParams,
    QueryPayload,
    QueryRequest,
    QueryResponse,
    QueryWithParams,
    SignedBlock,
    SignedQuery,
    SignedTransaction,
    SingularQuery,
    SingularRequest,
    SingularResponse,
    StartRequest,
    Status,
    TransactionEvent,
    TransactionEventFilter,
    TransactionPayload,
    TransactionRejectionReason,
    TransactionStatus,
    ValidationFail,
)

__all__ = [
    # Codec & signing
    "Codec",
    "JsonCodec",
    "KeyPair",
    "sign_query",
    "sign_transaction",
    "transaction_hash",
    "verify_signature",
    # Identity
    "AccountId",
    # Queries
    "ForwardCursor",
    "QueryParams",
    "QueryWithParams",
    "SingularQuery",
    "SingularRequest",
    "StartRequest",
    "ContinueRequest",
    "QueryRequest",
    "QueryPayload",
    "SignedQuery",
    "QueryOutput",
    "SingularResponse",
    "IterableResponse",
    "QueryResponse",
    "ValidationFail",
    # Transactions
    "TransactionPayload",
    "SignedTransaction",
    "TransactionRejectionReason",
    "TransactionStatus",
    # Blocks
    "BlockSubscriptionRequest",
    "BlockStreamNext",
    "BlockHeader",
    "SignedBlock",
    # Events
    "TransactionEventFilter",
    "BlockEventFilter",
    "DataEventFilter",
    "EventFilter",
    "EventSubscriptionRequest",
    "TransactionEvent",
    "BlockEvent",
    "DataEvent",
    "EventBox",
    # Telemetry
    "Status",
    "PeerInfo",
    "HealthResult",
]
