"""Domain values exchanged with the ledger service.

Tagged unions are discriminated on a `kind` field, so a decoded value can
be dispatched with isinstance() and every variant keeps precise types.

Example (continue request):
    {
        "kind": "Continue",
        "cursor": {"query_id": "q_9f2c", "position": 20}
    }
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

# =============================================================================
# Identity
# =============================================================================


class AccountId(BaseModel):
    """Account identity: public key hex plus the domain it lives in."""

    signatory: str
    domain: str

    def __str__(self) -> str:
        return f"{self.signatory}@{self.domain}"

    @classmethod
    def parse(cls, value: str) -> AccountId:
        """Parse the `signatory@domain` form."""
        signatory, sep, domain = value.partition("@")
        if not sep or not signatory or not domain:
            raise ValueError(f"Invalid account id: {value!r}")
        return cls(signatory=signatory, domain=domain)


# =============================================================================
# Queries
# =============================================================================


class ForwardCursor(BaseModel):
    """Server-issued token naming a paused server-side result iterator."""

    query_id: str
    position: int


class QueryParams(BaseModel):
    """Pagination, sorting and batch size for iterable queries."""

    limit: int | None = None
    offset: int = 0
    fetch_size: int | None = None
    sort_by_metadata_key: str | None = None


class QueryWithParams(BaseModel):
    """An iterable query plus its parameters."""

    query: str
    predicate: dict[str, Any] | None = None
    params: QueryParams = Field(default_factory=QueryParams)


class SingularQuery(BaseModel):
    """A query answered with exactly one value and no cursor."""

    query: str
    payload: dict[str, Any] = Field(default_factory=dict)


class SingularRequest(BaseModel):
    kind: Literal["Singular"] = "Singular"
    query: SingularQuery


class StartRequest(BaseModel):
    kind: Literal["Start"] = "Start"
    query: QueryWithParams


class ContinueRequest(BaseModel):
    kind: Literal["Continue"] = "Continue"
    cursor: ForwardCursor


QueryRequest = Annotated[
    SingularRequest | StartRequest | ContinueRequest,
    Field(discriminator="kind"),
]


class QueryPayload(BaseModel):
    """What gets signed for a query: the request and who asks."""

    request: QueryRequest
    authority: AccountId


class SignedQuery(BaseModel):
    payload: QueryPayload
    signature: str


class QueryOutput(BaseModel):
    """One batch of an iterable query."""

    batch: list[Any] = Field(default_factory=list)
    remaining_items: int = 0
    continue_cursor: ForwardCursor | None = None


class SingularResponse(BaseModel):
    kind: Literal["Singular"] = "Singular"
    value: Any = None


class IterableResponse(BaseModel):
    kind: Literal["Iterable"] = "Iterable"
    value: QueryOutput


QueryResponse = Annotated[
    SingularResponse | IterableResponse,
    Field(discriminator="kind"),
]


class ValidationFail(BaseModel):
    """Body of a 4xx query response."""

    kind: str
    message: str | None = None
    detail: Any = None


# =============================================================================
# Transactions
# =============================================================================


class TransactionPayload(BaseModel):
    chain: str
    authority: AccountId
    instructions: list[dict[str, Any]] = Field(default_factory=list)
    creation_time_ms: int
    time_to_live_ms: int | None = None
    nonce: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SignedTransaction(BaseModel):
    payload: TransactionPayload
    signature: str


class TransactionRejectionReason(BaseModel):
    """Why the ledger refused a transaction."""

    kind: str
    message: str | None = None
    detail: Any = None


class TransactionStatus(BaseModel):
    """Pipeline status of a transaction."""

    kind: Literal["Queued", "Expired", "Approved", "Rejected"]
    reason: TransactionRejectionReason | None = None

    def is_terminal(self) -> bool:
        return self.kind != "Queued"


# =============================================================================
# Blocks
# =============================================================================


class BlockSubscriptionRequest(BaseModel):
    from_block_height: int = Field(default=1, ge=1)


class BlockStreamNext(BaseModel):
    """Pull request: deliver exactly one more block."""

    kind: Literal["Next"] = "Next"


class BlockHeader(BaseModel):
    height: int = Field(ge=1)
    prev_block_hash: str | None = None
    transactions_hash: str | None = None
    creation_time_ms: int = 0
    view_change_index: int = 0


class SignedBlock(BaseModel):
    signatures: list[str] = Field(default_factory=list)
    header: BlockHeader
    transactions: list[Any] = Field(default_factory=list)

    @property
    def height(self) -> int:
        return self.header.height


# =============================================================================
# Events
# =============================================================================


class TransactionEventFilter(BaseModel):
    """Matches pipeline transaction events; unset fields match anything."""

    kind: Literal["Transaction"] = "Transaction"
    hash: str | None = None
    block_height: int | None = None
    status: TransactionStatus | None = None


class BlockEventFilter(BaseModel):
    kind: Literal["Block"] = "Block"
    height: int | None = None
    status: str | None = None


class DataEventFilter(BaseModel):
    kind: Literal["Data"] = "Data"
    entity: str | None = None


EventFilter = Annotated[
    TransactionEventFilter | BlockEventFilter | DataEventFilter,
    Field(discriminator="kind"),
]


class EventSubscriptionRequest(BaseModel):
    filters: list[EventFilter] = Field(default_factory=list)


class TransactionEvent(BaseModel):
    kind: Literal["Transaction"] = "Transaction"
    hash: str
    block_height: int | None = None
    status: TransactionStatus


class BlockEvent(BaseModel):
    kind: Literal["Block"] = "Block"
    height: int
    status: str


class DataEvent(BaseModel):
    kind: Literal["Data"] = "Data"
    entity: str
    payload: dict[str, Any] = Field(default_factory=dict)


EventBox = Annotated[
    TransactionEvent | BlockEvent | DataEvent,
    Field(discriminator="kind"),
]


# =============================================================================
# Telemetry
# =============================================================================


class Status(BaseModel):
    peers: int = 0
    blocks: int = 0
    txs_approved: int = 0
    txs_rejected: int = 0
    uptime_ms: int = 0
    view_changes: int = 0
    queue_size: int = 0


class PeerInfo(BaseModel):
    id: str
    address: str


class HealthResult(BaseModel):
    healthy: bool
    error: str | None = None
