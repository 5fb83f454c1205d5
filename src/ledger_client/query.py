"""Query execution with server-side cursors.

An iterable query is paged by the server. The executor drives it:

    Start(query) -> batch 1 + cursor
    Continue(cursor) -> batch 2 + cursor
    ...
    Continue(cursor) -> batch N, no cursor

Each round trip is a separately signed request, and a cursor is never sent
twice. The sequence is finite and not restartable.

Abandoning a partially drained sequence sends nothing to the server; the
peer drops idle cursors on its own timeout.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from .api import MainAPI
from .errors import CodecError, ProtocolViolationError, QueryCardinalityError
from .protocol.crypto import KeyPair, sign_query
from .protocol.models import (
    AccountId,
    ContinueRequest,
    ForwardCursor,
    IterableResponse,
    QueryOutput,
    QueryRequest,
    QueryWithParams,
    SignedQuery,
    SingularQuery,
    SingularRequest,
    SingularResponse,
    StartRequest,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueryExecutor:
    """Signs and sends query requests on behalf of one authority."""

    def __init__(self, api: MainAPI, authority: AccountId, key_pair: KeyPair):
        self._api = api
        self._authority = authority
        self._key_pair = key_pair

    async def execute(self, query: QueryWithParams) -> AsyncIterator[QueryOutput]:
        """Run an iterable query, yielding one output per round trip.

        Raises:
            QueryValidationError: If the service rejected a request
            ProtocolViolationError: If the service answered with a singular response
        """
        cursor: ForwardCursor | None = None
        round_trips = 0
        while True:
            request: QueryRequest = (
                StartRequest(query=query) if cursor is None else ContinueRequest(cursor=cursor)
            )
            response = await self._api.query(self.sign_query(request))
            round_trips += 1

            if not isinstance(response, IterableResponse):
                raise ProtocolViolationError(
                    f"Expected an iterable query response, got {response.kind}"
                )

            output = response.value
            logger.debug(
                f"{query.query}: batch {round_trips} with {len(output.batch)} item(s), "
                f"{output.remaining_items} remaining"
            )
            yield output

            cursor = output.continue_cursor
            if cursor is None:
                break

    async def execute_singular(self, query: SingularQuery) -> Any:
        """Run a singular query.

        Raises:
            ProtocolViolationError: If the service answered with an iterable response
        """
        response = await self._api.query(self.sign_query(SingularRequest(query=query)))
        if not isinstance(response, SingularResponse):
            raise ProtocolViolationError(f"Expected a singular query response, got {response.kind}")
        return response.value

    def sign_query(self, request: QueryRequest) -> SignedQuery:
        return sign_query(self._api.codec, request, self._authority, self._key_pair)


class QueryHandle(Generic[T]):
    """A built query that can be executed in several ways.

    Usage:
        handle = client.find.accounts(limit=10)
        accounts = await handle.execute_all()
    """

    def __init__(
        self,
        query: QueryWithParams,
        executor: QueryExecutor,
        item_type: type[T] | None = None,
    ):
        self.query = query
        self._executor = executor
        self._items: TypeAdapter[list[Any]] = TypeAdapter(list[item_type] if item_type else list)

    async def batches(self) -> AsyncIterator[list[T]]:
        """Yield each batch, items validated into the item type.

        Raises:
            CodecError: If a batch item does not match the item type
        """
        async for output in self._executor.execute(self.query):
            try:
                items = self._items.validate_python(output.batch)
            except ValidationError as e:
                raise CodecError(f"Unexpected item in {self.query.query} batch: {e}") from e
            yield items

    async def execute_all(self) -> list[T]:
        return await collect_all(self.batches())

    async def execute_single(self) -> T:
        return await expect_exactly_one(self.batches())

    async def execute_single_opt(self) -> T | None:
        return await expect_zero_or_one(self.batches())


async def collect_all(batches: AsyncIterable[list[T]]) -> list[T]:
    """All items from all batches, in arrival order."""
    items: list[T] = []
    async for batch in batches:
        items.extend(batch)
    return items


async def expect_exactly_one(batches: AsyncIterable[list[T]]) -> T:
    """The only item of the sequence.

    Raises:
        QueryCardinalityError: If there are no items or more than one
    """
    found = await _at_most_one(batches)
    if found is None:
        raise QueryCardinalityError("Expected query to return exactly one item, got 0", count=0)
    return found[0]


async def expect_zero_or_one(batches: AsyncIterable[list[T]]) -> T | None:
    """The item of the sequence, or None if it is empty.

    Raises:
        QueryCardinalityError: If there is more than one item
    """
    found = await _at_most_one(batches)
    return None if found is None else found[0]


async def _at_most_one(batches: AsyncIterable[list[T]]) -> tuple[T] | None:
    found: tuple[T] | None = None
    count = 0
    try:
        async for batch in batches:
            count += len(batch)
            if count > 1:
                # Stops early; the cursor is left for the server to expire
                raise QueryCardinalityError(
                    f"Expected query to return at most one item, got {count} or more",
                    count=count,
                )
            if batch:
                found = (batch[0],)
    finally:
        aclose = getattr(batches, "aclose", None)
        if aclose is not None:
            await aclose()
    return found
