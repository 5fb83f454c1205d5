"""Shortcuts for common queries.

Each iterable shortcut returns a QueryHandle; nothing is sent until the
handle is executed. Singular shortcuts run immediately.
"""

from __future__ import annotations

from typing import Any

from .protocol.models import QueryParams, QueryWithParams, SignedBlock, SingularQuery
from .query import QueryExecutor, QueryHandle


class FindAPI:
    """Query shortcuts bound to one executor."""

    def __init__(self, executor: QueryExecutor):
        self._executor = executor

    def query(
        self,
        name: str,
        predicate: dict[str, Any] | None = None,
        *,
        limit: int | None = None,
        offset: int = 0,
        fetch_size: int | None = None,
        sort_by_metadata_key: str | None = None,
        item_type: type[Any] | None = None,
    ) -> QueryHandle[Any]:
        """Build any iterable query by name.

        Args:
            name: Query name understood by the peer (e.g. "FindAccounts")
            predicate: Server-side filter
            limit: Maximum number of items overall
            offset: Items to skip
            fetch_size: Items per batch
            sort_by_metadata_key: Metadata key to sort by
            item_type: Model to validate each item into
        """
        params = QueryParams(
            limit=limit,
            offset=offset,
            fetch_size=fetch_size,
            sort_by_metadata_key=sort_by_metadata_key,
        )
        query = QueryWithParams(query=name, predicate=predicate, params=params)
        return QueryHandle(query, self._executor, item_type)

    def accounts(self, predicate: dict[str, Any] | None = None, **params: Any) -> QueryHandle[Any]:
        return self.query("FindAccounts", predicate, **params)

    def domains(self, predicate: dict[str, Any] | None = None, **params: Any) -> QueryHandle[Any]:
        return self.query("FindDomains", predicate, **params)

    def assets(self, predicate: dict[str, Any] | None = None, **params: Any) -> QueryHandle[Any]:
        return self.query("FindAssets", predicate, **params)

    def asset_definitions(
        self, predicate: dict[str, Any] | None = None, **params: Any
    ) -> QueryHandle[Any]:
        return self.query("FindAssetsDefinitions", predicate, **params)

    def roles(self, predicate: dict[str, Any] | None = None, **params: Any) -> QueryHandle[Any]:
        return self.query("FindRoles", predicate, **params)

    def peers(self, predicate: dict[str, Any] | None = None, **params: Any) -> QueryHandle[Any]:
        return self.query("FindPeers", predicate, **params)

    def triggers(self, predicate: dict[str, Any] | None = None, **params: Any) -> QueryHandle[Any]:
        return self.query("FindActiveTriggerIds", predicate, **params)

    def transactions(
        self, predicate: dict[str, Any] | None = None, **params: Any
    ) -> QueryHandle[Any]:
        return self.query("FindTransactions", predicate, **params)

    def blocks(
        self, predicate: dict[str, Any] | None = None, **params: Any
    ) -> QueryHandle[SignedBlock]:
        return self.query("FindBlocks", predicate, item_type=SignedBlock, **params)

    def block_headers(
        self, predicate: dict[str, Any] | None = None, **params: Any
    ) -> QueryHandle[Any]:
        return self.query("FindBlockHeaders", predicate, **params)

    async def parameters(self) -> Any:
        return await self._executor.execute_singular(SingularQuery(query="FindParameters"))

    async def executor_data_model(self) -> Any:
        return await self._executor.execute_singular(SingularQuery(query="FindExecutorDataModel"))
