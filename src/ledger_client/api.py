"""Raw Torii endpoints.

MainAPI and ApiTelemetry map one method to one HTTP round trip.
WebSocketAPI opens the two subscription endpoints.

Endpoints:
- GET  /health         - liveness ("Healthy")
- POST /transaction    - submit a signed transaction (200 = accepted for processing)
- POST /query          - run a signed query request
- GET/POST /configuration - read/update peer configuration
- GET  /schema         - data model schema
- GET  /status, /peers, /metrics - telemetry
- WS   /events         - push-based event subscription
- WS   /block/stream   - pull-based block subscription
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from .blocks import BlockStream, open_block_stream
from .errors import ProtocolViolationError, QueryValidationError, ResponseError, TransportError
from .events import EventStream, open_event_stream
from .protocol.codec import Codec
from .protocol.models import (
    EventFilter,
    HealthResult,
    PeerInfo,
    QueryResponse,
    SignedQuery,
    SignedTransaction,
    Status,
    ValidationFail,
)
from .transport.base import WebSocketAdapter
from .transport.http import HttpTransport, assert_status
from .util import http_to_ws_url, join_url

logger = logging.getLogger(__name__)

ENDPOINT_HEALTH = "/health"
ENDPOINT_TRANSACTION = "/transaction"
ENDPOINT_QUERY = "/query"
ENDPOINT_CONFIGURATION = "/configuration"
ENDPOINT_SCHEMA = "/schema"
ENDPOINT_EVENTS = "/events"
ENDPOINT_BLOCKS_STREAM = "/block/stream"
ENDPOINT_STATUS = "/status"
ENDPOINT_PEERS = "/peers"
ENDPOINT_METRICS = "/metrics"

HEALTHY_RESPONSE = "Healthy"


class MainAPI:
    """Main HTTP endpoints of a peer."""

    def __init__(self, http: HttpTransport, codec: Codec):
        self.http = http
        self.codec = codec
        # Works only if the peer is built with telemetry enabled
        self.telemetry = ApiTelemetry(http, codec)

    def _body_headers(self) -> dict[str, str]:
        return {"content-type": self.codec.content_type}

    async def health(self) -> HealthResult:
        """Check peer health.

        Network failures are reported in the result rather than raised.

        Raises:
            ResponseError: If the peer answered with a non-200 status
        """
        try:
            response = await self.http.request("GET", ENDPOINT_HEALTH)
        except TransportError as e:
            return HealthResult(healthy=False, error=str(e))

        assert_status(response, 200)

        text = response.text
        if text != HEALTHY_RESPONSE:
            return HealthResult(
                healthy=False, error=f"Expected '{HEALTHY_RESPONSE}' response; got: '{text}'"
            )
        return HealthResult(healthy=True)

    async def transaction(self, transaction: SignedTransaction) -> None:
        """Submit a signed transaction.

        Success means accepted for processing, not committed.
        """
        response = await self.http.request(
            "POST",
            ENDPOINT_TRANSACTION,
            content=self.codec.encode(transaction),
            headers=self._body_headers(),
        )
        assert_status(response, 200)

    async def query(self, query: SignedQuery) -> Any:
        """Send one signed query request.

        Returns:
            SingularResponse or IterableResponse

        Raises:
            QueryValidationError: If the service rejected the query (4xx)
            ResponseError: On any other unexpected status
        """
        response = await self.http.request(
            "POST",
            ENDPOINT_QUERY,
            content=self.codec.encode(query),
            headers=self._body_headers(),
        )
        return self._handle_query_response(response)

    def _handle_query_response(self, response: httpx.Response) -> Any:
        if response.status_code == 200:
            return self.codec.decode(response.content, QueryResponse)
        if 400 <= response.status_code < 500:
            try:
                reason = self.codec.decode(response.content, ValidationFail)
            except ProtocolViolationError:
                raise ResponseError(
                    response.status_code, response.reason_phrase, response.text or "query failed"
                ) from None
            raise QueryValidationError(reason)
        raise ResponseError(
            response.status_code, response.reason_phrase, "unexpected response from peer"
        )

    async def get_config(self) -> dict[str, Any]:
        response = await self.http.request("GET", ENDPOINT_CONFIGURATION)
        assert_status(response, 200)
        return response.json()

    async def set_config(self, config: dict[str, Any]) -> None:
        response = await self.http.request("POST", ENDPOINT_CONFIGURATION, json=config)
        assert_status(response, 202)

    async def schema(self) -> dict[str, Any]:
        """Fetch the data model schema. Needs the peer's schema feature."""
        response = await self.http.request("GET", ENDPOINT_SCHEMA)
        assert_status(response, 200)
        return response.json()


class ApiTelemetry:
    """Telemetry endpoints."""

    def __init__(self, http: HttpTransport, codec: Codec):
        self.http = http
        self.codec = codec

    async def status(self) -> Status:
        response = await self.http.request(
            "GET", ENDPOINT_STATUS, headers={"accept": self.codec.content_type}
        )
        assert_status(response, 200)
        return self.codec.decode(response.content, Status)

    async def peers(self) -> list[PeerInfo]:
        """List connected peers.

        The peer answers with strings of the form `<public key>@<address>`.
        """
        response = await self.http.request("GET", ENDPOINT_PEERS)
        assert_status(response, 200)
        ids = response.json()
        if not isinstance(ids, list):
            raise ProtocolViolationError(f"Expected a list of peers, got {type(ids).__name__}")

        peers = []
        for value in ids:
            if not isinstance(value, str) or "@" not in value:
                raise ProtocolViolationError(f"Invalid peer id: {value!r}")
            public_key, _, address = value.partition("@")
            peers.append(PeerInfo(id=public_key, address=address))
        return peers

    async def metrics(self) -> str:
        """Prometheus metrics text."""
        response = await self.http.request("GET", ENDPOINT_METRICS)
        assert_status(response, 200)
        return response.text


class WebSocketAPI:
    """Subscription endpoints of a peer."""

    def __init__(self, torii_url: str, adapter: WebSocketAdapter, codec: Codec):
        self.torii_url = torii_url
        self.adapter = adapter
        self.codec = codec

    def url(self, endpoint: str) -> str:
        return join_url(http_to_ws_url(self.torii_url), endpoint)

    async def blocks_stream(self, from_height: int = 1) -> BlockStream:
        return await open_block_stream(
            self.adapter, self.url(ENDPOINT_BLOCKS_STREAM), self.codec, from_height=from_height
        )

    async def events(self, filters: Sequence[EventFilter] | None = None) -> EventStream:
        return await open_event_stream(
            self.adapter, self.url(ENDPOINT_EVENTS), self.codec, filters=filters
        )
