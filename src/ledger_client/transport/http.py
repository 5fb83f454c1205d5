"""HTTP transport over httpx.

One-shot request/response calls against the Torii base URL. The
httpx.AsyncClient can be injected (e.g. with httpx.MockTransport in tests);
otherwise one is created and owned by the transport.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import ResponseError, TransportError

logger = logging.getLogger(__name__)


class HttpTransport:
    """Adapter for HTTP requests made by the API classes."""

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        content: bytes | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Make one request.

        Raises:
            TransportError: If the request could not be completed
        """
        url = self.url(path)
        logger.debug(f"{method} {url}")
        try:
            return await self._client.request(
                method, url, content=content, json=json, headers=headers
            )
        except httpx.TransportError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


def assert_status(response: httpx.Response, status: int) -> None:
    """Raise ResponseError unless the response has the expected status.

    Plain-text bodies are used as the error message.
    """
    if response.status_code == status:
        return
    message = "got an error response"
    if "text/plain" in response.headers.get("content-type", ""):
        message = response.text
    raise ResponseError(response.status_code, response.reason_phrase, message)
