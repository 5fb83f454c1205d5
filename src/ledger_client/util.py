"""Small helpers shared by the protocol engines."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable
from typing import Any

_HTTP_SCHEME = re.compile(r"^https?://")


def http_to_ws_url(url: str) -> str:
    """Map http:// to ws:// and https:// to wss://, leaving the rest intact."""
    return _HTTP_SCHEME.sub(
        lambda m: "wss://" if m.group(0).startswith("https") else "ws://", url, count=1
    )


def join_url(base_url: str, endpoint: str) -> str:
    return f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"


async def first_completed(*aws: Awaitable[Any]) -> tuple[int, Any]:
    """Race awaitables; the first to finish wins and the rest are cancelled.

    Returns:
        (index, result) of the winner. When several finish in the same
        loop iteration, the one passed first wins.

    Raises:
        Whatever the winning awaitable raised.

    Losers are cancelled and awaited before returning, also when the caller
    itself is cancelled mid-race.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for index, task in enumerate(tasks):
            if task in done:
                return index, task.result()
        raise RuntimeError("asyncio.wait returned without a completed task")
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
