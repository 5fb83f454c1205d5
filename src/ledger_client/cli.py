"""Ledger Client CLI.

Read-only inspection of a peer; nothing here signs or submits.

Usage:
    ledger-client health                       # Check peer health
    ledger-client status                       # Telemetry status
    ledger-client peers                        # Connected peers
    ledger-client metrics                      # Prometheus metrics
    ledger-client config                       # Peer configuration
    ledger-client blocks --from-height 2 -n 3  # Pull three blocks
    ledger-client events --tx-hash <hash>      # Follow transaction events

The peer URL comes from --torii-url or LEDGER_CLIENT_TORII_URL.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click

from .api import MainAPI, WebSocketAPI
from .config import ClientConfig
from .errors import LedgerClientError
from .protocol.codec import JsonCodec
from .protocol.models import TransactionEventFilter
from .transport.http import HttpTransport
from .transport.websocket import WebSocketsAdapter

T = TypeVar("T")

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"

format_option = click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)


def build_apis(config: ClientConfig) -> tuple[HttpTransport, MainAPI, WebSocketAPI]:
    """Create the HTTP transport and API objects for a config."""
    codec = JsonCodec()
    http = HttpTransport(config.torii_url, timeout=config.timeout)
    adapter = WebSocketsAdapter(
        ping_interval=config.ws_ping_interval,
        ping_timeout=config.ws_ping_timeout,
        open_timeout=config.ws_open_timeout,
    )
    return http, MainAPI(http, codec), WebSocketAPI(config.torii_url, adapter, codec)


def _run(config: ClientConfig, action: Callable[[MainAPI, WebSocketAPI], Awaitable[T]]) -> T:
    """Run one async action against the peer, exiting 1 on client errors."""

    async def runner() -> T:
        http, api, socket = build_apis(config)
        try:
            return await action(api, socket)
        finally:
            await http.aclose()

    try:
        return asyncio.run(runner())
    except LedgerClientError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


@click.group()
@click.option(
    "--torii-url",
    envvar="LEDGER_CLIENT_TORII_URL",
    default=None,
    help="Peer Torii URL (default: LEDGER_CLIENT_TORII_URL or http://127.0.0.1:8080)",
)
@click.option(
    "--log-level",
    envvar="LEDGER_CLIENT_LOG_LEVEL",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging level",
)
@click.pass_context
def main(ctx: click.Context, torii_url: str | None, log_level: str) -> None:
    """Ledger Client - inspect a ledger peer over HTTP and WebSocket."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.obj = ClientConfig.from_env(torii_url=torii_url)


@main.command()
@click.pass_obj
def health(config: ClientConfig) -> None:
    """Check peer health. Exits 1 when unhealthy."""
    result = _run(config, lambda api, _: api.health())
    if result.healthy:
        click.echo("Healthy")
        return
    click.echo(f"Unhealthy: {result.error}", err=True)
    sys.exit(1)


@main.command()
@format_option
@click.pass_obj
def status(config: ClientConfig, output_format: str) -> None:
    """Show peer telemetry status."""
    result = _run(config, lambda api, _: api.telemetry.status())

    if output_format == FORMAT_JSON:
        _echo_json(result.model_dump())
        return

    for key, value in result.model_dump().items():
        click.echo(f"{key + ':':<14} {value}")


@main.command()
@format_option
@click.pass_obj
def peers(config: ClientConfig, output_format: str) -> None:
    """List connected peers."""
    result = _run(config, lambda api, _: api.telemetry.peers())

    if output_format == FORMAT_JSON:
        _echo_json([p.model_dump() for p in result])
        return

    if not result:
        click.echo("No peers connected.")
        return

    click.echo(f"{'Address':<24} {'Public key'}")
    click.echo("-" * 90)
    for peer in result:
        click.echo(f"{peer.address:<24} {peer.id}")
    click.echo(f"\nTotal: {len(result)} peer(s)")


@main.command()
@click.pass_obj
def metrics(config: ClientConfig) -> None:
    """Print Prometheus metrics."""
    click.echo(_run(config, lambda api, _: api.telemetry.metrics()))


@main.command("config")
@click.pass_obj
def show_config(config: ClientConfig) -> None:
    """Show peer configuration."""
    _echo_json(_run(config, lambda api, _: api.get_config()))


@main.command()
@click.option("--from-height", default=1, type=click.IntRange(min=1), help="First block height")
@click.option("--count", "-n", default=1, type=click.IntRange(min=1), help="Blocks to pull")
@format_option
@click.pass_obj
def blocks(config: ClientConfig, from_height: int, count: int, output_format: str) -> None:
    """Pull blocks from the block stream.

    Examples:

        # Genesis block
        ledger-client blocks

        # Three blocks starting at height 10, as JSON lines
        ledger-client blocks --from-height 10 -n 3 --format json
    """

    async def action(_: MainAPI, socket: WebSocketAPI) -> None:
        async with await socket.blocks_stream(from_height) as stream:
            pulled = 0
            async for block in stream:
                if output_format == FORMAT_JSON:
                    click.echo(block.model_dump_json())
                else:
                    header = block.header
                    click.echo(
                        f"#{header.height:<8} txs={len(block.transactions):<5} "
                        f"hash={header.transactions_hash or '-'}"
                    )
                pulled += 1
                if pulled >= count:
                    break

    _run(config, action)


@main.command()
@click.option("--tx-hash", default=None, help="Only events for this transaction hash")
@click.option("--count", "-n", default=None, type=click.IntRange(min=1), help="Stop after N events")
@click.pass_obj
def events(config: ClientConfig, tx_hash: str | None, count: int | None) -> None:
    """Follow pipeline events as JSON lines until interrupted."""
    filters = [TransactionEventFilter(hash=tx_hash)] if tx_hash else []

    async def action(_: MainAPI, socket: WebSocketAPI) -> None:
        async with await socket.events(filters) as stream:
            received = 0
            async for event in stream:
                click.echo(event.model_dump_json())
                received += 1
                if count is not None and received >= count:
                    break

    try:
        _run(config, action)
    except KeyboardInterrupt:
        click.echo("\nStopped", err=True)


if __name__ == "__main__":
    main()
