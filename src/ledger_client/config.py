"""Client configuration.

Values come from constructor arguments, or from LEDGER_CLIENT_* environment
variables via ClientConfig.from_env(). Unset variables fall back to the
dataclass defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

ENV_PREFIX = "LEDGER_CLIENT_"


@dataclass
class ClientConfig:
    """Configuration for Client and the transports it creates."""

    # Torii (API gateway) base URL; ws:// URLs are derived from it
    torii_url: str = "http://127.0.0.1:8080"
    chain: str = "00000000-0000-0000-0000-000000000000"
    account_domain: str = "wonderland"

    # HTTP settings
    timeout: float = 30.0

    # WebSocket settings
    ws_ping_interval: float | None = 30.0
    ws_ping_timeout: float | None = 10.0
    ws_open_timeout: float | None = 10.0

    # Transactions
    transaction_ttl_ms: int = 100_000

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides: Any) -> ClientConfig:
        """Build a config from LEDGER_CLIENT_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ
            **overrides: Explicit values that win over the environment

        Raises:
            ValueError: If a variable cannot be converted to the field type
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None:
                continue
            values[f.name] = _convert(f.name, raw, f.default)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _convert(name: str, raw: str, default: Any) -> Any:
    # WebSocket timeouts accept "none" to disable them
    if name.startswith("ws_") and raw.lower() == "none":
        return None
    try:
        if isinstance(default, float):
            return float(raw)
        if isinstance(default, int):
            return int(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}") from e
    return raw
