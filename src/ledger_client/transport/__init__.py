"""Transport layer.

Provides the collaborators the protocol engines are built on:
- HTTP - one-shot request/response (httpx)
- WebSocket - message-oriented duplex connections (websockets)
- Mock - in-memory duplex connections for tests

The engines only see the DuplexConnection / WebSocketAdapter protocols,
so transports can be swapped without code changes.
"""

from .base import DuplexConnection, WebSocketAdapter
from .http import HttpTransport, assert_status
from .mock import MockConnection, MockWebSocketAdapter
from .websocket import WebSocketsAdapter, WebSocketsConnection

__all__ = [
    # Base abstractions
    "DuplexConnection",
    "WebSocketAdapter",
    # HTTP
    "HttpTransport",
    "assert_status",
    # WebSocket implementation
    "WebSocketsAdapter",
    "WebSocketsConnection",
    # Testing
    "MockConnection",
    "MockWebSocketAdapter",
]
