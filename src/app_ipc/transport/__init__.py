"""Transport adapters.

- stdio: peer launched as a subprocess, JSON lines over stdin/stdout
- websocket: peer reachable on a WebSocket URL
- fallback: in-memory substitute for development and tests
"""

from ..config import IpcConfig
from .base import BaseTransport, Transport, TransportState
from .fallback import BufferedResponse, FallbackTransport, ResponseBuffer
from .stdio import StdioTransport
from .websocket import WebSocketTransport


def create_transport(config: IpcConfig | None = None) -> BaseTransport:
    """Create the transport selected by ``config`` ("auto" resolved)."""
    config = config or IpcConfig()
    mode = config.resolved_mode
    if mode == "stdio":
        return StdioTransport(config)
    if mode == "websocket":
        return WebSocketTransport(config)
    return FallbackTransport(config)


__all__ = [
    "BaseTransport",
    "Transport",
    "TransportState",
    "StdioTransport",
    "WebSocketTransport",
    "FallbackTransport",
    "ResponseBuffer",
    "BufferedResponse",
    "create_transport",
]
