"""app-ipc - request/response correlation over a duplex message channel.

Callers issue named requests; the peer answers with messages tagged by
correlation id. Responses can be consumed once (future) or as a stream
(callback), with a single replaceable error handler observing every
remote error.
"""

from .client import IpcClient, create_client
from .config import IpcConfig
from .dispatcher import Dispatcher
from .errors import (
    ErrorSink,
    IpcError,
    RemoteError,
    TransportClosedError,
    TransportError,
    TransportNotConnectedError,
)
from .protocol import RequestMessage, ResponseMessage, new_correlation_id
from .registry import CorrelationRegistry, PendingHandler
from .transport import (
    BaseTransport,
    FallbackTransport,
    StdioTransport,
    Transport,
    TransportState,
    WebSocketTransport,
    create_transport,
)

__all__ = [
    # Client
    "IpcClient",
    "create_client",
    "IpcConfig",
    # Correlation core
    "CorrelationRegistry",
    "PendingHandler",
    "Dispatcher",
    "ErrorSink",
    # Errors
    "IpcError",
    "RemoteError",
    "TransportError",
    "TransportNotConnectedError",
    "TransportClosedError",
    # Protocol
    "RequestMessage",
    "ResponseMessage",
    "new_correlation_id",
    # Transports
    "Transport",
    "BaseTransport",
    "TransportState",
    "StdioTransport",
    "WebSocketTransport",
    "FallbackTransport",
    "create_transport",
]
