"""IPC client - the public request surface.

Two ways to consume responses:

- request_once(): one-shot. Returns a future completed by the first response
  for the request's correlation id. The handler removes itself before
  completing the future, so it never fires twice and never leaks.
- request_callback(): persistent. The callback stays registered and fires
  for every response carrying the request's correlation id, like a stream,
  until off_by_id() or off() removes it.

Usage:
    async with create_client(IpcConfig(command=["my-peer"])) as client:
        info = await client.request_once("app:info", {"verbose": True})

        def on_change(error, data):
            ...

        sub_id = client.request_callback("watch", "/tmp", handler=on_change)
        ...
        client.off_by_id(sub_id)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from .config import IpcConfig
from .dispatcher import Dispatcher
from .errors import (
    ErrorHandler,
    ErrorSink,
    RemoteError,
    TransportClosedError,
    is_error_payload,
)
from .protocol.messages import Channel, new_correlation_id
from .registry import CorrelationRegistry, PendingHandler, ResponseHandler
from .transport import Transport, create_transport
from .transport.fallback import FallbackTransport

logger = logging.getLogger(__name__)


class IpcClient:
    """Correlates requests sent through a transport with their responses.

    The client owns its registry, error sink and dispatcher; their lifetime
    is tied to the transport's (connect/close). Every method must be called
    from the event loop thread.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        id_factory: Callable[[], str] = new_correlation_id,
        owns_transport: bool = True,
    ):
        self._transport = transport if transport is not None else FallbackTransport()
        self._owns_transport = owns_transport
        self._id_factory = id_factory
        self._outstanding: dict[str, asyncio.Future[Any]] = {}

        self.registry = CorrelationRegistry()
        self.error_sink = ErrorSink()
        self.dispatcher = Dispatcher(self.registry, self.error_sink)
        self.dispatcher.add_close_listener(self._fail_outstanding)
        self._transport.bind(self.dispatcher)

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def is_connected(self) -> bool:
        return self._transport.is_connected

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request_once(self, event: str, *args: Any) -> asyncio.Future[Any]:
        """Send a request and return a future for its single response.

        The future resolves with the response data, or fails with the
        delivered error (RemoteError unless the error already is an
        exception). Cancelling the future unregisters the request.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        correlation_id = self._id_factory()

        def on_response(error: Any, data: Any) -> None:
            self.registry.remove_by_id(correlation_id)
            self._outstanding.pop(correlation_id, None)
            if future.done():
                logger.debug(f"Discarding late response for {correlation_id}")
                return
            if is_error_payload(error):
                future.set_exception(RemoteError.wrap(error, correlation_id))
            else:
                future.set_result(data)

        def on_done(fut: asyncio.Future[Any]) -> None:
            if fut.cancelled():
                self.registry.remove_by_id(correlation_id)
                self._outstanding.pop(correlation_id, None)

        self.registry.register(correlation_id, event, on_response)
        self._outstanding[correlation_id] = future
        future.add_done_callback(on_done)
        self._send(correlation_id, event, args)
        return future

    def request_callback(self, event: str, *args: Any, handler: ResponseHandler) -> str:
        """Send a request whose responses all go to ``handler(error, data)``.

        Returns:
            The correlation id, for off_by_id()
        """
        if not callable(handler):
            raise TypeError("handler must be callable")

        correlation_id = self._id_factory()
        self.registry.register(correlation_id, event, handler)
        self._send(correlation_id, event, args)
        return correlation_id

    def _send(self, correlation_id: str, event: str, args: tuple[Any, ...]) -> None:
        try:
            self._transport.send(Channel.REQUEST.value, correlation_id, event, list(args))
        except Exception:
            self.registry.remove_by_id(correlation_id)
            self._outstanding.pop(correlation_id, None)
            raise

    # ------------------------------------------------------------------
    # Registry management
    # ------------------------------------------------------------------

    def pending(self) -> dict[str, PendingHandler]:
        """Snapshot of registered handlers keyed by correlation id."""
        return self.registry.snapshot()

    def off_by_id(self, correlation_id: str) -> None:
        """Stop delivering responses for one request."""
        self.registry.remove_by_id(correlation_id)

    def off(self, event: str) -> int:
        """Stop delivering responses for every request on ``event``."""
        return self.registry.remove_all_by_event(event)

    def on_error(self, handler: ErrorHandler | None) -> None:
        """Replace the global error handler (None restores the no-op)."""
        self.error_sink.set(handler)

    set_error_handler = on_error

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        self._transport.bind(self.dispatcher)
        await self._transport.connect()

    async def close(self) -> None:
        """Disconnect and drop all correlation state.

        One-shot futures still waiting fail with TransportClosedError. The
        same happens, without clearing persistent handlers, when the
        transport loses its peer on its own.
        """
        if self._owns_transport:
            await self._transport.disconnect()

        self.registry.clear()
        self._fail_outstanding("Transport closed")

    def _fail_outstanding(self, reason: str) -> None:
        """Fail every one-shot future still waiting for its response."""
        outstanding = list(self._outstanding.items())
        self._outstanding.clear()
        for correlation_id, future in outstanding:
            self.registry.remove_by_id(correlation_id)
            if not future.done():
                future.set_exception(
                    TransportClosedError(f"{reason} before response to {correlation_id}")
                )

    async def __aenter__(self) -> IpcClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


def create_client(
    config: IpcConfig | None = None,
    transport: Transport | None = None,
) -> IpcClient:
    """Create a client for the configured transport.

    Falls back to the in-memory FallbackTransport when neither a peer
    command nor a URL is configured.

    Args:
        config: Configuration (default: read from APP_IPC_* environment)
        transport: Pre-built transport, overrides config

    Returns:
        IpcClient, not yet connected
    """
    if transport is None:
        transport = create_transport(config or IpcConfig.from_env())
    return IpcClient(transport)
