"""Transport adapter contract and shared base implementation.

A transport moves requests to the peer and hands every inbound response to
a Dispatcher. The correlation engine never looks at framing; it only needs:

- bind(): attach the dispatcher inbound messages go to
- connect()/disconnect(): lifecycle
- send(): fire-and-forget, synchronous, never awaited by the engine

Sends are synchronous so that registering a handler and issuing the request
happen in the same loop step; no response can be dispatched in between.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import ValidationError

from ..config import IpcConfig
from ..errors import TransportNotConnectedError
from ..protocol.messages import RequestMessage, ResponseMessage

if TYPE_CHECKING:
    from ..dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class TransportState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


@runtime_checkable
class Transport(Protocol):
    """Protocol every transport adapter satisfies."""

    @property
    def is_connected(self) -> bool: ...

    def bind(self, dispatcher: Dispatcher) -> None:
        """Attach the dispatcher that receives inbound messages."""
        ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    def send(self, channel: str, id: str, event: str, args: Sequence[Any]) -> None:
        """Send a request. Fire-and-forget."""
        ...


class BaseTransport(ABC):
    """Base class for transports with a background reader.

    Provides:
    - State management
    - Dispatcher binding
    - Reader task that dispatches inbound responses by correlation id
    """

    def __init__(self, config: IpcConfig | None = None):
        self.config = config or IpcConfig()
        self._state = TransportState.DISCONNECTED
        self._dispatcher: Dispatcher | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == TransportState.CONNECTED

    @property
    def dispatcher(self) -> Dispatcher | None:
        return self._dispatcher

    def bind(self, dispatcher: Dispatcher) -> None:
        self._dispatcher = dispatcher

    async def connect(self) -> None:
        """Establish the channel and start reading."""
        async with self._lock:
            if self._state == TransportState.CONNECTED:
                return

            if self._reader_task is not None:
                # Release what a lost connection left behind
                await self._shutdown()

            self._state = TransportState.CONNECTING
            try:
                await self._do_connect()
            except Exception as e:
                self._state = TransportState.DISCONNECTED
                raise ConnectionError(f"Failed to connect: {e}") from e

            self._state = TransportState.CONNECTED
            self._reader_task = asyncio.create_task(self._read_loop())
            logger.info(f"{self.__class__.__name__} connected")

    async def disconnect(self) -> None:
        """Stop reading and close the channel."""
        async with self._lock:
            if self._state == TransportState.CLOSED:
                return
            if self._state == TransportState.DISCONNECTED and self._reader_task is None:
                return

            self._state = TransportState.CLOSED
            await self._shutdown()
            self._state = TransportState.DISCONNECTED
            logger.info(f"{self.__class__.__name__} disconnected")

    async def _shutdown(self) -> None:
        if self._reader_task:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None

        await self._do_disconnect()

    def send(self, channel: str, id: str, event: str, args: Sequence[Any]) -> None:
        if not self.is_connected:
            raise TransportNotConnectedError(f"{self.__class__.__name__} not connected")
        message = RequestMessage(channel=channel, id=id, event=event, args=list(args))
        self._do_send(message)

    async def _read_loop(self) -> None:
        """Background task dispatching inbound responses.

        If the inbound stream ends without disconnect() (peer exit, read
        failure) the transport drops to DISCONNECTED and the dispatcher is
        told, so nobody keeps waiting on a response that cannot arrive.
        """
        try:
            async for message in self._receive_messages():
                self._handle_message(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Read loop error: {e}")
        self._connection_lost()

    def _connection_lost(self) -> None:
        if self._state != TransportState.CONNECTED:
            return

        name = self.__class__.__name__
        self._state = TransportState.DISCONNECTED
        logger.warning(f"{name} lost connection to peer")
        if self._dispatcher is not None:
            self._dispatcher.connection_lost(f"{name} lost connection to peer")

    def _handle_message(self, message: ResponseMessage) -> None:
        if self._dispatcher is None:
            logger.warning(f"No dispatcher bound, dropping response {message.id}")
            return
        try:
            self._dispatcher.dispatch_message(message)
        except Exception:
            logger.exception(f"Handler failed for response {message.id}")

    @staticmethod
    def _parse(raw: str | bytes) -> ResponseMessage | None:
        """Parse one inbound frame, logging and skipping bad input."""
        try:
            return ResponseMessage.from_json(raw)
        except ValidationError as e:
            logger.warning(f"Failed to parse response: {e.error_count()} error(s) in {raw[:80]!r}")
            return None

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_connect(self) -> None:
        """Implementation-specific connection logic."""
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        """Implementation-specific disconnection logic."""
        ...

    @abstractmethod
    def _do_send(self, message: RequestMessage) -> None:
        """Implementation-specific send logic. Must not block."""
        ...

    @abstractmethod
    def _receive_messages(self) -> AsyncIterator[ResponseMessage]:
        """Implementation-specific receive logic. Must be an async generator."""
        ...

    async def __aenter__(self) -> BaseTransport:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()
