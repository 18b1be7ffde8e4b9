"""Development-mode substitute for a real peer.

Used when no transport is configured. Nothing crosses a process boundary:
tests and local tooling play the peer by calling deliver().

Matching here is by event name, not correlation id:

- deliver() hands the response to the first handler registered for the
  event. If none exists yet, the response is buffered.
- send() (issued for every new request) pops the first buffered response
  for the request's event and re-delivers it after a short delay, once the
  new handler is registered.

Each buffered response is delivered at most once. Responses for events
nobody ever requests stay buffered until disconnect.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass
from typing import Any

from ..config import IpcConfig
from ..protocol.messages import RequestMessage, ResponseMessage
from .base import BaseTransport

logger = logging.getLogger(__name__)


@dataclass
class BufferedResponse:
    """A response that arrived before any handler for its event."""

    event: str
    error: Any
    data: Any
    delivered: asyncio.Future[None]


class ResponseBuffer:
    """FIFO of undelivered responses, matched by event name."""

    def __init__(self) -> None:
        self._entries: list[BufferedResponse] = []

    def push(self, response: BufferedResponse) -> None:
        self._entries.append(response)

    def pop_first(self, event: str) -> BufferedResponse | None:
        """Remove and return the oldest response for ``event``."""
        for i, response in enumerate(self._entries):
            if response.event == event:
                return self._entries.pop(i)
        return None

    def clear(self) -> list[BufferedResponse]:
        entries, self._entries = self._entries, []
        return entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[BufferedResponse]:
        return iter(list(self._entries))


class FallbackTransport(BaseTransport):
    """In-memory transport that buffers responses by event name."""

    def __init__(self, config: IpcConfig | None = None):
        super().__init__(config or IpcConfig(mode="fallback"))
        self.buffer = ResponseBuffer()
        self._timers: set[asyncio.TimerHandle] = set()
        logger.warning("Missing ipc transport. Using fallback transport in development mode.")

    async def _do_connect(self) -> None:
        pass

    async def _do_disconnect(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

        for response in self.buffer.clear():
            response.delivered.cancel()

    def _do_send(self, message: RequestMessage) -> None:
        """Replay a buffered response for this event, if there is one."""
        response = self.buffer.pop_first(message.event)
        if response is None:
            return

        logger.debug(f"Replaying buffered response for {message.event!r}")
        loop = asyncio.get_running_loop()
        timer: asyncio.TimerHandle | None = None

        def fire() -> None:
            self._timers.discard(timer)
            self._replay(response)

        timer = loop.call_later(self.config.fallback_delay, fire)
        self._timers.add(timer)

    def _replay(self, response: BufferedResponse) -> None:
        try:
            # May buffer again if the handler was removed during the delay
            self.deliver(response.event, response.error, response.data)
        finally:
            if not response.delivered.done():
                response.delivered.set_result(None)

    def deliver(self, event: str, error: Any = None, data: Any = None) -> asyncio.Future[None]:
        """Play the peer: deliver a response for ``event``.

        Returns:
            Future completed once a handler has received the response. If a
            handler raises, the future carries the exception.
        """
        delivered: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        try:
            matched = self._dispatcher is not None and self._dispatcher.dispatch_event(
                event, error, data
            )
        except Exception as e:
            logger.exception(f"Handler failed for {event!r}")
            delivered.set_exception(e)
            return delivered

        if matched:
            delivered.set_result(None)
        else:
            logger.debug(f"No handler for {event!r}, buffering response")
            self.buffer.push(BufferedResponse(event, error, data, delivered))
        return delivered

    async def _receive_messages(self) -> AsyncIterator[ResponseMessage]:
        """No inbound stream; responses arrive through deliver().

        Parks until disconnect() cancels the reader.
        """
        await asyncio.get_running_loop().create_future()
        yield  # Make this a generator
