"""Inbound dispatch - routes responses to pending handlers.

Two matching strategies, selected by the active transport:

- dispatch(): exact match on correlation id. Used by real transports.
  Unmatched messages are dropped, since persistent handlers may have been
  removed on purpose.
- dispatch_event(): first handler registered for the event name. Used only
  by the fallback transport, which buffers unmatched responses itself.

Transports also report here when their inbound stream ends for good
(connection_lost), so owners of pending requests can fail them.

Event matching is looser than id matching: when several outstanding
requests share an event name, a response can reach a different logical
call than the one it was meant for.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .errors import ErrorSink, is_error_payload
from .protocol.messages import ResponseMessage
from .registry import CorrelationRegistry, PendingHandler

logger = logging.getLogger(__name__)


class Dispatcher:
    """Resolves inbound messages against the registry."""

    def __init__(self, registry: CorrelationRegistry, error_sink: ErrorSink):
        self.registry = registry
        self.error_sink = error_sink
        self._close_listeners: list[Callable[[str], None]] = []

    def dispatch(self, correlation_id: str, error: Any = None, data: Any = None) -> bool:
        """Deliver a response by correlation id.

        Returns:
            True if a handler received the message
        """
        handler = self.registry.get(correlation_id)
        if handler is None:
            logger.debug(f"No handler for {correlation_id}, dropping response")
            return False
        self._invoke(handler, error, data)
        return True

    def dispatch_message(self, message: ResponseMessage) -> bool:
        return self.dispatch(message.id, message.error, message.data)

    def dispatch_event(self, event: str, error: Any = None, data: Any = None) -> bool:
        """Deliver a response to the first handler registered for ``event``."""
        handler = self.registry.find_first_by_event(event)
        if handler is None:
            return False
        self._invoke(handler, error, data)
        return True

    def add_close_listener(self, listener: Callable[[str], None]) -> None:
        self._close_listeners.append(listener)

    def connection_lost(self, reason: str) -> None:
        """Called by a transport whose inbound stream ended unexpectedly."""
        logger.debug(f"Connection lost: {reason}")
        for listener in list(self._close_listeners):
            listener(reason)

    def _invoke(self, handler: PendingHandler, error: Any, data: Any) -> None:
        if is_error_payload(error):
            self.error_sink(error)
        handler(error, data)
