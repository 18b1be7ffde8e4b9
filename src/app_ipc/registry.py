"""Correlation registry - pending handlers keyed by correlation id."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Node-style callback: fn(error, data)
ResponseHandler = Callable[[Any, Any], None]


@dataclass
class PendingHandler:
    """A handler waiting for responses to one correlation id."""

    id: str
    event: str
    fn: ResponseHandler

    def __call__(self, error: Any, data: Any) -> None:
        self.fn(error, data)


class CorrelationRegistry:
    """Mapping from correlation id to pending handler.

    Many handlers may share an event name, but there is never more than one
    handler per id. Registering an existing id replaces the old entry.

    Not synchronized: all access happens on the event loop thread.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, PendingHandler] = {}

    def register(self, id: str, event: str, fn: ResponseHandler) -> PendingHandler:
        """Insert a handler, replacing any entry with the same id.

        A replaced id keeps its position in iteration order.
        """
        handler = PendingHandler(id=id, event=event, fn=fn)
        self._handlers[id] = handler
        logger.debug(f"Registered handler {id} for {event!r}")
        return handler

    def get(self, id: str) -> PendingHandler | None:
        return self._handlers.get(id)

    def find_first_by_event(self, event: str) -> PendingHandler | None:
        """First handler registered for ``event``, in insertion order."""
        for handler in self._handlers.values():
            if handler.event == event:
                return handler
        return None

    def remove_by_id(self, id: str) -> None:
        if self._handlers.pop(id, None) is not None:
            logger.debug(f"Removed handler {id}")

    def remove_all_by_event(self, event: str) -> int:
        """Remove every handler registered for ``event``.

        Returns:
            Number of handlers removed
        """
        ids = [h.id for h in self._handlers.values() if h.event == event]
        for id in ids:
            del self._handlers[id]
        if ids:
            logger.debug(f"Removed {len(ids)} handler(s) for {event!r}")
        return len(ids)

    def snapshot(self) -> dict[str, PendingHandler]:
        """Shallow copy of the current contents (diagnostics only)."""
        return dict(self._handlers)

    def clear(self) -> None:
        self._handlers.clear()

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, id: object) -> bool:
        return id in self._handlers

    def __iter__(self) -> Iterator[PendingHandler]:
        return iter(list(self._handlers.values()))
