"""Error types and the process-wide error sink.

Remote failures are never raised as faults on their own. They reach callers
as values: the error argument of a persistent handler, or the exception of a
one-shot future. The ErrorSink is the single cross-cutting observation point.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[Any], None]


def is_error_payload(error: Any) -> bool:
    """True if ``error`` marks a failed response.

    Only the empty JSON scalars mean success: null, false, 0, NaN and "".
    Any other value is an error, including an empty object or array.
    """
    if error is None or isinstance(error, bool):
        return bool(error)
    if isinstance(error, (int, float)):
        return error != 0 and error == error
    if isinstance(error, str):
        return error != ""
    return True


class IpcError(Exception):
    """Base class for all app-ipc errors."""


class RemoteError(IpcError):
    """Error payload reported by the remote side for a correlation id.

    The raw payload is kept on ``error`` so callers can inspect structured
    errors (dicts, codes) without parsing the message.
    """

    def __init__(self, error: Any, correlation_id: str | None = None):
        super().__init__(str(error))
        self.error = error
        self.correlation_id = correlation_id

    @classmethod
    def wrap(cls, error: Any, correlation_id: str | None = None) -> BaseException:
        """Return an exception for a delivered error payload."""
        if isinstance(error, BaseException):
            return error
        return cls(error, correlation_id)


class TransportError(IpcError, ConnectionError):
    """Base class for transport failures."""


class TransportNotConnectedError(TransportError):
    """Raised when sending through a transport that is not connected."""


class TransportClosedError(TransportError):
    """Set on one-shot futures still outstanding when the client closes."""


def _noop(error: Any) -> None:
    return None


class ErrorSink:
    """Single replaceable slot for the global error handler.

    Exactly one handler is active at any time; the default ignores errors.
    The sink is called synchronously from the dispatcher. Exceptions raised
    by a handler propagate to whoever triggered the dispatch, so handlers
    must not raise.
    """

    def __init__(self, handler: ErrorHandler | None = None):
        self._handler: ErrorHandler = handler or _noop

    @property
    def handler(self) -> ErrorHandler:
        return self._handler

    def set(self, handler: ErrorHandler | None) -> None:
        """Replace the active handler (None restores the no-op)."""
        self._handler = handler or _noop

    def reset(self) -> None:
        self._handler = _noop

    def __call__(self, error: Any) -> None:
        logger.debug(f"Error sink invoked: {error!r}")
        self._handler(error)
