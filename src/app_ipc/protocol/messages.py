"""Message envelopes exchanged with the peer process.

Requests go out on the "request" channel and carry a correlation id, the
event name and the positional arguments. Responses come back on the
"response" channel with the same id and either an error or data.

Example (request):
    {"channel": "request", "id": "req_3f2a...", "event": "ping", "args": [{"x": 1}]}

Example (success):
    {"channel": "response", "id": "req_3f2a...", "__error": null, "data": {"x": 1}}

Example (failure):
    {"channel": "response", "id": "req_3f2a...", "__error": "boom", "data": null}
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..errors import is_error_payload


class Channel(str, Enum):
    """Channels used on the wire."""

    REQUEST = "request"
    RESPONSE = "response"


def new_correlation_id() -> str:
    """Generate a correlation id, unique for the life of the process."""
    return f"req_{uuid.uuid4().hex}"


class RequestMessage(BaseModel):
    """A request from this process to the peer."""

    channel: Literal["request"] = "request"
    id: str = Field(default_factory=new_correlation_id)
    event: str
    args: list[Any] = Field(default_factory=list)

    @classmethod
    def create(
        cls,
        event: str,
        args: list[Any] | tuple[Any, ...] | None = None,
        correlation_id: str | None = None,
    ) -> RequestMessage:
        """Factory method for creating requests."""
        return cls(
            id=correlation_id or new_correlation_id(),
            event=event,
            args=list(args or []),
        )

    def to_line(self) -> str:
        """Serialize as a single JSON line (newline included)."""
        return self.model_dump_json() + "\n"


class ResponseMessage(BaseModel):
    """A response (or push) from the peer.

    The error field travels as ``__error`` on the wire.
    """

    model_config = ConfigDict(populate_by_name=True)

    channel: Literal["response"] = "response"
    id: str
    error: Any = Field(default=None, alias="__error")
    data: Any = None

    def is_error(self) -> bool:
        return is_error_payload(self.error)

    @classmethod
    def success(cls, correlation_id: str, data: Any = None) -> ResponseMessage:
        return cls(id=correlation_id, data=data)

    @classmethod
    def failure(cls, correlation_id: str, error: Any) -> ResponseMessage:
        return cls(id=correlation_id, error=error)

    @classmethod
    def from_json(cls, raw: str | bytes) -> ResponseMessage:
        """Parse a wire frame. Raises pydantic.ValidationError on bad input."""
        return cls.model_validate_json(raw)

    def to_line(self) -> str:
        return self.model_dump_json(by_alias=True) + "\n"
