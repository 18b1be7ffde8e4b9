"""Wire envelopes for the request/response channel.

Key concepts:
- Requests: this process -> peer, each with a fresh correlation id
- Responses: peer -> this process, tagged with the id of the request
- Persistent requests may receive many responses with the same id
"""

from .messages import Channel, RequestMessage, ResponseMessage, new_correlation_id

__all__ = [
    "Channel",
    "RequestMessage",
    "ResponseMessage",
    "new_correlation_id",
]
