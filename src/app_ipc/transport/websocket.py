"""Transport over a WebSocket connection.

One JSON text frame per message, same envelopes as the stdio transport.
Sends are scheduled as tasks so send() stays fire-and-forget.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

import websockets

from ..config import IpcConfig
from ..errors import TransportNotConnectedError
from ..protocol.messages import RequestMessage, ResponseMessage
from .base import BaseTransport

logger = logging.getLogger(__name__)


class WebSocketTransport(BaseTransport):
    """Full-duplex transport to a peer listening on a WebSocket URL."""

    def __init__(self, config: IpcConfig | None = None):
        super().__init__(config or IpcConfig(mode="websocket"))
        self._ws: Any = None  # websockets ClientConnection
        self._send_tasks: set[asyncio.Task[None]] = set()

    async def _do_connect(self) -> None:
        if not self.config.url:
            raise ValueError("No peer URL configured")

        self._ws = await websockets.connect(
            self.config.url,
            ping_interval=30,
            ping_timeout=10,
        )
        logger.info(f"WebSocket connected to {self.config.url}")

    async def _do_disconnect(self) -> None:
        for task in list(self._send_tasks):
            task.cancel()
        self._send_tasks.clear()

        if self._ws:
            await self._ws.close()
            self._ws = None

    def _do_send(self, message: RequestMessage) -> None:
        if not self._ws:
            raise TransportNotConnectedError("WebSocket not connected")

        task = asyncio.create_task(self._ws.send(message.model_dump_json()))
        self._send_tasks.add(task)
        task.add_done_callback(self._on_send_done)

    def _on_send_done(self, task: asyncio.Task[None]) -> None:
        self._send_tasks.discard(task)
        if task.cancelled():
            return
        if (exc := task.exception()) is not None:
            logger.error(f"WebSocket send failed: {exc}")

    async def _receive_messages(self) -> AsyncIterator[ResponseMessage]:
        if not self._ws:
            raise TransportNotConnectedError("WebSocket not connected")

        async for data in self._ws:
            message = self._parse(data)
            if message is not None:
                yield message
        logger.info("WebSocket closed by peer")
