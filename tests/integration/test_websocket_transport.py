"""Integration tests for the WebSocket transport against a local server."""

import asyncio
import json

import pytest
import websockets

from app_ipc import IpcConfig, RemoteError, create_client
from app_ipc.transport import WebSocketTransport

pytestmark = pytest.mark.integration


async def peer(ws):
    """Echo peer: "echo" returns args[0], "tick" pushes twice, else error."""
    async for raw in ws:
        request = json.loads(raw)
        args = request["args"]
        if request["event"] == "echo":
            replies = [(None, args[0] if args else None)]
        elif request["event"] == "tick":
            replies = [(None, 1), (None, 2)]
        else:
            replies = [("unsupported", None)]
        for error, data in replies:
            await ws.send(json.dumps({"id": request["id"], "__error": error, "data": data}))


@pytest.fixture
def serve_peer():
    async def start():
        server = await websockets.serve(peer, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        return server, f"ws://127.0.0.1:{port}"

    return start


class TestWebSocketTransport:
    """Round trips over a real WebSocket connection."""

    @pytest.mark.asyncio
    async def test_round_trip(self, serve_peer):
        server, url = await serve_peer()
        try:
            async with create_client(IpcConfig(url=url)) as client:
                assert isinstance(client.transport, WebSocketTransport)

                result = await asyncio.wait_for(client.request_once("echo", [1, 2]), 5)

                assert result == [1, 2]
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_error_and_stream(self, serve_peer):
        server, url = await serve_peer()
        try:
            async with create_client(IpcConfig(url=url)) as client:
                with pytest.raises(RemoteError, match="unsupported"):
                    await asyncio.wait_for(client.request_once("nope"), 5)

                ticks: asyncio.Queue = asyncio.Queue()
                client.request_callback("tick", handler=lambda e, d: ticks.put_nowait(d))

                assert await asyncio.wait_for(ticks.get(), 5) == 1
                assert await asyncio.wait_for(ticks.get(), 5) == 2
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_missing_url(self):
        with pytest.raises(ConnectionError):
            await WebSocketTransport(IpcConfig(mode="websocket")).connect()
