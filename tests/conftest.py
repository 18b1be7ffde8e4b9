"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path
from typing import Any

import pytest

from app_ipc import CorrelationRegistry, Dispatcher, ErrorSink, IpcClient
from app_ipc.errors import TransportNotConnectedError

ECHO_PEER = Path(__file__).parent / "integration" / "echo_peer.py"


class RecordingTransport:
    """In-memory transport that records sends and lets tests play the peer.

    Always connected unless disconnect() is called, so tests can use a
    client without an event loop dance.
    """

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str, list[Any]]] = []
        self.dispatcher: Dispatcher | None = None
        self.connected = True
        self.fail_sends = False

    @property
    def is_connected(self) -> bool:
        return self.connected

    def bind(self, dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    def send(self, channel: str, id: str, event: str, args: Any) -> None:
        if not self.connected:
            raise TransportNotConnectedError("not connected")
        if self.fail_sends:
            raise ConnectionError("pipe broken")
        self.sent.append((channel, id, event, list(args)))

    @property
    def last_id(self) -> str:
        return self.sent[-1][1]

    def respond(self, id: str, error: Any = None, data: Any = None) -> bool:
        assert self.dispatcher is not None
        return self.dispatcher.dispatch(id, error, data)


@pytest.fixture
def registry():
    return CorrelationRegistry()


@pytest.fixture
def error_sink():
    return ErrorSink()


@pytest.fixture
def dispatcher(registry, error_sink):
    return Dispatcher(registry, error_sink)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def client(transport):
    return IpcClient(transport)


@pytest.fixture
def peer_command():
    """Command line launching the echo peer used by integration tests."""
    return [sys.executable, "-u", str(ECHO_PEER)]
