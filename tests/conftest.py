"""Shared fixtures for gdlsp tests."""

from __future__ import annotations

from typing import Any

import pytest
from PySide6.QtCore import QCoreApplication
from PySide6.QtNetwork import QAbstractSocket

from gdlsp.lsp.json_rpc import LspMessageParser, encode_lsp_message

SocketState = QAbstractSocket.SocketState
SocketError = QAbstractSocket.SocketError


@pytest.fixture(scope="session", autouse=True)
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


class FakeSocket:
    """Stands in for QTcpSocket; tests drive its state and inbound bytes by hand."""

    def __init__(self, *, state_after_connect: SocketState = SocketState.ConnectingState) -> None:
        self.state_after_connect = state_after_connect
        self._state = SocketState.UnconnectedState
        self._error = SocketError.UnknownSocketError
        self.incoming = bytearray()
        self.outgoing = bytearray()
        self.connected_to: tuple[str, int] | None = None
        self.aborted = False
        self.fail_writes = False

    def connectToHost(self, host: str, port: int) -> None:
        self.connected_to = (host, port)
        self._state = self.state_after_connect
        if self.state_after_connect == SocketState.UnconnectedState:
            self._error = SocketError.ConnectionRefusedError

    def state(self) -> SocketState:
        return self._state

    def error(self) -> SocketError:
        return self._error

    def errorString(self) -> str:
        return "fake socket error" if self._error != SocketError.UnknownSocketError else ""

    def bytesAvailable(self) -> int:
        return len(self.incoming)

    def read(self, max_size: int) -> bytes:
        chunk = bytes(self.incoming[:max_size])
        del self.incoming[:max_size]
        return chunk

    def write(self, data: bytes) -> int:
        if self.fail_writes:
            return -1
        self.outgoing.extend(data)
        return len(data)

    def abort(self) -> None:
        self.aborted = True
        self._state = SocketState.UnconnectedState

    # Test helpers

    def set_connected(self) -> None:
        self._state = SocketState.ConnectedState

    def set_failed(self, error: SocketError = SocketError.RemoteHostClosedError) -> None:
        self._state = SocketState.UnconnectedState
        self._error = error

    def push(self, payload: dict[str, Any]) -> None:
        self.incoming.extend(encode_lsp_message(payload))

    def push_raw(self, data: bytes) -> None:
        self.incoming.extend(data)

    def sent_messages(self) -> list[dict[str, Any]]:
        return LspMessageParser().feed(bytes(self.outgoing))


@pytest.fixture
def sockets() -> list[FakeSocket]:
    return []


@pytest.fixture
def socket_factory(sockets):
    def _factory() -> FakeSocket:
        sock = FakeSocket()
        sockets.append(sock)
        return sock

    return _factory


@pytest.fixture
def refused_socket_factory(sockets):
    def _factory() -> FakeSocket:
        sock = FakeSocket(state_after_connect=SocketState.UnconnectedState)
        sockets.append(sock)
        return sock

    return _factory
