"""TCP connection state machine for the GDScript language server."""

from __future__ import annotations

from typing import Any, Callable

from PySide6.QtCore import QObject
from PySide6.QtNetwork import QAbstractSocket, QTcpSocket

from .json_rpc import LspMessageParser, PendingRequests, RequestIdCounter, encode_lsp_message, make_request
from .types import ConnectionStatus

LogCallback = Callable[[str], None]
SocketFactory = Callable[[], Any]

_CONNECTING_STATES = {
    QAbstractSocket.SocketState.HostLookupState,
    QAbstractSocket.SocketState.ConnectingState,
}


def _noop(_text: str) -> None:
    return None


def status_from_socket(socket: Any) -> ConnectionStatus:
    if socket is None:
        return ConnectionStatus.NONE
    state = socket.state()
    if state == QAbstractSocket.SocketState.ConnectedState:
        return ConnectionStatus.CONNECTED
    if state in _CONNECTING_STATES:
        return ConnectionStatus.CONNECTING
    if state == QAbstractSocket.SocketState.UnconnectedState:
        if socket.error() != QAbstractSocket.SocketError.UnknownSocketError:
            return ConnectionStatus.ERROR
    return ConnectionStatus.NONE


class LspTcpConnection:
    """Owns one socket and runs the connect/initialize transitions.

    ``poll`` is called once per tick. It refreshes the status and, on the
    first observation of CONNECTED, sends the ``initialize`` request. The
    response is routed through ``pending`` by the owner's dispatcher.
    """

    def __init__(
        self,
        *,
        socket_factory: SocketFactory | None = None,
        socket_parent: QObject | None = None,
        on_connected: Callable[[], None] | None = None,
        on_initialize_response: Callable[[dict[str, Any]], None] | None = None,
        on_info: LogCallback | None = None,
        on_debug: LogCallback | None = None,
        on_error: LogCallback | None = None,
    ) -> None:
        self._socket_factory = socket_factory or (lambda: QTcpSocket(socket_parent))
        self._on_connected = on_connected
        self._on_initialize_response = on_initialize_response
        self._info = on_info or _noop
        self._debug = on_debug or _noop
        self._error = on_error or _noop

        self._socket: Any = None
        self.status = ConnectionStatus.NONE
        self.ids = RequestIdCounter()
        self.pending = PendingRequests()
        self.parser = LspMessageParser(on_error=self._error)
        self.initialize_sent = False
        self.root_path = ""
        self.root_uri = ""

    @property
    def socket(self) -> Any:
        return self._socket

    def open(self, host: str, port: int, *, root_path: str = "", root_uri: str = "") -> bool:
        self._reset_socket()
        self.status = ConnectionStatus.NONE
        self.ids = RequestIdCounter()
        self.pending.clear()
        self.parser.reset()
        self.initialize_sent = False
        self.root_path = str(root_path or "")
        self.root_uri = str(root_uri or "")

        self._socket = self._socket_factory()
        self._info(f"Connecting to language server at {host}:{port}")
        self._socket.connectToHost(str(host), int(port))
        self.status = status_from_socket(self._socket)
        if self.status in {ConnectionStatus.NONE, ConnectionStatus.ERROR}:
            self._error(f"Could not connect to {host}:{port}: {self._socket.errorString()}")
            return False
        return True

    def close(self) -> None:
        self._info("Disconnecting from language server")
        self._reset_socket()
        self.status = ConnectionStatus.NONE

    def poll(self) -> bool:
        previous = self.status
        self.status = status_from_socket(self._socket)
        if self.status != previous:
            self._debug(f"Connection status {previous.value} -> {self.status.value}")

        if self.status == ConnectionStatus.CONNECTED:
            if previous != ConnectionStatus.CONNECTED and not self.initialize_sent:
                self._info("Connected to language server")
                if callable(self._on_connected):
                    self._on_connected()
                self._send_initialize()
            return True
        if self.status == ConnectionStatus.CONNECTING:
            return True

        if self.status == ConnectionStatus.ERROR and self._socket is not None:
            self._error(f"Language server connection error: {self._socket.errorString()}")
        else:
            self._error("Language server connection closed")
        return False

    def read_available(self) -> list[dict[str, Any]]:
        """Decode whatever the socket has buffered right now; never waits for more."""
        if self._socket is None:
            return []
        messages: list[dict[str, Any]] = []
        while True:
            available = int(self._socket.bytesAvailable())
            if available <= 0:
                break
            chunk = bytes(self._socket.read(available))
            if not chunk:
                self._error(f"Socket read failed: {self._socket.errorString()}")
                break
            messages.extend(self.parser.feed(chunk))
        for message in messages:
            self._debug(f"<-- {_describe(message)}")
        return messages

    def send(self, payload: dict[str, Any]) -> bool:
        if self._socket is None or self.status != ConnectionStatus.CONNECTED:
            self._error(f"Cannot send {_describe(payload)}: not connected")
            return False
        written = int(self._socket.write(encode_lsp_message(payload)))
        if written < 0:
            self._error(f"Socket write failed: {self._socket.errorString()}")
            return False
        self._debug(f"--> {_describe(payload)}")
        return True

    def _send_initialize(self) -> None:
        request_id = self.ids.next_id()
        if callable(self._on_initialize_response):
            self.pending.add(request_id, "initialize", self._on_initialize_response)
        params = {
            "processId": None,
            "rootPath": self.root_path,
            "rootUri": self.root_uri,
            "capabilities": {
                "textDocument": {
                    "publishDiagnostics": {},
                },
            },
        }
        self.initialize_sent = True
        self.send(make_request("initialize", params, request_id))

    def _reset_socket(self) -> None:
        socket = self._socket
        self._socket = None
        if socket is None:
            return
        socket.abort()
        if hasattr(socket, "deleteLater"):
            socket.deleteLater()


def _describe(payload: dict[str, Any]) -> str:
    method = payload.get("method")
    if "id" in payload:
        return f"{method or 'response'} (id={payload.get('id')})"
    return str(method or "<no method>")
