"""Diagnostics client for the Godot GDScript language server over TCP."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator

from PySide6.QtCore import QObject, Signal

from gdlsp.services.file_io import read_text
from gdlsp.services.paths import ProjectPaths
from gdlsp.settings import JsonSettingsStore

from .connection import LspTcpConnection, SocketFactory
from .diagnostics import PUBLISH_DIAGNOSTICS, decode_publish_diagnostics
from .json_rpc import make_notification
from .poll_loop import PollLoop
from .types import ConnectionStatus

GDSCRIPT_LANGUAGE_ID = "gdscript"


class DiagnosticsClient(QObject):
    """Connects, handshakes and turns diagnostics pushes into ``Diagnostic`` lists.

    Processing (socket polling) is reference counted: ``connect_to_server``
    takes one activation which the initialize response releases. Callers that
    expect diagnostics must hold their own activation (``enable_processing`` /
    ``disable_processing`` or ``processing_lease``) until they arrive.
    """

    connected = Signal()
    initialized = Signal()
    diagnosticsPublished = Signal(str, object)  # uri, list[Diagnostic]
    disconnected = Signal()
    statusMessage = Signal(str)
    debugMessage = Signal(str)
    errorMessage = Signal(str)

    def __init__(
        self,
        *,
        settings: JsonSettingsStore | None = None,
        paths: ProjectPaths | None = None,
        read_file: Callable[[str], str] = read_text,
        socket_factory: SocketFactory | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._settings = settings or JsonSettingsStore(None)
        self._paths = paths or ProjectPaths(self._settings.project_root())
        self._read_file = read_file
        server = self._settings.language_server()
        self._debug_enabled = bool(server.get("log_traffic", False))

        self._connection = LspTcpConnection(
            socket_factory=socket_factory,
            socket_parent=self,
            on_connected=self.connected.emit,
            on_initialize_response=self._on_initialize_response,
            on_info=self.statusMessage.emit,
            on_debug=self._log_debug,
            on_error=self.errorMessage.emit,
        )
        self._poll = PollLoop(self._on_tick, interval_ms=int(server["poll_interval_ms"]), parent=self)

        self._handshake_lease_held = False
        self._initialized = False
        self._queued_messages: list[dict[str, Any]] = []
        self._doc_versions: dict[str, int] = {}
        self.server_capabilities: dict[str, Any] = {}

    @property
    def paths(self) -> ProjectPaths:
        return self._paths

    @property
    def status(self) -> ConnectionStatus:
        return self._connection.status

    def set_debug(self, enabled: bool) -> None:
        self._debug_enabled = bool(enabled)

    def is_connected(self) -> bool:
        return self._connection.status == ConnectionStatus.CONNECTED

    def is_initialized(self) -> bool:
        return self._initialized and self.is_connected()

    def processing_count(self) -> int:
        return self._poll.count

    def is_processing(self) -> bool:
        return self._poll.is_active()

    # ---------- Public API ----------

    def connect_to_server(self, host: str | None = None, port: int | None = None) -> bool:
        server = self._settings.language_server()
        target_host = str(host or server["remote_host"])
        target_port = int(port or server["remote_port"])

        self._initialized = False
        self._queued_messages.clear()
        self.server_capabilities = {}
        ok = self._connection.open(
            target_host,
            target_port,
            root_path=self._paths.project_root,
            root_uri=self._paths.root_uri(),
        )
        # A failed connect still polls: the next tick observes the failure and tears down.
        self._release_handshake_lease()
        self._handshake_lease_held = True
        self.enable_processing()
        return ok

    def disconnect_from_server(self) -> None:
        had_socket = self._connection.socket is not None
        self._release_handshake_lease()
        self._poll.stop()
        self._connection.close()
        self._initialized = False
        self._queued_messages.clear()
        if had_socket:
            self.disconnected.emit()

    def enable_processing(self) -> None:
        self._poll.enable()

    def disable_processing(self) -> None:
        self._poll.disable()

    @contextmanager
    def processing_lease(self) -> Iterator[DiagnosticsClient]:
        with self._poll.lease():
            yield self

    def request_diagnostics(self, path: str) -> bool:
        """Send didOpen + didClose for ``path`` so the server publishes its diagnostics."""
        local_path = self._paths.localize(path)
        try:
            text = self._read_file(local_path)
        except (OSError, UnicodeDecodeError) as exc:
            self.errorMessage.emit(f"Could not read '{path}': {exc}")
            return False

        uri = self._paths.path_to_uri(local_path)
        version = self._doc_versions.get(uri, 0) + 1
        self._doc_versions[uri] = version
        self._send_or_queue(
            make_notification(
                "textDocument/didOpen",
                {
                    "textDocument": {
                        "uri": uri,
                        "text": text,
                        "languageId": GDSCRIPT_LANGUAGE_ID,
                        "version": version,
                    }
                },
            )
        )
        self._send_or_queue(make_notification("textDocument/didClose", {"textDocument": {"uri": uri}}))
        return True

    # ---------- Tick / dispatch ----------

    def _on_tick(self) -> bool:
        if self._connection.socket is None:
            # Explicitly disconnected; caller activations outlived the socket.
            return False
        if not self._connection.poll():
            self._connection.close()
            self._initialized = False
            self._queued_messages.clear()
            self._release_handshake_lease()
            self.disconnected.emit()
            return False
        for message in self._connection.read_available():
            try:
                self._dispatch(message)
            except Exception as exc:
                self.errorMessage.emit(f"Dropped message {message.get('method') or message.get('id')!r}: {exc}")
        return True

    def _dispatch(self, message: dict[str, Any]) -> None:
        method = message.get("method")
        if method == PUBLISH_DIAGNOSTICS:
            params = message.get("params")
            uri = str(params.get("uri") or "") if isinstance(params, dict) else ""
            diagnostics = decode_publish_diagnostics(params, self._paths.uri_to_resource)
            self.diagnosticsPublished.emit(uri, diagnostics)
            return
        if method is None and self._connection.pending.resolve(message):
            return
        self._log_debug(f"Ignoring message {method or message.get('id')!r}")

    def _on_initialize_response(self, message: dict[str, Any]) -> None:
        if "error" in message:
            self.errorMessage.emit(f"Language server initialize failed: {message.get('error')}")
        result = message.get("result")
        caps = result.get("capabilities") if isinstance(result, dict) else None
        self.server_capabilities = caps if isinstance(caps, dict) else {}
        self._connection.send(make_notification("initialized", {}))
        self._initialized = True
        self.statusMessage.emit("Language server initialized")
        self._flush_queued_messages()
        self.initialized.emit()
        self._release_handshake_lease()

    def _send_or_queue(self, payload: dict[str, Any]) -> None:
        if not self.is_initialized():
            self._queued_messages.append(payload)
            return
        self._connection.send(payload)

    def _flush_queued_messages(self) -> None:
        queued = list(self._queued_messages)
        self._queued_messages.clear()
        for payload in queued:
            self._connection.send(payload)

    def _release_handshake_lease(self) -> None:
        if self._handshake_lease_held:
            self._handshake_lease_held = False
            self.disable_processing()

    def _log_debug(self, text: str) -> None:
        if self._debug_enabled:
            self.debugMessage.emit(text)
