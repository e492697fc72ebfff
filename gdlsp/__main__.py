"""Print GDScript diagnostics reported by a running Godot editor.

Usage: python -m gdlsp [--project DIR] [--host HOST] [--port PORT]
                       [--settings FILE] [--timeout SECONDS] [--debug] FILE...
"""

from __future__ import annotations

import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QTimer

from gdlsp.lsp.diagnostics_client import DiagnosticsClient
from gdlsp.lsp.types import DiagnosticSeverity
from gdlsp.services.paths import ProjectPaths
from gdlsp.settings import JsonSettingsStore

EXIT_OK = 0
EXIT_DIAGNOSTIC_ERRORS = 1
EXIT_FAILURE = 2

_VALUE_OPTIONS = {"--project", "--host", "--port", "--settings", "--timeout"}
_DEFAULT_TIMEOUT_S = 10.0


class UsageError(ValueError):
    pass


def _split_cli_args(argv: list[str]) -> tuple[dict[str, str], bool, list[str]]:
    options: dict[str, str] = {}
    debug = False
    files: list[str] = []
    index = 0
    while index < len(argv):
        arg = argv[index]
        if arg == "--debug":
            debug = True
        elif arg in _VALUE_OPTIONS:
            if index + 1 >= len(argv):
                raise UsageError(f"{arg} expects a value")
            options[arg[2:]] = argv[index + 1]
            index += 1
        elif arg.startswith("--"):
            raise UsageError(f"Unknown option {arg}")
        else:
            files.append(arg)
        index += 1
    if not files:
        raise UsageError("No files given")
    return options, debug, files


def _load_settings(options: dict[str, str]) -> JsonSettingsStore:
    store = JsonSettingsStore(options.get("settings") or None)
    store.load()
    if store.last_error:
        print(f"warning: {store.last_error}", file=sys.stderr)
    if "host" in options:
        store.set("language_server.remote_host", options["host"])
    if "port" in options:
        try:
            store.set("language_server.remote_port", int(options["port"]))
        except ValueError as exc:
            raise UsageError(f"Invalid port {options['port']!r}") from exc
    if "project" in options:
        store.set("project.root", options["project"])
    return store


def run(argv: list[str]) -> int:
    try:
        options, debug, files = _split_cli_args(argv)
        settings = _load_settings(options)
        timeout_s = float(options.get("timeout", _DEFAULT_TIMEOUT_S))
    except (UsageError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        print(__doc__.strip().splitlines()[2], file=sys.stderr)
        return EXIT_FAILURE

    app = QCoreApplication.instance() or QCoreApplication([sys.argv[0]])
    paths = ProjectPaths(settings.project_root() or str(Path.cwd()))
    client = DiagnosticsClient(settings=settings, paths=paths)
    client.set_debug(debug or bool(settings.language_server().get("log_traffic", False)))
    client.statusMessage.connect(lambda text: print(f"[info] {text}", file=sys.stderr))
    client.debugMessage.connect(lambda text: print(f"[debug] {text}", file=sys.stderr))
    client.errorMessage.connect(lambda text: print(f"[error] {text}", file=sys.stderr))

    outstanding = {paths.uri_to_resource(paths.path_to_uri(path)): path for path in files}
    state = {"exit_code": EXIT_OK}

    def _finish(code: int) -> None:
        if code > state["exit_code"]:
            state["exit_code"] = code
        QTimer.singleShot(0, app.quit)

    def _on_initialized() -> None:
        for resource, path in list(outstanding.items()):
            client.enable_processing()
            if not client.request_diagnostics(path):
                client.disable_processing()
                outstanding.pop(resource, None)
                state["exit_code"] = EXIT_FAILURE
        if not outstanding:
            _finish(state["exit_code"])

    def _on_diagnostics(uri: str, diagnostics: list) -> None:
        resource = paths.uri_to_resource(uri)
        if resource not in outstanding:
            return
        outstanding.pop(resource)
        for item in diagnostics:
            print(f"{item.resource}:{item.line + 1}:{item.column + 1}: {item.severity.label}: {item.message}")
            if item.severity == DiagnosticSeverity.ERROR:
                state["exit_code"] = max(state["exit_code"], EXIT_DIAGNOSTIC_ERRORS)
        client.disable_processing()
        if not outstanding:
            client.disconnect_from_server()

    def _on_disconnected() -> None:
        _finish(EXIT_FAILURE if outstanding else state["exit_code"])

    def _on_timeout() -> None:
        print(f"error: timed out waiting for diagnostics after {timeout_s:g}s", file=sys.stderr)
        client.disconnect_from_server()
        _finish(EXIT_FAILURE)

    client.initialized.connect(_on_initialized)
    client.diagnosticsPublished.connect(_on_diagnostics)
    client.disconnected.connect(_on_disconnected)
    QTimer.singleShot(int(timeout_s * 1000), _on_timeout)

    client.connect_to_server()
    app.exec()
    return state["exit_code"]


def main() -> None:
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
