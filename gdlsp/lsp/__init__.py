from .diagnostics import decode_publish_diagnostics, severity_from_protocol
from .diagnostics_client import DiagnosticsClient
from .json_rpc import LspMessageParser, encode_lsp_message, make_notification, make_request
from .types import ConnectionStatus, Diagnostic, DiagnosticSeverity

__all__ = [
    "ConnectionStatus",
    "Diagnostic",
    "DiagnosticSeverity",
    "DiagnosticsClient",
    "LspMessageParser",
    "decode_publish_diagnostics",
    "encode_lsp_message",
    "make_notification",
    "make_request",
    "severity_from_protocol",
]
