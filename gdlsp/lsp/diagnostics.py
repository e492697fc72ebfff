"""Decode ``textDocument/publishDiagnostics`` pushes into Diagnostic records."""

from __future__ import annotations

import math
from typing import Any, Callable

from .types import Diagnostic, DiagnosticSeverity

PUBLISH_DIAGNOSTICS = "textDocument/publishDiagnostics"

# Protocol severities are 1-based (Error=1 .. Hint=4).
_PROTOCOL_SEVERITY_OFFSET = 1
_DEFAULT_PROTOCOL_SEVERITY = 2


def decode_publish_diagnostics(
    params_obj: object,
    uri_to_resource: Callable[[str], str],
) -> list[Diagnostic]:
    params = params_obj if isinstance(params_obj, dict) else {}
    entries = params.get("diagnostics")
    if not isinstance(entries, list) or not entries:
        return []

    resource = uri_to_resource(str(params.get("uri") or ""))
    out: list[Diagnostic] = []
    for item in entries:
        if not isinstance(item, dict):
            continue
        rng = item.get("range") if isinstance(item.get("range"), dict) else {}
        start = rng.get("start") if isinstance(rng.get("start"), dict) else {}
        out.append(
            Diagnostic(
                resource=resource,
                message=str(item.get("message") or ""),
                severity=severity_from_protocol(item.get("severity")),
                line=_as_int(start.get("line")),
                column=_as_int(start.get("character")),
            )
        )
    return out


def severity_from_protocol(value: object) -> DiagnosticSeverity:
    """Map a 1-based protocol severity to the 0-based domain severity.

    A missing or non-numeric value reads as a warning; anything outside 1..4,
    infinities included, is clamped to the nearest end.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        value = _DEFAULT_PROTOCOL_SEVERITY
    low = DiagnosticSeverity.ERROR + _PROTOCOL_SEVERITY_OFFSET
    high = DiagnosticSeverity.HINT + _PROTOCOL_SEVERITY_OFFSET
    # Clamp before int() so that +-Infinity lands on hint/error.
    value = max(low, min(high, value))
    return DiagnosticSeverity(int(value) - _PROTOCOL_SEVERITY_OFFSET)


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return 0
