"""Small dataclasses/enums shared by the diagnostics client."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any


class DiagnosticSeverity(IntEnum):
    ERROR = 0
    WARNING = 1
    INFORMATION = 2
    HINT = 3

    @property
    def label(self) -> str:
        return self.name.lower()


class ConnectionStatus(Enum):
    NONE = "none"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    resource: str
    message: str
    severity: DiagnosticSeverity
    line: int
    column: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource": self.resource,
            "message": self.message,
            "severity": self.severity.label,
            "line": self.line,
            "column": self.column,
        }
