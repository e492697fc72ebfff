"""File read helpers."""

from __future__ import annotations

from pathlib import Path


def read_text(path: str, *, encoding: str = "utf-8", errors: str = "strict") -> str:
    return Path(path).read_text(encoding=encoding, errors=errors)
