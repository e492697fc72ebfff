"""JSON-RPC framing and envelope helpers for the language-server TCP transport."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable

JSONRPC_VERSION = "2.0"
HEADER_TERMINATOR = b"\r\n\r\n"
CONTENT_LENGTH = "Content-Length"

ErrorCallback = Callable[[str], None]
ResponseHandler = Callable[[dict[str, Any]], None]


def encode_lsp_message(payload: dict[str, Any]) -> bytes:
    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    header = f"{CONTENT_LENGTH}: {len(body)}\r\n\r\n".encode("ascii")
    return header + body


def make_request(method: str, params: dict[str, Any] | None, request_id: int) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": int(request_id),
        "method": str(method or ""),
        "params": params if isinstance(params, dict) else {},
    }


def make_notification(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "method": str(method or ""),
        "params": params if isinstance(params, dict) else {},
    }


class RequestIdCounter:
    """Monotonic request ids starting at 0; an id is never handed out twice."""

    def __init__(self) -> None:
        self._next = 0

    def next_id(self) -> int:
        request_id = self._next
        self._next += 1
        return request_id


@dataclass
class _PendingRequest:
    method: str
    on_result: ResponseHandler


class PendingRequests:
    """Maps issued request ids to the handler expecting their response."""

    def __init__(self) -> None:
        self._pending: dict[int, _PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return _coerce_id(request_id) in self._pending

    def add(self, request_id: int, method: str, on_result: ResponseHandler) -> None:
        self._pending[int(request_id)] = _PendingRequest(method=str(method or ""), on_result=on_result)

    def resolve(self, message: dict[str, Any]) -> bool:
        """Run and drop the handler registered for ``message['id']``."""
        pending = self._pending.pop(_coerce_id(message.get("id")), None)
        if pending is None:
            return False
        pending.on_result(message)
        return True

    def clear(self) -> None:
        self._pending.clear()


def _coerce_id(raw_id: object) -> int | None:
    # bool is an int subclass; `true` is not a valid id.
    if isinstance(raw_id, bool):
        return None
    if isinstance(raw_id, int):
        return raw_id
    if isinstance(raw_id, str) and raw_id.strip().isdigit():
        return int(raw_id.strip())
    return None


class LspMessageParser:
    """Incremental parser for `Content-Length` framed messages.

    Bytes may arrive in arbitrary chunks. A frame whose header or body is not
    complete yet stays buffered until the next ``feed``; the parser keeps the
    expected body length between calls so nothing is re-scanned.
    """

    def __init__(self, on_error: ErrorCallback | None = None) -> None:
        self._buffer = bytearray()
        self._expected_length: int | None = None
        self._on_error = on_error

    def reset(self) -> None:
        self._buffer.clear()
        self._expected_length = None

    def pending_bytes(self) -> int:
        return len(self._buffer)

    def push(self, data: bytes | bytearray) -> None:
        """Buffer ``data`` without decoding anything."""
        if data:
            self._buffer.extend(data)

    def feed(self, data: bytes | bytearray) -> list[dict[str, Any]]:
        self.push(data)
        messages: list[dict[str, Any]] = []
        while True:
            message = self.next_message()
            if message is None:
                break
            messages.append(message)
        return messages

    def next_message(self) -> dict[str, Any] | None:
        """Return the next complete payload, skipping frames that fail to decode."""
        while True:
            progressed, message = self._decode_frame()
            if not progressed:
                return None
            if message is not None:
                return message

    def _decode_frame(self) -> tuple[bool, dict[str, Any] | None]:
        # Returns (consumed_a_frame, payload); payload is None for a dropped frame.
        if self._expected_length is None:
            header_end = self._buffer.find(HEADER_TERMINATOR)
            if header_end < 0:
                return False, None

            header_blob = bytes(self._buffer[:header_end])
            del self._buffer[: header_end + len(HEADER_TERMINATOR)]
            self._expected_length = self._parse_content_length(header_blob)
            if self._expected_length is None:
                self._report(f"Malformed message header: {header_blob[:80]!r}")
                return True, None

        if len(self._buffer) < self._expected_length:
            return False, None

        body = bytes(self._buffer[: self._expected_length])
        del self._buffer[: self._expected_length]
        self._expected_length = None
        return True, self._decode_body(body)

    def _decode_body(self, body: bytes) -> dict[str, Any] | None:
        try:
            decoded = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            self._report(f"Could not parse message body: {exc}")
            return None
        if not decoded:
            self._report("Received an empty message body.")
            return None
        if not isinstance(decoded, dict):
            self._report(f"Expected a JSON object, got {type(decoded).__name__}.")
            return None
        return decoded

    def _report(self, text: str) -> None:
        if callable(self._on_error):
            self._on_error(text)

    @staticmethod
    def _parse_content_length(header_blob: bytes) -> int | None:
        header_text = header_blob.decode("ascii", errors="ignore")

        for raw_line in header_text.split("\r\n"):
            line = raw_line.strip()
            if not line.startswith(CONTENT_LENGTH):
                continue
            value = line[len(CONTENT_LENGTH):].strip()
            if value.startswith(":"):
                value = value[1:].strip()
            try:
                content_length = int(value)
            except ValueError:
                return None
            return content_length if content_length >= 0 else None
        return None
