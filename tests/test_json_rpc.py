"""Tests for Content-Length framing and JSON-RPC envelopes."""

from __future__ import annotations

import json

from gdlsp.lsp.json_rpc import (
    LspMessageParser,
    PendingRequests,
    RequestIdCounter,
    encode_lsp_message,
    make_notification,
    make_request,
)


class TestEncode:
    def test_exact_wire_bytes(self):
        raw = encode_lsp_message({"method": "foo", "params": {"x": 1}})
        assert raw == b'Content-Length: 33\r\n\r\n{"method":"foo","params":{"x":1}}'

    def test_length_counts_utf8_bytes(self):
        raw = encode_lsp_message({"message": "é"})
        header, body = raw.split(b"\r\n\r\n", 1)
        assert header == f"Content-Length: {len(body)}".encode("ascii")
        assert len(body) == len('{"message":"é"}'.encode("utf-8"))


class TestEnvelopes:
    def test_request_carries_id(self):
        request = make_request("initialize", {"rootPath": "/proj"}, 0)
        assert request == {"jsonrpc": "2.0", "id": 0, "method": "initialize", "params": {"rootPath": "/proj"}}

    def test_notification_has_no_id(self):
        notification = make_notification("initialized", {})
        assert "id" not in notification
        assert notification["method"] == "initialized"
        assert notification["params"] == {}

    def test_notification_default_params(self):
        assert make_notification("exit")["params"] == {}

    def test_ids_are_monotonic(self):
        ids = RequestIdCounter()
        assert [ids.next_id() for _ in range(5)] == [0, 1, 2, 3, 4]
        assert ids.next_id() == 5


class TestPendingRequests:
    def test_resolve_runs_handler_once(self):
        seen = []
        pending = PendingRequests()
        pending.add(0, "initialize", seen.append)
        assert 0 in pending

        assert pending.resolve({"id": 0, "result": {}}) is True
        assert seen == [{"id": 0, "result": {}}]
        assert pending.resolve({"id": 0, "result": {}}) is False
        assert len(pending) == 0

    def test_unknown_ids_are_not_resolved(self):
        pending = PendingRequests()
        pending.add(0, "initialize", lambda _msg: None)
        assert pending.resolve({"id": 7}) is False
        assert pending.resolve({"id": True}) is False
        assert pending.resolve({"result": None}) is False
        assert len(pending) == 1


class TestParser:
    def test_round_trip(self):
        payload = {"jsonrpc": "2.0", "method": "textDocument/didOpen", "params": {"textDocument": {"uri": "file:///a.gd"}}}
        assert LspMessageParser().feed(encode_lsp_message(payload)) == [payload]

    def test_byte_at_a_time(self):
        payload = {"id": 0, "result": {"capabilities": {}}}
        raw = encode_lsp_message(payload)
        parser = LspMessageParser()
        out = []
        for index in range(len(raw)):
            out.extend(parser.feed(raw[index:index + 1]))
            if index < len(raw) - 1:
                assert out == []
        assert out == [payload]
        assert parser.pending_bytes() == 0

    def test_several_frames_in_one_chunk(self):
        first = {"method": "a", "params": {}}
        second = {"method": "b", "params": {"n": 2}}
        raw = encode_lsp_message(first) + encode_lsp_message(second)
        assert LspMessageParser().feed(raw) == [first, second]

    def test_body_split_across_feeds_keeps_expected_length(self):
        payload = {"method": "textDocument/publishDiagnostics", "params": {"uri": "file:///x.gd", "diagnostics": []}}
        raw = encode_lsp_message(payload)
        header_end = raw.index(b"\r\n\r\n") + 4
        parser = LspMessageParser()
        assert parser.feed(raw[: header_end + 5]) == []
        assert parser.pending_bytes() == 5
        assert parser.feed(raw[header_end + 5:]) == [payload]

    def test_next_message_returns_none_until_complete(self):
        raw = encode_lsp_message({"method": "ping", "params": {}})
        parser = LspMessageParser()
        parser.push(raw[:-1])
        assert parser.next_message() is None
        assert parser.pending_bytes() == len(raw) - 1
        parser.push(raw[-1:])
        assert parser.next_message() == {"method": "ping", "params": {}}
        assert parser.next_message() is None

    def test_malformed_header_is_reported_and_skipped(self):
        errors = []
        parser = LspMessageParser(on_error=errors.append)
        good = {"method": "ok", "params": {}}
        out = parser.feed(b"Content-Type: text\r\n\r\n" + encode_lsp_message(good))
        assert out == [good]
        assert len(errors) == 1
        assert "header" in errors[0].lower()

    def test_non_numeric_length_is_reported(self):
        errors = []
        parser = LspMessageParser(on_error=errors.append)
        assert parser.feed(b"Content-Length: abc\r\n\r\n") == []
        assert errors

    def test_invalid_json_is_dropped(self):
        errors = []
        parser = LspMessageParser(on_error=errors.append)
        body = b"{not json"
        good = {"method": "after", "params": {}}
        raw = b"Content-Length: %d\r\n\r\n" % len(body) + body + encode_lsp_message(good)
        assert parser.feed(raw) == [good]
        assert len(errors) == 1

    def test_empty_object_is_an_error(self):
        errors = []
        parser = LspMessageParser(on_error=errors.append)
        assert parser.feed(encode_lsp_message({})) == []
        assert errors == ["Received an empty message body."]

    def test_non_object_is_an_error(self):
        errors = []
        parser = LspMessageParser(on_error=errors.append)
        body = json.dumps([1, 2]).encode("utf-8")
        assert parser.feed(b"Content-Length: %d\r\n\r\n" % len(body) + body) == []
        assert "list" in errors[0]

    def test_extra_header_fields_are_tolerated(self):
        body = b'{"method":"x"}'
        raw = b"Content-Length: %d\r\nContent-Type: application/vscode-jsonrpc\r\n\r\n" % len(body) + body
        assert LspMessageParser().feed(raw) == [{"method": "x"}]

    def test_reset_drops_partial_frame(self):
        parser = LspMessageParser()
        parser.feed(b"Content-Length: 10\r\n\r\n{\"a\"")
        parser.reset()
        assert parser.pending_bytes() == 0
        assert parser.feed(encode_lsp_message({"method": "y"})) == [{"method": "y"}]
