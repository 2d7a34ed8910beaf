"""Tests for line framing and message classification."""

from __future__ import annotations

import json

import pytest

from agent_toolbox import json_rpc


def test_parse_line_blank_is_skipped() -> None:
    assert json_rpc.parse_line(b"   \n") is None


def test_parse_line_decodes_json() -> None:
    assert json_rpc.parse_line(b'{"jsonrpc":"2.0","id":1,"method":"ping"}\n') == {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "ping",
    }


def test_parse_line_invalid_json() -> None:
    with pytest.raises(json_rpc.ParseError, match="Invalid JSON"):
        json_rpc.parse_line(b"{not json\n")


def test_parse_line_invalid_utf8() -> None:
    with pytest.raises(json_rpc.ParseError, match="Invalid UTF-8"):
        json_rpc.parse_line(b"\xff\xfe\n")


def test_encode_is_one_line() -> None:
    line = json_rpc.encode(json_rpc.success_response(1, {"text": "a\nb"}))
    assert line.endswith("\n")
    assert line.count("\n") == 1
    assert json.loads(line)["result"]["text"] == "a\nb"


def test_request_id_rejects_bool_and_missing() -> None:
    assert json_rpc.request_id({"id": "abc"}) == "abc"
    assert json_rpc.request_id({"id": 0}) == 0
    assert json_rpc.request_id({"id": True}) is None
    assert json_rpc.request_id({}) is None
    assert json_rpc.request_id([1]) is None


def test_error_response_without_data() -> None:
    response = json_rpc.error_response(None, -32700, "Invalid JSON")
    assert response == {"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Invalid JSON"}}


def test_classification() -> None:
    assert json_rpc.is_notification({"jsonrpc": "2.0", "method": "notifications/initialized"})
    assert not json_rpc.is_notification({"jsonrpc": "2.0", "id": 1, "method": "ping"})
    assert json_rpc.is_valid_request({"jsonrpc": "2.0", "id": 1, "method": "ping"})
    assert not json_rpc.is_valid_request({"jsonrpc": "2.0", "id": None, "method": "ping"})
    assert not json_rpc.is_valid_request({"jsonrpc": "2.0", "id": 1, "method": 5})
