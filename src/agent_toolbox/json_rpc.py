"""
Line-delimited JSON-RPC 2.0 framing for the stdio transport.

One message per line. The server decodes lines with parse_line, classifies
them, and writes back dicts built by success_response / error_response.
"""

from __future__ import annotations

import json
from typing import Any

RequestId = str | int


class ParseError(ValueError):
    """A line that is not valid UTF-8 JSON."""


def parse_line(raw: bytes) -> Any | None:
    """Decode one transport line; blank lines yield None."""
    try:
        text = raw.decode("utf-8").strip()
    except UnicodeDecodeError as exc:
        raise ParseError(f"Invalid UTF-8: {exc}") from exc
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON: {exc.msg}") from exc


def encode(message: dict[str, Any]) -> str:
    return json.dumps(message, separators=(",", ":")) + "\n"


def request_id(msg: Any) -> RequestId | None:
    """The id of a message if it has a usable one."""
    if isinstance(msg, dict):
        value = msg.get("id")
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return value
    return None


def success_response(req_id: RequestId, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


def error_response(
    req_id: RequestId | None,
    code: int,
    message: str,
    data: Any = None,
) -> dict[str, Any]:
    """Error response; req_id is None when the request could not be read."""
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": req_id, "error": error}


def is_notification(msg: Any) -> bool:
    """A message with a method but no id never gets a response."""
    return isinstance(msg, dict) and isinstance(msg.get("method"), str) and "id" not in msg


def is_valid_request(msg: Any) -> bool:
    return (
        isinstance(msg, dict)
        and msg.get("jsonrpc") == "2.0"
        and isinstance(msg.get("method"), str)
        and request_id(msg) is not None
    )
