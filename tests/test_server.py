"""
Tests for the MCP server: registry, dispatch and JSON-RPC handling.

Uses the real tool set in stub mode, built the same way main() builds it.
"""

from __future__ import annotations

import pytest
from pydantic import BaseModel

from agent_toolbox.config import ToolboxConfig
from agent_toolbox.main import build_server
from agent_toolbox.mcp_base import ErrorCodes, MCPServer, MCPTool, ToolResult


class BrokenParams(BaseModel):
    pass


class BrokenTool(MCPTool[BrokenParams]):
    """Escapes its own error boundary."""

    name = "broken"
    description = "Always raises from execute"

    async def run(self, params: BrokenParams) -> ToolResult:
        raise AssertionError("unreachable")

    async def execute(self, arguments=None) -> ToolResult:
        raise RuntimeError("kaboom")


@pytest.fixture()
async def server():
    srv = build_server(ToolboxConfig(capability_mode="stub"))
    yield srv
    await srv.aclose()


def _request(method: str, params: dict | None = None, request_id: int = 1) -> dict:
    msg = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        msg["params"] = params
    return msg


# ─── Registry ────────────────────────────────────────────────────────────────


async def test_lists_five_tools(server: MCPServer) -> None:
    definitions = server.list_tools()

    assert [d.name for d in definitions] == [
        "screenshot",
        "ui_inspect",
        "performance_monitor",
        "file_watcher",
        "screen_control",
    ]
    assert all(d.input_schema["type"] == "object" for d in definitions)


async def test_duplicate_registration_rejected(server: MCPServer) -> None:
    with pytest.raises(ValueError, match="already registered"):
        server.register(server.get_tool("screenshot"))


async def test_unknown_tool_is_error_result(server: MCPServer) -> None:
    result = await server.call_tool("does_not_exist", {})
    assert result.is_error is True
    assert result.text == "Unknown tool: does_not_exist"


async def test_escaping_exception_is_wrapped() -> None:
    srv = MCPServer(name="t", version="0", tools=[BrokenTool()])
    result = await srv.call_tool("broken", {})
    assert result.is_error is True
    assert result.text == "Error executing tool broken: kaboom"


async def test_call_tool_dispatches(server: MCPServer) -> None:
    result = await server.call_tool("screen_control", {"action": "move_mouse", "x": 0, "y": 0})
    assert result.is_error is False
    assert "Moved mouse to (0, 0)" in result.text


# ─── JSON-RPC ────────────────────────────────────────────────────────────────


async def test_initialize(server: MCPServer) -> None:
    response = await server.handle_request(_request("initialize", {}))

    result = response["result"]
    assert result["protocolVersion"] == "2024-11-05"
    assert result["serverInfo"] == {"name": "ai-agent-toolbox", "version": "1.0.0"}
    assert "tools" in result["capabilities"]


async def test_tools_list(server: MCPServer) -> None:
    response = await server.handle_request(_request("tools/list"))

    tools = response["result"]["tools"]
    assert len(tools) == 5
    assert all({"name", "description", "inputSchema"} <= set(t) for t in tools)


async def test_tools_call_wire_format(server: MCPServer) -> None:
    response = await server.handle_request(
        _request("tools/call", {"name": "ui_inspect", "arguments": {"target": "Notes"}}, 7)
    )

    assert response["id"] == 7
    result = response["result"]
    assert result["isError"] is False
    assert result["content"][0]["type"] == "text"


async def test_tools_call_image_wire_format(server: MCPServer) -> None:
    response = await server.handle_request(
        _request("tools/call", {"name": "screenshot", "arguments": {"target": "screen"}})
    )
    image = response["result"]["content"][0]
    assert image["type"] == "image"
    assert image["mimeType"] == "image/png"
    assert "text" not in image


async def test_tools_call_unknown_tool(server: MCPServer) -> None:
    """Unknown tools come back as an error result, not a protocol error."""
    response = await server.handle_request(
        _request("tools/call", {"name": "nope", "arguments": {}})
    )
    assert response["result"]["isError"] is True
    assert response["result"]["content"][0]["text"] == "Unknown tool: nope"


async def test_tools_call_non_object_arguments(server: MCPServer) -> None:
    response = await server.handle_request(
        _request("tools/call", {"name": "screenshot", "arguments": [1, 2]})
    )
    assert response["error"]["code"] == ErrorCodes.INVALID_PARAMS


async def test_tools_call_missing_name(server: MCPServer) -> None:
    response = await server.handle_request(_request("tools/call", {"arguments": {}}))
    assert response["error"]["code"] == ErrorCodes.INVALID_PARAMS


async def test_ping(server: MCPServer) -> None:
    response = await server.handle_request(_request("ping"))
    assert response == {"jsonrpc": "2.0", "id": 1, "result": {}}


async def test_unknown_method(server: MCPServer) -> None:
    response = await server.handle_request(_request("resources/list"))
    assert response["error"]["code"] == ErrorCodes.METHOD_NOT_FOUND


async def test_notification_gets_no_response(server: MCPServer) -> None:
    response = await server.handle_request(
        {"jsonrpc": "2.0", "method": "notifications/initialized"}
    )
    assert response is None


async def test_invalid_request(server: MCPServer) -> None:
    response = await server.handle_request({"jsonrpc": "1.0", "id": 3, "method": "ping"})
    assert response["id"] == 3
    assert response["error"]["code"] == ErrorCodes.INVALID_REQUEST


async def test_aclose_closes_watchers(server: MCPServer, tmp_dir) -> None:
    await server.call_tool("file_watcher", {"action": "start", "path": str(tmp_dir), "duration": 0})
    watcher = server.get_tool("file_watcher")
    assert len(watcher.manager) == 1

    await server.aclose()

    assert len(watcher.manager) == 0
