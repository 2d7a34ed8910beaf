"""
MCP Server Base Classes

Shared foundation for the agent toolbox. Implements the result envelope,
the error taxonomy, the tool base class and the server that registers
tools and speaks JSON-RPC 2.0 over stdio.

Usage:
    from agent_toolbox.mcp_base import MCPServer, MCPTool, ToolResult, MCPError
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from abc import ABC, abstractmethod
from collections.abc import Mapping
from functools import cached_property
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from agent_toolbox import json_rpc
from agent_toolbox.validation import validate_arguments

_logger = logging.getLogger("agent_toolbox.mcp_base")

PROTOCOL_VERSION = "2024-11-05"

# ─── Type Variables ──────────────────────────────────────────────────────────

TParams = TypeVar("TParams", bound=BaseModel)

CapabilityMode = Literal["real", "stub"]

# ─── Result Types ────────────────────────────────────────────────────────────


class ContentItem(BaseModel):
    """One item of a tool result: text, base64 image or resource."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["text", "image", "resource"]
    text: str | None = None
    data: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")
    resource: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _check_payload(self) -> ContentItem:
        if self.type == "text" and self.text is None:
            raise ValueError("text content requires 'text'")
        if self.type == "image" and (not self.data or not self.mime_type):
            raise ValueError("image content requires base64 'data' and a 'mimeType'")
        if self.type == "resource" and self.resource is None:
            raise ValueError("resource content requires 'resource'")
        return self


class ToolResult(BaseModel):
    """Result returned by a tool execution."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[ContentItem] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    @model_validator(mode="after")
    def _check_diagnostic(self) -> ToolResult:
        if self.is_error and not any(item.type == "text" and item.text for item in self.content):
            raise ValueError("error results must carry a text diagnostic")
        return self

    @classmethod
    def from_text(cls, text: str) -> ToolResult:
        return cls(content=[ContentItem(type="text", text=text)])

    @classmethod
    def from_json(cls, payload: Any) -> ToolResult:
        return cls.from_text(json.dumps(payload, indent=2, default=str))

    @classmethod
    def from_error(cls, message: str) -> ToolResult:
        return cls(
            content=[ContentItem(type="text", text=message or "Unknown error occurred")],
            is_error=True,
        )

    @property
    def text(self) -> str:
        """All text items joined by newlines."""
        return "\n".join(item.text for item in self.content if item.type == "text" and item.text)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ToolDefinition(BaseModel):
    """Name, description and input schema advertised for a tool."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(alias="inputSchema")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# ─── Errors ──────────────────────────────────────────────────────────────────


class ErrorCodes:
    """Standard MCP error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    # Custom codes for the toolbox
    NOT_FOUND = -32003
    DUPLICATE_WATCH = -32005
    CAPABILITY_FAILED = -32006
    PLATFORM_UNSUPPORTED = -32007


class MCPError(Exception):
    """Structured error for MCP tool failures."""

    default_code: int = ErrorCodes.INTERNAL_ERROR

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = self.default_code if code is None else code


class ValidationError(MCPError):
    """Missing or malformed argument."""

    default_code = ErrorCodes.INVALID_PARAMS

    def __init__(self, message: str, violations: list[str] | None = None) -> None:
        super().__init__(message)
        self.violations = list(violations or [message])

    @classmethod
    def from_violations(cls, violations: list[str]) -> ValidationError:
        return cls("Invalid arguments: " + "; ".join(violations), violations)


class NotFoundError(MCPError):
    """Unknown tool name, watch id or element path."""

    default_code = ErrorCodes.NOT_FOUND


class DuplicateWatchError(MCPError):
    """A watch session with the requested id already exists."""

    default_code = ErrorCodes.DUPLICATE_WATCH


class CapabilityError(MCPError):
    """An OS command or library call behind a tool failed."""

    default_code = ErrorCodes.CAPABILITY_FAILED


class PlatformUnsupportedError(MCPError):
    """The requested action is not implemented for this operating system."""

    default_code = ErrorCodes.PLATFORM_UNSUPPORTED


# ─── Tool Base Class ─────────────────────────────────────────────────────────


class MCPTool(ABC, Generic[TParams]):
    """
    Abstract base class for toolbox tools.

    Every tool must define:
    - name: the name clients call it by (e.g., 'screenshot')
    - description: for the LLM
    - Params type: pydantic BaseModel, doubles as the advertised input schema
    - error_prefix: prepended to diagnostics of failed calls
    - run(): the implementation, free to raise MCPError subclasses

    execute() is the public entry point; it validates arguments and turns
    every failure into an error ToolResult, so it never raises.
    """

    name: str = ""
    description: str = ""
    error_prefix: str = "Tool execution failed"

    def __init__(self, capability_mode: CapabilityMode = "real") -> None:
        self.capability_mode: CapabilityMode = capability_mode

    @abstractmethod
    async def run(self, params: TParams) -> ToolResult:
        """Execute the tool with validated parameters."""
        ...

    async def execute(self, arguments: Mapping[str, Any] | None = None) -> ToolResult:
        """Validate arguments, run the tool and wrap any failure."""
        params, violations = validate_arguments(self.get_params_model(), arguments)
        try:
            if violations or params is None:
                raise ValidationError.from_violations(violations)
            return await self.run(params)
        except MCPError as exc:
            _logger.warning("%s failed: %s", self.name, exc)
            return ToolResult.from_error(f"{self.error_prefix}: {exc}")
        except Exception as exc:  # noqa: BLE001
            _logger.exception("%s raised an unexpected error", self.name)
            return ToolResult.from_error(f"{self.error_prefix}: {exc}")

    async def close(self) -> None:
        """Release resources held by the tool. Called on server shutdown."""

    def get_params_model(self) -> type[BaseModel]:
        """Get the Pydantic model class for params validation."""
        # Extract from Generic type args
        for base in type(self).__orig_bases__:  # type: ignore[attr-defined]
            if hasattr(base, "__args__") and len(base.__args__) >= 1:
                return base.__args__[0]
        raise TypeError(f"Tool {self.name} must specify Generic params type")

    def get_input_schema(self) -> dict[str, Any]:
        """Generate JSON Schema from the Pydantic params model."""
        schema = self.get_params_model().model_json_schema()
        schema.pop("title", None)
        schema.setdefault("required", [])
        return schema

    @cached_property
    def definition(self) -> ToolDefinition:
        """The MCP tool definition; built once per instance."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.get_input_schema(),
        )


# ─── MCP Server ──────────────────────────────────────────────────────────────


class MCPServer:
    """
    Tool registry and dispatcher.

    Registers tools, answers tools/list and tools/call over JSON-RPC on
    stdio, and guarantees that every tool call ends in a well-formed
    ToolResult.

    Usage:
        server = MCPServer(
            name="ai-agent-toolbox",
            version="1.0.0",
            tools=[ScreenshotTool(), FileWatcherTool()],
        )
        server.start()
    """

    def __init__(self, name: str, version: str, tools: list[MCPTool[Any]]) -> None:
        self.name = name
        self.version = version
        self.tools: dict[str, MCPTool[Any]] = {}

        for tool in tools:
            self.register(tool)

    # ── Registry ────────────────────────────────────────────────────────────

    def register(self, tool: MCPTool[Any]) -> None:
        if tool.name in self.tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self.tools[tool.name] = tool

    def get_tool(self, name: str) -> MCPTool[Any]:
        tool = self.tools.get(name)
        if tool is None:
            raise NotFoundError(f"Unknown tool: {name}")
        return tool

    def list_tools(self) -> list[ToolDefinition]:
        return [tool.definition for tool in self.tools.values()]

    async def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolResult:
        """Invoke a tool by name; unknown names and stray exceptions become error results."""
        try:
            tool = self.get_tool(name)
        except NotFoundError as exc:
            _logger.warning("%s", exc)
            return ToolResult.from_error(str(exc))

        try:
            return await tool.execute(arguments or {})
        except Exception as exc:  # noqa: BLE001
            _logger.exception("Tool %s escaped its error boundary", name)
            return ToolResult.from_error(f"Error executing tool {name}: {exc}")

    async def aclose(self) -> None:
        """Close every registered tool."""
        for tool in self.tools.values():
            try:
                await tool.close()
            except Exception:  # noqa: BLE001
                _logger.exception("Failed to close tool %s", tool.name)

    # ── Transport ───────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the JSON-RPC listener on stdio (blocking)."""
        asyncio.run(self._run())

    async def _run(self) -> None:
        """Main event loop: read stdin, dispatch, write stdout."""
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        await asyncio.get_running_loop().connect_read_pipe(lambda: protocol, sys.stdin)
        _logger.info("%s %s listening on stdio (%d tools)", self.name, self.version, len(self.tools))

        try:
            while True:
                line = await reader.readline()
                if not line:
                    break  # stdin closed

                try:
                    request = json_rpc.parse_line(line)
                except json_rpc.ParseError as exc:
                    self._write(json_rpc.error_response(None, ErrorCodes.PARSE_ERROR, str(exc)))
                    continue
                if request is None:
                    continue

                response = await self.handle_request(request)
                if response is not None:
                    self._write(response)
        finally:
            await self.aclose()

    @staticmethod
    def _write(message: dict[str, Any]) -> None:
        sys.stdout.write(json_rpc.encode(message))
        sys.stdout.flush()

    def _build_init_result(self) -> dict[str, Any]:
        """Build the initialization result payload."""
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": self.name, "version": self.version},
        }

    async def handle_request(self, request: Any) -> dict[str, Any] | None:
        """Dispatch one JSON-RPC message; notifications return None."""
        if json_rpc.is_notification(request):
            _logger.debug("Notification received: %s", request["method"])
            return None

        if not json_rpc.is_valid_request(request):
            return json_rpc.error_response(
                json_rpc.request_id(request), ErrorCodes.INVALID_REQUEST, "Invalid request"
            )

        method = request["method"]
        request_id = request["id"]

        if method == "initialize":
            return json_rpc.success_response(request_id, self._build_init_result())

        if method == "tools/list":
            tool_defs = [definition.to_dict() for definition in self.list_tools()]
            return json_rpc.success_response(request_id, {"tools": tool_defs})

        if method == "tools/call":
            return await self._handle_tool_call(request_id, request.get("params"))

        if method == "ping":
            return json_rpc.success_response(request_id, {})

        return json_rpc.error_response(
            request_id, ErrorCodes.METHOD_NOT_FOUND, f"Unknown method: {method}"
        )

    async def _handle_tool_call(self, request_id: str | int, params: Any) -> dict[str, Any]:
        """Handle a tools/call request."""
        if not isinstance(params, dict) or not isinstance(params.get("name"), str):
            return json_rpc.error_response(
                request_id, ErrorCodes.INVALID_PARAMS, "tools/call requires a string 'name'"
            )

        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            return json_rpc.error_response(
                request_id, ErrorCodes.INVALID_PARAMS, "'arguments' must be an object"
            )

        result = await self.call_tool(params["name"], arguments)
        return json_rpc.success_response(request_id, result.to_dict())
