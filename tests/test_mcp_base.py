"""Tests for the result envelope, error taxonomy and tool base class."""

from __future__ import annotations

import json
from typing import Literal

import pytest
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from agent_toolbox.mcp_base import (
    CapabilityError,
    ContentItem,
    DuplicateWatchError,
    ErrorCodes,
    MCPTool,
    NotFoundError,
    PlatformUnsupportedError,
    ToolResult,
    ValidationError,
)


class EchoParams(BaseModel):
    message: str = Field(description="Text to echo back")
    mode: Literal["plain", "fail", "crash"] = "plain"
    repeat: int = Field(default=1, ge=1)


class EchoTool(MCPTool[EchoParams]):
    name = "echo"
    description = "Echo a message"
    error_prefix = "Echo failed"

    async def run(self, params: EchoParams) -> ToolResult:
        if params.mode == "fail":
            raise NotFoundError("nothing to echo")
        if params.mode == "crash":
            raise ZeroDivisionError("division by zero")
        return ToolResult.from_text(params.message * params.repeat)


@pytest.fixture()
def tool() -> EchoTool:
    return EchoTool()


# ─── ToolResult ──────────────────────────────────────────────────────────────


def test_error_result_requires_text() -> None:
    with pytest.raises(PydanticValidationError):
        ToolResult(content=[], is_error=True)


def test_image_item_requires_mime_type() -> None:
    with pytest.raises(PydanticValidationError):
        ContentItem(type="image", data="AAAA")


def test_text_item_requires_text() -> None:
    with pytest.raises(PydanticValidationError):
        ContentItem(type="text")


def test_from_json_and_wire_format() -> None:
    result = ToolResult.from_json({"a": 1})

    assert json.loads(result.text) == {"a": 1}
    assert result.to_dict() == {
        "content": [{"type": "text", "text": '{\n  "a": 1\n}'}],
        "isError": False,
    }


def test_from_error_defaults_message() -> None:
    result = ToolResult.from_error("")
    assert result.is_error is True
    assert result.text == "Unknown error occurred"


# ─── Errors ──────────────────────────────────────────────────────────────────


def test_error_codes() -> None:
    assert ValidationError("x").code == ErrorCodes.INVALID_PARAMS
    assert NotFoundError("x").code == -32003
    assert DuplicateWatchError("x").code == -32005
    assert CapabilityError("x").code == -32006
    assert PlatformUnsupportedError("x").code == -32007
    assert CapabilityError("x", code=-1).code == -1


def test_validation_error_from_violations() -> None:
    exc = ValidationError.from_violations(["a: required", "b: too small"])
    assert str(exc) == "Invalid arguments: a: required; b: too small"
    assert exc.violations == ["a: required", "b: too small"]


# ─── MCPTool ─────────────────────────────────────────────────────────────────


async def test_execute_success(tool: EchoTool) -> None:
    result = await tool.execute({"message": "hi", "repeat": 2})
    assert result.is_error is False
    assert result.text == "hihi"


async def test_execute_validation_failure(tool: EchoTool) -> None:
    """Should never raise; violations become an error result."""
    result = await tool.execute({"repeat": 0})

    assert result.is_error is True
    assert result.text.startswith("Echo failed: Invalid arguments: ")
    assert "message: Field required" in result.text
    assert "repeat: Input should be greater than or equal to 1" in result.text


async def test_execute_non_mapping_arguments(tool: EchoTool) -> None:
    result = await tool.execute(["not", "a", "dict"])  # type: ignore[arg-type]
    assert result.is_error is True
    assert "arguments must be an object" in result.text


async def test_execute_wraps_mcp_error(tool: EchoTool) -> None:
    result = await tool.execute({"message": "x", "mode": "fail"})
    assert result.is_error is True
    assert result.text == "Echo failed: nothing to echo"


async def test_execute_wraps_unexpected_error(tool: EchoTool) -> None:
    result = await tool.execute({"message": "x", "mode": "crash"})
    assert result.is_error is True
    assert result.text == "Echo failed: division by zero"


def test_definition_is_stable(tool: EchoTool) -> None:
    first = tool.definition
    assert tool.definition is first
    assert first.to_dict()["inputSchema"]["required"] == ["message"]
    assert "title" not in first.input_schema
    with pytest.raises(PydanticValidationError):
        first.name = "renamed"  # type: ignore[misc]
