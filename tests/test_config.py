"""Tests for configuration loading and argument validation helpers."""

from __future__ import annotations

import os

import pytest
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from agent_toolbox.config import ToolboxConfig
from agent_toolbox.main import build_server
from agent_toolbox.validation import (
    missing_fields,
    normalize_path,
    validate_arguments,
)


class SampleParams(BaseModel):
    name: str
    count: int = Field(default=1, ge=0)
    tag: str | None = None


# ─── Config ──────────────────────────────────────────────────────────────────


def test_defaults() -> None:
    config = ToolboxConfig.from_env({})
    assert config.capability_mode == "real"
    assert config.command_timeout == 30.0
    assert config.log_level == "INFO"
    assert config.mode_for("screenshot") == "real"


def test_from_env() -> None:
    config = ToolboxConfig.from_env(
        {
            "AGENT_TOOLBOX_CAPABILITY_MODE": "STUB",
            "AGENT_TOOLBOX_SCREEN_CONTROL_MODE": "real",
            "AGENT_TOOLBOX_COMMAND_TIMEOUT": "5",
            "AGENT_TOOLBOX_LOG_LEVEL": "debug",
        }
    )
    assert config.capability_mode == "stub"
    assert config.mode_for("screenshot") == "stub"
    assert config.mode_for("screen_control") == "real"
    assert config.command_timeout == 5.0
    assert config.log_level == "DEBUG"


def test_invalid_mode_rejected() -> None:
    with pytest.raises(PydanticValidationError):
        ToolboxConfig.from_env({"AGENT_TOOLBOX_CAPABILITY_MODE": "fake"})


def test_invalid_timeout_rejected() -> None:
    with pytest.raises(PydanticValidationError):
        ToolboxConfig.from_env({"AGENT_TOOLBOX_COMMAND_TIMEOUT": "0"})


def test_build_server_applies_modes() -> None:
    config = ToolboxConfig(capability_mode="stub", tool_modes={"ui_inspect": "real"})
    server = build_server(config)

    assert server.get_tool("screenshot").capability_mode == "stub"
    assert server.get_tool("ui_inspect").capability_mode == "real"


# ─── Validation ──────────────────────────────────────────────────────────────


def test_validate_arguments_success() -> None:
    params, violations = validate_arguments(SampleParams, {"name": "a", "count": "3", "extra": 1})
    assert violations == []
    assert params is not None
    assert params.count == 3


def test_validate_arguments_none_is_empty() -> None:
    params, violations = validate_arguments(SampleParams, None)
    assert params is None
    assert violations == ["name: Field required"]


def test_validate_arguments_nested_location() -> None:
    class Outer(BaseModel):
        inner: SampleParams

    _, violations = validate_arguments(Outer, {"inner": {"name": "x", "count": -1}})
    assert violations == ["inner.count: Input should be greater than or equal to 0"]


def test_missing_fields() -> None:
    params = SampleParams(name="a")
    assert missing_fields(params, ["name", "tag"]) == ["tag"]


def test_normalize_path() -> None:
    assert os.path.isabs(normalize_path("relative/file.txt"))
    assert normalize_path("~") == os.path.expanduser("~")
