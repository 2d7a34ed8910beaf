"""
Toolbox configuration.

Read from AGENT_TOOLBOX_* environment variables:

    AGENT_TOOLBOX_CAPABILITY_MODE    real | stub (default: real)
    AGENT_TOOLBOX_<TOOL>_MODE        per-tool override, e.g. AGENT_TOOLBOX_SCREENSHOT_MODE
    AGENT_TOOLBOX_COMMAND_TIMEOUT    seconds allowed for shelled-out commands
    AGENT_TOOLBOX_LOG_LEVEL          logging level name
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, Field

from agent_toolbox.mcp_base import CapabilityMode

ENV_PREFIX = "AGENT_TOOLBOX_"

TOOL_NAMES: tuple[str, ...] = (
    "screenshot",
    "ui_inspect",
    "performance_monitor",
    "file_watcher",
    "screen_control",
)


class ToolboxConfig(BaseModel):
    """Runtime settings shared by the server and its tools."""

    capability_mode: CapabilityMode = Field(
        default="real",
        description="Whether tools call platform utilities (real) or canned providers (stub)",
    )
    tool_modes: dict[str, CapabilityMode] = Field(
        default_factory=dict,
        description="Per-tool capability mode overrides keyed by tool name",
    )
    command_timeout: float = Field(
        default=30.0, gt=0, description="Timeout in seconds for shelled-out commands"
    )
    log_level: str = Field(default="INFO", description="Logging level name")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ToolboxConfig:
        env = os.environ if environ is None else environ

        values: dict[str, object] = {}
        if mode := env.get(f"{ENV_PREFIX}CAPABILITY_MODE"):
            values["capability_mode"] = mode.strip().lower()
        if timeout := env.get(f"{ENV_PREFIX}COMMAND_TIMEOUT"):
            values["command_timeout"] = timeout
        if level := env.get(f"{ENV_PREFIX}LOG_LEVEL"):
            values["log_level"] = level.strip().upper()

        tool_modes: dict[str, str] = {}
        for tool_name in TOOL_NAMES:
            override = env.get(f"{ENV_PREFIX}{tool_name.upper()}_MODE")
            if override:
                tool_modes[tool_name] = override.strip().lower()
        values["tool_modes"] = tool_modes

        return cls.model_validate(values)

    def mode_for(self, tool_name: str) -> CapabilityMode:
        return self.tool_modes.get(tool_name, self.capability_mode)
