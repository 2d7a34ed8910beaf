"""
AI Agent Toolbox MCP Server — Entry Point

Registers all toolbox tools and starts the JSON-RPC listener on stdio.
Logs go to stderr; stdout carries protocol messages only.

Tools (5):
  screenshot           — capture screen, window or region
  ui_inspect           — inspect and analyze a UI element tree
  performance_monitor  — sample and analyze system metrics
  file_watcher         — watch files and directories for changes
  screen_control       — mouse and keyboard automation
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from agent_toolbox import __version__
from agent_toolbox.config import ToolboxConfig
from agent_toolbox.mcp_base import MCPServer
from agent_toolbox.tools import (
    FileWatcherTool,
    PerformanceMonitorTool,
    ScreenControlTool,
    ScreenshotTool,
    UIInspectTool,
)

SERVER_NAME = "ai-agent-toolbox"


def build_server(config: ToolboxConfig | None = None) -> MCPServer:
    """Create the server with every tool configured for its capability mode."""
    config = config or ToolboxConfig()
    timeout = config.command_timeout
    return MCPServer(
        name=SERVER_NAME,
        version=__version__,
        tools=[
            ScreenshotTool(config.mode_for("screenshot"), command_timeout=timeout),
            UIInspectTool(config.mode_for("ui_inspect"), command_timeout=timeout),
            PerformanceMonitorTool(config.mode_for("performance_monitor")),
            FileWatcherTool(config.mode_for("file_watcher")),
            ScreenControlTool(config.mode_for("screen_control"), command_timeout=timeout),
        ],
    )


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="agent-toolbox", description=__doc__.splitlines()[1])
    parser.add_argument(
        "--mode",
        choices=["real", "stub"],
        help="Capability mode for every tool (overrides AGENT_TOOLBOX_CAPABILITY_MODE)",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level name (overrides AGENT_TOOLBOX_LOG_LEVEL)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    config = ToolboxConfig.from_env()
    updates: dict[str, object] = {}
    if args.mode:
        updates["capability_mode"] = args.mode
        updates["tool_modes"] = {}
    if args.log_level:
        updates["log_level"] = args.log_level.upper()
    if updates:
        config = config.model_copy(update=updates)

    logging.basicConfig(
        stream=sys.stderr,
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    build_server(config).start()


if __name__ == "__main__":
    main()
