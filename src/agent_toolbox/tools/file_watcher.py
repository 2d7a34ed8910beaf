"""
file_watcher — Start, stop and inspect named file-watch sessions.

A thin front end over WatchSessionManager; the manager owns the session
table, observers and expiry timers. Results are JSON text.

Non-destructive: no confirmation required.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from agent_toolbox.mcp_base import CapabilityMode, MCPTool, ToolResult, ValidationError
from agent_toolbox.watch_sessions import DEFAULT_DURATION, WatchSessionManager

WatchEvent = Literal["add", "change", "unlink", "addDir", "unlinkDir"]


# ---- Params -----------------------------------------------------------------


class Params(BaseModel):
    """Parameters for file_watcher."""

    action: Literal["start", "stop", "status"] = Field(description="Action to perform")
    path: str | None = Field(
        default=None, description="Path to watch (file or directory), required for start"
    )
    pattern: str | None = Field(
        default=None, description='Glob pattern for files to watch (e.g., "*.js", "src/**/*.ts")'
    )
    events: list[WatchEvent] | None = Field(
        default=None,
        description="Events to watch for (default: add, change, unlink)",
    )
    watch_id: str | None = Field(
        default=None,
        description="ID of the watcher; required for stop, optional for start and status",
    )
    duration: float = Field(
        default=DEFAULT_DURATION,
        ge=0,
        description="How long to watch in seconds (0 for unlimited)",
    )


# ---- Tool Implementation ----------------------------------------------------


class FileWatcherTool(MCPTool[Params]):
    """Monitor file system changes in real time."""

    name = "file_watcher"
    description = (
        "Monitor file system changes in real time. Start a watcher on a file or "
        "directory, check the changes it has recorded, and stop it when done."
    )
    error_prefix = "File watcher error"

    def __init__(
        self,
        capability_mode: CapabilityMode = "real",
        manager: WatchSessionManager | None = None,
    ) -> None:
        super().__init__(capability_mode)
        self.manager = manager if manager is not None else WatchSessionManager()

    async def run(self, params: Params) -> ToolResult:
        if params.action == "start":
            if not params.path:
                raise ValidationError("path is required for start action", ["path"])
            receipt = await self.manager.start(
                path=params.path,
                pattern=params.pattern,
                events=params.events,
                watch_id=params.watch_id,
                duration=params.duration,
            )
            return ToolResult.from_json(receipt)

        if params.action == "stop":
            if not params.watch_id:
                raise ValidationError("watch_id is required for stop action", ["watch_id"])
            return ToolResult.from_json(await self.manager.stop(params.watch_id))

        return ToolResult.from_json(self.manager.status(params.watch_id))

    async def close(self) -> None:
        await self.manager.close()
