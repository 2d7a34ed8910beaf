"""
screenshot — Capture the screen, a window or a region.

Capture is delegated to platform utilities that write a PNG to a temporary
file; Pillow then crops (for regions) and re-encodes to the requested
format. Stub mode renders a fixed-size placeholder instead.

Non-destructive: no confirmation required, except that output_path is
overwritten when given.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Literal, Protocol

from pydantic import BaseModel, Field

from agent_toolbox import imaging
from agent_toolbox.mcp_base import (
    CapabilityError,
    CapabilityMode,
    ContentItem,
    MCPTool,
    NotFoundError,
    ToolResult,
    ValidationError,
)
from agent_toolbox.shell import (
    DEFAULT_TIMEOUT,
    require_platform,
    run_command,
    run_first_available,
)
from agent_toolbox.toolbox_types import Region

_logger = logging.getLogger("agent_toolbox.tools.screenshot")

STUB_SCREEN_SIZE: tuple[int, int] = (1280, 800)

ImageFormat = Literal["png", "jpg", "jpeg", "webp", "bmp"]


# ---- Params -----------------------------------------------------------------


class Params(BaseModel):
    """Parameters for screenshot."""

    target: Literal["screen", "window", "region"] = Field(description="What to capture")
    window_title: str | None = Field(
        default=None, description="Window title (required when target is window)"
    )
    region: Region | None = Field(
        default=None, description="Region to capture (required when target is region)"
    )
    output_path: str | None = Field(
        default=None, description="Optional path to also save the image to"
    )
    format: ImageFormat = Field(default="png", description="Output image format")
    quality: int = Field(default=90, ge=1, le=100, description="Image quality (1-100)")


# ---- Capture Providers ------------------------------------------------------


class ScreenCapture(Protocol):
    async def capture_screen(self) -> bytes: ...

    async def capture_window(self, title: str) -> bytes: ...


class StubScreenCapture:
    """Deterministic placeholder frames drawn with Pillow."""

    def __init__(self, width: int = STUB_SCREEN_SIZE[0], height: int = STUB_SCREEN_SIZE[1]) -> None:
        self.width = width
        self.height = height

    async def capture_screen(self) -> bytes:
        return imaging.render_placeholder(self.width, self.height, "agent-toolbox stub screen")

    async def capture_window(self, title: str) -> bytes:
        return imaging.render_placeholder(self.width, self.height, f"window: {title}")


_WINDOWS_SCREEN_SCRIPT = (
    "Add-Type -AssemblyName System.Windows.Forms; Add-Type -AssemblyName System.Drawing; "
    "$b = [System.Windows.Forms.Screen]::PrimaryScreen.Bounds; "
    "$bmp = New-Object System.Drawing.Bitmap $b.Width, $b.Height; "
    "$g = [System.Drawing.Graphics]::FromImage($bmp); "
    "$g.CopyFromScreen($b.Location, [System.Drawing.Point]::Empty, $b.Size); "
    "$bmp.Save('{path}', [System.Drawing.Imaging.ImageFormat]::Png); "
    "$g.Dispose(); $bmp.Dispose()"
)

_WINDOW_ID = re.compile(r"Window id:\s+(0x[0-9a-fA-F]+)")


class SystemScreenCapture:
    """Shells out to the platform's screenshot utilities."""

    def __init__(self, command_timeout: float = DEFAULT_TIMEOUT) -> None:
        self._timeout = command_timeout

    async def capture_screen(self) -> bytes:
        platform = require_platform("Screen capture")
        with tempfile.TemporaryDirectory(prefix="agent_toolbox_") as tmp:
            out = os.path.join(tmp, "screen.png")
            if platform == "linux":
                await run_first_available(
                    [
                        ["import", "-window", "root", out],
                        ["gnome-screenshot", "-f", out],
                        ["scrot", "-o", out],
                        ["spectacle", "-b", "-n", "-o", out],
                        ["maim", out],
                    ],
                    timeout=self._timeout,
                )
            elif platform == "darwin":
                await run_command(["screencapture", "-x", out], timeout=self._timeout)
            else:
                script = _WINDOWS_SCREEN_SCRIPT.replace("{path}", out.replace("'", "''"))
                await run_command(
                    ["powershell", "-NoProfile", "-Command", script], timeout=self._timeout
                )
            return self._read(out)

    async def capture_window(self, title: str) -> bytes:
        platform = require_platform("Window capture")
        if platform == "win32":
            _logger.warning("Window capture is not available on Windows; capturing full screen")
            return await self.capture_screen()

        with tempfile.TemporaryDirectory(prefix="agent_toolbox_") as tmp:
            out = os.path.join(tmp, "window.png")
            if platform == "linux":
                info = await run_command(["xwininfo", "-name", title], timeout=self._timeout, check=False)
                match = _WINDOW_ID.search(info.stdout)
                if match is None:
                    raise NotFoundError(f"No window titled '{title}'")
                await run_command(["import", "-window", match.group(1), out], timeout=self._timeout)
            else:
                script = f'tell application "{title}" to id of window 1'
                result = await run_command(["osascript", "-e", script], timeout=self._timeout)
                window_id = result.stdout.strip()
                if not window_id.isdigit():
                    raise NotFoundError(f"No window found for application '{title}'")
                await run_command(["screencapture", "-x", f"-l{window_id}", out], timeout=self._timeout)
            return self._read(out)

    @staticmethod
    def _read(path: str) -> bytes:
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as exc:
            raise CapabilityError(f"Capture produced no image: {exc}") from exc
        if not data:
            raise CapabilityError("Capture produced an empty image")
        return data


# ---- Tool Implementation ----------------------------------------------------


class ScreenshotTool(MCPTool[Params]):
    """Capture screenshots of the desktop, a window or a region."""

    name = "screenshot"
    description = (
        "Capture screenshots of the entire screen, a specific window or a region. "
        "Returns the image (png, jpg, webp or bmp) and optionally saves it to a file."
    )
    error_prefix = "Screenshot failed"

    def __init__(
        self,
        capability_mode: CapabilityMode = "real",
        capture: ScreenCapture | None = None,
        command_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(capability_mode)
        if capture is None:
            capture = (
                StubScreenCapture()
                if capability_mode == "stub"
                else SystemScreenCapture(command_timeout)
            )
        self.capture = capture

    async def run(self, params: Params) -> ToolResult:
        raw = await self._capture(params)

        try:
            encoded = imaging.encode_image(raw, params.format, params.quality)
            width, height = imaging.image_size(encoded)
        except (OSError, ValueError) as exc:
            raise CapabilityError(f"Failed to encode image: {exc}") from exc

        if params.output_path:
            out = Path(params.output_path).expanduser()
            await asyncio.to_thread(_write_file, out, encoded)
            _logger.info("Saved screenshot to %s", out)

        return ToolResult(
            content=[
                ContentItem(
                    type="image",
                    data=base64.b64encode(encoded).decode("ascii"),
                    mime_type=imaging.MIME_TYPES[params.format],
                ),
                ContentItem(
                    type="text",
                    text=(
                        f"Screenshot captured successfully "
                        f"({len(encoded)} bytes, {width}x{height})"
                    ),
                ),
            ]
        )

    async def _capture(self, params: Params) -> bytes:
        if params.target == "window":
            if not params.window_title:
                raise ValidationError("window_title is required for window capture", ["window_title"])
            return await self.capture.capture_window(params.window_title)

        if params.target == "region":
            if params.region is None:
                raise ValidationError("region is required for region capture", ["region"])
            screen = await self.capture.capture_screen()
            try:
                return imaging.crop_image(screen, params.region)
            except (OSError, ValueError) as exc:
                raise CapabilityError(f"Failed to extract region: {exc}") from exc

        return await self.capture.capture_screen()


def _write_file(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        raise CapabilityError(f"Cannot write {path}: {exc}") from exc
