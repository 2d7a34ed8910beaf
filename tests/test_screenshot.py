"""Tests for the screenshot tool and the Pillow imaging helpers."""

from __future__ import annotations

import base64
import io
from pathlib import Path

import pytest
from PIL import Image

from agent_toolbox import imaging
from agent_toolbox.toolbox_types import Region
from agent_toolbox.tools.screenshot import STUB_SCREEN_SIZE, ScreenshotTool


class FixedCapture:
    """Returns the same image for every capture."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.windows: list[str] = []

    async def capture_screen(self) -> bytes:
        return self.data

    async def capture_window(self, title: str) -> bytes:
        self.windows.append(title)
        return self.data


@pytest.fixture()
def tool() -> ScreenshotTool:
    """A stub-mode screenshot tool."""
    return ScreenshotTool("stub")


def _decode(result) -> Image.Image:
    image_item = next(item for item in result.content if item.type == "image")
    return Image.open(io.BytesIO(base64.b64decode(image_item.data)))


# ─── Tool ────────────────────────────────────────────────────────────────────


async def test_stub_screen_is_png_of_stub_size(tool: ScreenshotTool) -> None:
    """Should return an image item plus a success message."""
    result = await tool.execute({"target": "screen"})

    assert result.is_error is False
    assert [item.type for item in result.content] == ["image", "text"]
    assert result.content[0].mime_type == "image/png"
    img = _decode(result)
    assert img.format == "PNG"
    assert img.size == STUB_SCREEN_SIZE
    assert result.text.startswith("Screenshot captured successfully")
    assert "1280x800" in result.text


async def test_region_capture(png_bytes: bytes) -> None:
    tool = ScreenshotTool(capture=FixedCapture(png_bytes))
    result = await tool.execute(
        {"target": "region", "region": {"x": 10, "y": 20, "width": 50, "height": 30}}
    )

    assert result.is_error is False
    assert _decode(result).size == (50, 30)


async def test_negative_region_size_fails(tool: ScreenshotTool) -> None:
    """Should fail with a region error and return no image."""
    result = await tool.execute(
        {"target": "region", "region": {"x": 0, "y": 0, "width": 10, "height": -5}}
    )

    assert result.is_error is True
    assert all(item.type == "text" for item in result.content)
    assert result.text.startswith("Screenshot failed: Failed to extract region:")


async def test_region_outside_screen_fails(tool: ScreenshotTool) -> None:
    result = await tool.execute(
        {"target": "region", "region": {"x": 1200, "y": 0, "width": 200, "height": 100}}
    )
    assert result.is_error is True
    assert "exceeds image bounds" in result.text


async def test_region_required(tool: ScreenshotTool) -> None:
    result = await tool.execute({"target": "region"})
    assert result.is_error is True
    assert "region is required" in result.text


async def test_window_requires_title(tool: ScreenshotTool) -> None:
    result = await tool.execute({"target": "window"})
    assert result.is_error is True
    assert "window_title is required" in result.text


async def test_window_capture_passes_title(png_bytes: bytes) -> None:
    capture = FixedCapture(png_bytes)
    tool = ScreenshotTool(capture=capture)
    result = await tool.execute({"target": "window", "window_title": "Terminal"})

    assert result.is_error is False
    assert capture.windows == ["Terminal"]


@pytest.mark.parametrize(
    ("fmt", "mime", "pil_format"),
    [
        ("jpg", "image/jpeg", "JPEG"),
        ("jpeg", "image/jpeg", "JPEG"),
        ("webp", "image/webp", "WEBP"),
        ("bmp", "image/bmp", "BMP"),
    ],
)
async def test_output_formats(tool: ScreenshotTool, fmt: str, mime: str, pil_format: str) -> None:
    result = await tool.execute({"target": "screen", "format": fmt, "quality": 50})

    assert result.is_error is False
    assert result.content[0].mime_type == mime
    assert _decode(result).format == pil_format


async def test_writes_output_path(tool: ScreenshotTool, tmp_dir: Path) -> None:
    out = tmp_dir / "shots" / "screen.png"
    result = await tool.execute({"target": "screen", "output_path": str(out)})

    assert result.is_error is False
    assert out.exists()
    assert out.read_bytes() == base64.b64decode(result.content[0].data)


@pytest.mark.parametrize("quality", [0, 101])
async def test_quality_bounds(tool: ScreenshotTool, quality: int) -> None:
    result = await tool.execute({"target": "screen", "quality": quality})
    assert result.is_error is True


async def test_unknown_format_rejected(tool: ScreenshotTool) -> None:
    result = await tool.execute({"target": "screen", "format": "gif"})
    assert result.is_error is True


def test_metadata(tool: ScreenshotTool) -> None:
    schema = tool.definition.input_schema
    assert tool.definition.name == "screenshot"
    assert schema["required"] == ["target"]
    assert schema["properties"]["format"]["default"] == "png"
    assert schema["properties"]["quality"]["default"] == 90


# ─── Imaging helpers ─────────────────────────────────────────────────────────


def test_crop_image(png_bytes: bytes) -> None:
    cropped = imaging.crop_image(png_bytes, Region(x=0, y=0, width=200, height=100))
    assert imaging.image_size(cropped) == (200, 100)


@pytest.mark.parametrize(
    "region",
    [
        Region(x=0, y=0, width=0, height=10),
        Region(x=-1, y=0, width=10, height=10),
        Region(x=150, y=0, width=100, height=10),
    ],
)
def test_crop_rejects_bad_geometry(png_bytes: bytes, region: Region) -> None:
    with pytest.raises(ValueError):
        imaging.crop_image(png_bytes, region)


def test_encode_rejects_unknown_format(png_bytes: bytes) -> None:
    with pytest.raises(ValueError, match="Unsupported image format"):
        imaging.encode_image(png_bytes, "tiff")
