"""
Image encode/crop helpers built on Pillow.

Screen captures arrive as encoded bytes (usually PNG) from the capture
providers; these helpers crop them to a region and re-encode them into
the format and quality the caller asked for.
"""

from __future__ import annotations

import io

from PIL import Image, ImageDraw

from agent_toolbox.toolbox_types import Region

# ─── Formats ─────────────────────────────────────────────────────────────────

PIL_FORMATS: dict[str, str] = {
    "png": "PNG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "webp": "WEBP",
    "bmp": "BMP",
}

MIME_TYPES: dict[str, str] = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "bmp": "image/bmp",
}


def image_size(data: bytes) -> tuple[int, int]:
    """Width and height of an encoded image."""
    with Image.open(io.BytesIO(data)) as img:
        return img.size


def crop_image(data: bytes, region: Region) -> bytes:
    """
    Crop an encoded image to a region and return it as PNG.

    Raises:
        ValueError: the region has a non-positive size, a negative origin,
            or does not fit inside the image.
    """
    if region.width <= 0 or region.height <= 0:
        raise ValueError(
            f"region width and height must be positive (got {region.width}x{region.height})"
        )
    if region.x < 0 or region.y < 0:
        raise ValueError(f"region origin must not be negative (got {region.x},{region.y})")

    with Image.open(io.BytesIO(data)) as img:
        right = region.x + region.width
        bottom = region.y + region.height
        if right > img.width or bottom > img.height:
            raise ValueError(
                f"region {region.width}x{region.height}+{region.x}+{region.y} "
                f"exceeds image bounds {img.width}x{img.height}"
            )
        cropped = img.crop((region.x, region.y, right, bottom))
        out = io.BytesIO()
        cropped.save(out, format="PNG")
        return out.getvalue()


def encode_image(data: bytes, fmt: str, quality: int = 90) -> bytes:
    """Re-encode an image as png, jpg/jpeg, webp or bmp."""
    fmt = fmt.lower()
    if fmt not in PIL_FORMATS:
        raise ValueError(f"Unsupported image format: {fmt}")

    with Image.open(io.BytesIO(data)) as img:
        img.load()
        out = io.BytesIO()
        if fmt in ("jpg", "jpeg"):
            img.convert("RGB").save(out, format="JPEG", quality=quality)
        elif fmt == "webp":
            img.save(out, format="WEBP", quality=quality)
        elif fmt == "png":
            # quality 100 maps to compress_level 0
            img.save(out, format="PNG", compress_level=min(9, max(0, (100 - quality) // 10)))
        else:
            img.convert("RGB").save(out, format="BMP")
        return out.getvalue()


def render_placeholder(width: int, height: int, label: str) -> bytes:
    """Draw a deterministic placeholder screen used by the stub capture provider."""
    img = Image.new("RGB", (width, height), (32, 36, 44))
    draw = ImageDraw.Draw(img)
    draw.rectangle((0, 0, width - 1, 40), fill=(58, 64, 78))
    draw.rectangle((20, 60, width - 21, height - 21), outline=(120, 128, 140))
    draw.text((12, 12), label, fill=(230, 230, 230))
    out = io.BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()
