"""Pixel formats handled by the converters and RGB565 unpacking."""

from __future__ import annotations

from enum import Enum


class PixFormat(Enum):
    """Source pixel format of a frame buffer."""

    RGB565 = "rgb565"
    YUV422 = "yuv422"
    GRAYSCALE = "grayscale"
    JPEG = "jpeg"
    RGB888 = "rgb888"


def rgb565_to_rgb888(hb: int, lb: int) -> tuple[int, int, int]:
    """Expand a big-endian RGB565 pixel (high byte, low byte) to (r, g, b)."""
    for name, value in (("hb", hb), ("lb", lb)):
        if not 0 <= value <= 255:
            raise ValueError(f"{name} must be in 0..255, got {value}")
    r = hb & 0xF8
    g = ((hb & 0x07) << 5) | ((lb & 0xE0) >> 3)
    b = (lb & 0x1F) << 3
    return r, g, b