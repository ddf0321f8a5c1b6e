"""Convert camera frame buffers to 24-bit BMP images and BGR pixel data."""

from __future__ import annotations

import struct

from camconv.formats import PixFormat, rgb565_to_rgb888
from camconv.yuv import yuv2rgb

BMP_HEADER_LEN = 54
_DIB_HEADER_SIZE = 40
_PIXELS_PER_METER = 0x0B13  # 72 DPI

_HEADER = struct.Struct("<2sIIIIiiHHIIIIII")


def bmp_header(width: int, height: int) -> bytes:
    """Build the 54-byte header of a top-down 24-bit BMP."""
    image_size = width * height * 3
    return _HEADER.pack(
        b"BM",
        image_size + BMP_HEADER_LEN,
        0,
        BMP_HEADER_LEN,
        _DIB_HEADER_SIZE,
        width,
        -height,  # negative: rows stored top to bottom
        1,
        24,
        0,
        image_size,
        _PIXELS_PER_METER,
        _PIXELS_PER_METER,
        0,
        0,
    )


def _to_bgr(data: bytes, fmt: PixFormat, pixels: int) -> bytes:
    if fmt is PixFormat.RGB888:
        return data[:pixels * 3]
    out = bytearray()
    if fmt is PixFormat.RGB565:
        it = iter(data[:pixels * 2])
        for hb, lb in zip(it, it):
            r, g, b = rgb565_to_rgb888(hb, lb)
            out += bytes((b, g, r))
    elif fmt is PixFormat.GRAYSCALE:
        for value in data[:pixels]:
            out += bytes((value, value, value))
    elif fmt is PixFormat.YUV422:
        it = iter(data[:(pixels // 2) * 4])
        for y0, u, y1, v in zip(it, it, it, it):
            r, g, b = yuv2rgb(y0, u, v)
            out += bytes((b, g, r))
            r, g, b = yuv2rgb(y1, u, v)
            out += bytes((b, g, r))
    else:
        raise ValueError(f"cannot convert {fmt.name} data to RGB888")
    return bytes(out)


_BYTES_PER_PIXEL = {
    PixFormat.RGB888: 3,
    PixFormat.RGB565: 2,
    PixFormat.GRAYSCALE: 1,
    PixFormat.YUV422: 2,
}


def fmt2rgb888(src, fmt: PixFormat) -> bytes:
    """Convert a whole buffer to 24-bit pixels in B, G, R byte order."""
    data = bytes(src)
    bpp = _BYTES_PER_PIXEL.get(fmt)
    if bpp is None:
        raise ValueError(f"cannot convert {fmt.name} data to RGB888")
    if fmt is PixFormat.RGB888:
        return data
    return _to_bgr(data, fmt, len(data) // bpp)


def fmt2bmp(src, width: int, height: int, fmt: PixFormat) -> bytes:
    """Wrap a ``width`` x ``height`` frame into a complete BMP file."""
    bpp = _BYTES_PER_PIXEL.get(fmt)
    if bpp is None:
        raise ValueError(f"cannot convert {fmt.name} data to BMP")
    if width < 0 or height < 0:
        raise ValueError(f"invalid image size {width}x{height}")
    pixels = width * height
    data = bytes(src)
    needed = pixels * bpp
    if len(data) < needed:
        raise ValueError(f"source holds {len(data)} bytes, {needed} needed")
    body = _to_bgr(data, fmt, pixels)
    body += bytes(pixels * 3 - len(body))
    return bmp_header(width, height) + body