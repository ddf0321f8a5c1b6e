"""Compress camera frame buffers to JPEG."""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from camconv.formats import PixFormat, rgb565_to_rgb888
from camconv.jpeg_encoder import JpegEncoder, Params, Subsampling
from camconv.yuv import yuv2rgb

DEFAULT_JPEG_BUFFER_SIZE = 128 * 1024

_BYTES_PER_PIXEL = {
    PixFormat.GRAYSCALE: 1,
    PixFormat.RGB888: 3,
    PixFormat.RGB565: 2,
    PixFormat.YUV422: 2,
}


def _source_line(src: bytes, fmt: PixFormat, width: int, line: int) -> bytes:
    bpp = _BYTES_PER_PIXEL.get(fmt)
    if bpp is None:
        raise ValueError(f"cannot encode {fmt.name} data to JPEG")
    length = width * bpp
    start = line * length
    chunk = bytes(src[start:start + length])
    if len(chunk) < length:
        raise ValueError(
            f"source holds too few bytes for line {line} of width {width}"
        )
    return chunk


def convert_line_format(src, fmt: PixFormat, width: int, line: int) -> bytes:
    """Return scanline ``line`` of ``src`` as grey bytes or RGB triples."""
    chunk = _source_line(src, fmt, width, line)
    if fmt is PixFormat.GRAYSCALE:
        return chunk
    out = bytearray()
    if fmt is PixFormat.RGB888:
        it = iter(chunk)
        for b, g, r in zip(it, it, it):
            out += bytes((r, g, b))
    elif fmt is PixFormat.RGB565:
        it = iter(chunk)
        for hb, lb in zip(it, it):
            out += bytes(rgb565_to_rgb888(hb, lb))
    else:  # YUV422
        it = iter(chunk)
        for y0, u, y1, v in zip(it, it, it, it):
            out += bytes(yuv2rgb(y0, u, v))
            out += bytes(yuv2rgb(y1, u, v))
    return bytes(out)


class CallbackStream:
    """Output stream that hands every chunk to ``callback(index, data)``.

    The callback returns how many bytes it took; ``data`` is None once the
    image is complete.
    """

    def __init__(self, callback: Callable[[int, Optional[bytes]], int]) -> None:
        self._callback = callback
        self.size = 0

    def put_buf(self, data: Optional[bytes]) -> bool:
        self.size += self._callback(self.size, data) or 0
        return True


class MemoryStream:
    """Output stream that collects bytes up to ``max_len``, dropping the rest."""

    def __init__(self, max_len: int = DEFAULT_JPEG_BUFFER_SIZE) -> None:
        self.max_len = max_len
        self._buffer = bytearray()

    def put_buf(self, data: Optional[bytes]) -> bool:
        if data is None:
            return True
        room = self.max_len - len(self._buffer)
        self._buffer += bytes(data)[:room]
        return True

    @property
    def size(self) -> int:
        return len(self._buffer)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


def convert_image(src, width: int, height: int, fmt: PixFormat, quality: int, stream) -> None:
    """Compress ``src`` into ``stream``; quality is clamped to 1..100."""
    if fmt is PixFormat.GRAYSCALE:
        channels, subsampling = 1, Subsampling.Y_ONLY
    else:
        channels, subsampling = 3, Subsampling.H2V2
    quality = min(max(quality, 1), 100)

    encoder = JpegEncoder()
    encoder.init(stream, width, height, channels, Params(quality, subsampling))
    try:
        for line in range(height):
            encoder.process_scanline(convert_line_format(src, fmt, width, line))
        encoder.process_scanline(None)
    finally:
        encoder.deinit()


def fmt2jpg_cb(src, width: int, height: int, fmt: PixFormat, quality: int, callback) -> None:
    """Compress ``src`` to JPEG, passing the output to ``callback(index, data)``."""
    convert_image(src, width, height, fmt, quality, CallbackStream(callback))


def fmt2jpg(src, width: int, height: int, fmt: PixFormat, quality: int) -> bytes:
    """Compress ``src`` to JPEG and return at most 128 KiB of output."""
    stream = MemoryStream()
    convert_image(src, width, height, fmt, quality, stream)
    return stream.getvalue()