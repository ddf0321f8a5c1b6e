"""Baseline JPEG encoder that consumes an image one scanline at a time.

Compressed bytes are handed to an output stream in chunks of at most
512 bytes through its ``put_buf(data)`` method; after the last chunk
``put_buf(None)`` marks the end of the image. ``put_buf`` returns a
true value when the write succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Protocol

from camconv.jpeg_tables import (
    AC_CHROMA_BITS,
    AC_CHROMA_VAL,
    AC_LUM_BITS,
    AC_LUM_VAL,
    DC_CHROMA_BITS,
    DC_CHROMA_VAL,
    DC_LUM_BITS,
    DC_LUM_VAL,
    STD_CHROMA_QUANT,
    STD_LUM_QUANT,
    ZIGZAG,
    compute_huffman_table,
    compute_quant_table,
    dct2d,
    rgb_to_y,
    rgb_to_ycc,
    y_to_ycc,
)

_M_SOF0 = 0xC0
_M_DHT = 0xC4
_M_SOI = 0xD8
_M_EOI = 0xD9
_M_SOS = 0xDA
_M_DQT = 0xDB
_M_APP0 = 0xE0

_OUT_BUF_SIZE = 512

# Huffman table slots: 0 DC luma, 1 DC chroma, 2 AC luma, 3 AC chroma.
_HUFF_SPECS = (
    (DC_LUM_BITS, DC_LUM_VAL),
    (DC_CHROMA_BITS, DC_CHROMA_VAL),
    (AC_LUM_BITS, AC_LUM_VAL),
    (AC_CHROMA_BITS, AC_CHROMA_VAL),
)
_HUFF_TABLES = tuple(compute_huffman_table(bits, vals) for bits, vals in _HUFF_SPECS)


class Subsampling(IntEnum):
    """Chroma subsampling: grey only, or YCbCr with 1x1, 2x1 or 2x2 luma."""

    Y_ONLY = 0
    H1V1 = 1
    H2V1 = 2
    H2V2 = 3


@dataclass
class Params:
    """Compression parameters: quality 1..100 and chroma subsampling."""

    quality: int = 85
    subsampling: Subsampling = Subsampling.H2V2

    def check(self) -> bool:
        """Return True when the parameters are usable."""
        if not 1 <= self.quality <= 100:
            return False
        try:
            Subsampling(self.subsampling)
        except ValueError:
            return False
        return True


class JpegEncoderError(Exception):
    """Raised when the encoder is misused or its output stream fails."""


class _OutputStream(Protocol):
    def put_buf(self, data: Optional[bytes]) -> bool: ...


_SAMPLING = {
    Subsampling.Y_ONLY: (1, (1,), (1,), 8, 8),
    Subsampling.H1V1: (3, (1, 1, 1), (1, 1, 1), 8, 8),
    Subsampling.H2V1: (3, (2, 1, 1), (1, 1, 1), 16, 8),
    Subsampling.H2V2: (3, (2, 1, 1), (2, 1, 1), 16, 16),
}


class JpegEncoder:
    """Scanline-driven baseline JPEG compressor."""

    def __init__(self) -> None:
        self._stream: Optional[_OutputStream] = None
        self._clear()

    def _clear(self) -> None:
        self._mcu_lines: list[bytearray] = []
        self._pass_num = 0
        self._writes_ok = True

    # ------------------------------------------------------------------ public

    def init(self, stream, width, height, src_channels, params=None) -> None:
        """Prepare to compress a ``width`` x ``height`` image and write headers.

        ``src_channels`` is 1 (grey), 3 (RGB) or 4.
        """
        self.deinit()
        if params is None:
            params = Params()
        if stream is None:
            raise ValueError("an output stream is required")
        if width < 1 or height < 1:
            raise ValueError(f"invalid image size {width}x{height}")
        if src_channels not in (1, 3, 4):
            raise ValueError(f"source channels must be 1, 3 or 4, got {src_channels}")
        if not params.check():
            raise ValueError(f"invalid compression parameters {params!r}")
        self._stream = stream
        self._params = params
        self._open(width, height, src_channels)
        if not self._writes_ok:
            raise JpegEncoderError("writing to the output stream failed")

    def process_scanline(self, scanline) -> None:
        """Feed one scanline of ``width * src_channels`` bytes; None finishes."""
        if self._pass_num not in (1, 2):
            raise JpegEncoderError("the encoder is not ready for scanlines")
        if self._writes_ok:
            if scanline is None:
                self._process_end_of_image()
            else:
                self._load_mcu(scanline)
        if not self._writes_ok:
            raise JpegEncoderError("writing to the output stream failed")

    def deinit(self) -> None:
        """Drop all state; the encoder can be initialised again."""
        self._stream = None
        self._clear()

    # ------------------------------------------------------------------ setup

    def _open(self, width: int, height: int, src_channels: int) -> None:
        ncomp, h_samp, v_samp, mcu_x, mcu_y = _SAMPLING[
            Subsampling(self._params.subsampling)
        ]
        self._num_components = ncomp
        self._comp_h_samp = h_samp
        self._comp_v_samp = v_samp
        self._mcu_x = mcu_x
        self._mcu_y = mcu_y
        self._image_x = width
        self._image_y = height
        self._image_bpp = src_channels
        self._image_x_mcu = (width + mcu_x - 1) & ~(mcu_x - 1)
        self._image_bpl_mcu = self._image_x_mcu * ncomp
        self._mcus_per_row = self._image_x_mcu // mcu_x
        self._mcu_lines = [bytearray(self._image_bpl_mcu) for _ in range(mcu_y)]

        quality = self._params.quality
        self._quant = (
            compute_quant_table(quality, STD_LUM_QUANT),
            compute_quant_table(quality, STD_CHROMA_QUANT),
        )

        self._out_buf = bytearray()
        self._bit_buffer = 0
        self._bits_in = 0
        self._mcu_y_ofs = 0
        self._pass_num = 2
        self._last_dc = [0, 0, 0]

        self._emit_marker(_M_SOI)
        self._emit_jfif_app0()
        self._emit_dqt()
        self._emit_sof()
        self._emit_dhts()
        self._emit_sos()

    # ------------------------------------------------------------------ output

    def _flush_output(self) -> None:
        if self._out_buf:
            if self._writes_ok:
                self._writes_ok = bool(self._stream.put_buf(bytes(self._out_buf)))
            self._out_buf.clear()

    def _emit_byte(self, value: int) -> None:
        self._out_buf.append(value & 0xFF)
        if len(self._out_buf) == _OUT_BUF_SIZE:
            self._flush_output()

    def _emit_bytes(self, data) -> None:
        for value in data:
            self._emit_byte(value)

    def _emit_word(self, value: int) -> None:
        self._emit_byte(value >> 8)
        self._emit_byte(value & 0xFF)

    def _emit_marker(self, marker: int) -> None:
        self._emit_byte(0xFF)
        self._emit_byte(marker)

    def _put_bits(self, bits: int, length: int) -> None:
        self._bits_in += length
        self._bit_buffer |= bits << (24 - self._bits_in)
        while self._bits_in >= 8:
            c = (self._bit_buffer >> 16) & 0xFF
            self._emit_byte(c)
            if c == 0xFF:
                self._emit_byte(0)
            self._bit_buffer = (self._bit_buffer << 8) & 0xFFFFFF
            self._bits_in -= 8

    # ------------------------------------------------------------------ headers

    def _emit_jfif_app0(self) -> None:
        self._emit_marker(_M_APP0)
        self._emit_word(2 + 4 + 1 + 2 + 1 + 2 + 2 + 1 + 1)
        self._emit_bytes(b"JFIF\x00")
        self._emit_bytes((1, 1, 0))  # version 1.1, no density unit
        self._emit_word(1)
        self._emit_word(1)
        self._emit_bytes((0, 0))  # no thumbnail

    def _emit_dqt(self) -> None:
        tables = self._quant if self._num_components == 3 else self._quant[:1]
        for index, table in enumerate(tables):
            self._emit_marker(_M_DQT)
            self._emit_word(64 + 1 + 2)
            self._emit_byte(index)
            self._emit_bytes(table)

    def _emit_sof(self) -> None:
        n = self._num_components
        self._emit_marker(_M_SOF0)
        self._emit_word(3 * n + 2 + 5 + 1)
        self._emit_byte(8)
        self._emit_word(self._image_y)
        self._emit_word(self._image_x)
        self._emit_byte(n)
        for i, (h, v) in enumerate(zip(self._comp_h_samp, self._comp_v_samp)):
            self._emit_byte(i + 1)
            self._emit_byte((h << 4) + v)
            self._emit_byte(1 if i > 0 else 0)

    def _emit_dht(self, bits, values, index: int, ac: bool) -> None:
        self._emit_marker(_M_DHT)
        length = sum(bits[1:17])
        self._emit_word(length + 2 + 1 + 16)
        self._emit_byte(index + (0x10 if ac else 0))
        self._emit_bytes(bits[1:17])
        self._emit_bytes(values[:length])

    def _emit_dhts(self) -> None:
        self._emit_dht(DC_LUM_BITS, DC_LUM_VAL, 0, False)
        self._emit_dht(AC_LUM_BITS, AC_LUM_VAL, 0, True)
        if self._num_components == 3:
            self._emit_dht(DC_CHROMA_BITS, DC_CHROMA_VAL, 1, False)
            self._emit_dht(AC_CHROMA_BITS, AC_CHROMA_VAL, 1, True)

    def _emit_sos(self) -> None:
        n = self._num_components
        self._emit_marker(_M_SOS)
        self._emit_word(2 * n + 2 + 1 + 3)
        self._emit_byte(n)
        for i in range(n):
            self._emit_byte(i + 1)
            self._emit_byte(0x00 if i == 0 else 0x11)
        self._emit_bytes((0, 63, 0))

    # ------------------------------------------------------------------ blocks

    def _block_8_8_grey(self, x: int) -> list[int]:
        off = x * 8
        return [v - 128 for line in self._mcu_lines[:8] for v in line[off:off + 8]]

    def _block_8_8(self, x: int, y: int, c: int) -> list[int]:
        off = x * 24 + c
        rows = self._mcu_lines[y * 8:y * 8 + 8]
        return [v - 128 for line in rows for v in line[off:off + 24:3]]

    def _block_16_8(self, x: int, c: int) -> list[int]:
        off = x * 48 + c
        lines = self._mcu_lines
        out: list[int] = []
        a, b = 0, 2
        for upper, lower in zip(lines[0:16:2], lines[1:16:2]):
            sums = [p + q for p, q in zip(upper[off:off + 48:3], lower[off:off + 48:3])]
            for k, (s0, s1) in enumerate(zip(sums[0::2], sums[1::2])):
                rounding = b if k & 1 else a
                out.append(((s0 + s1 + rounding) >> 2) - 128)
            a, b = b, a
        return out

    def _block_16_8_8(self, x: int, c: int) -> list[int]:
        off = x * 48 + c
        out: list[int] = []
        for line in self._mcu_lines[:8]:
            row = line[off:off + 48:3]
            out.extend(((p + q) >> 1) - 128 for p, q in zip(row[0::2], row[1::2]))
        return out

    def _quantize(self, samples: list[int], component: int) -> list[int]:
        table = self._quant[1 if component > 0 else 0]
        out = []
        for q, z in zip(table, ZIGZAG):
            j = samples[z]
            if j < 0:
                j = -j + (q >> 1)
                out.append(0 if j < q else -(j // q))
            else:
                j = j + (q >> 1)
                out.append(0 if j < q else j // q)
        return out

    def _code_coefficients(self, coeffs: list[int], component: int) -> None:
        chroma = 1 if component else 0
        dc_codes, dc_sizes = _HUFF_TABLES[chroma]
        ac_codes, ac_sizes = _HUFF_TABLES[2 + chroma]

        diff = coeffs[0] - self._last_dc[component]
        self._last_dc[component] = coeffs[0]
        nbits = abs(diff).bit_length()
        self._put_bits(dc_codes[nbits], dc_sizes[nbits])
        if nbits:
            value = diff - 1 if diff < 0 else diff
            self._put_bits(value & ((1 << nbits) - 1), nbits)

        run = 0
        for coef in coeffs[1:]:
            if coef == 0:
                run += 1
                continue
            while run >= 16:
                self._put_bits(ac_codes[0xF0], ac_sizes[0xF0])
                run -= 16
            nbits = abs(coef).bit_length()
            symbol = (run << 4) + nbits
            self._put_bits(ac_codes[symbol], ac_sizes[symbol])
            value = coef - 1 if coef < 0 else coef
            self._put_bits(value & ((1 << nbits) - 1), nbits)
            run = 0
        if run:
            self._put_bits(ac_codes[0], ac_sizes[0])

    def _code_block(self, samples: list[int], component: int) -> None:
        self._code_coefficients(self._quantize(dct2d(samples), component), component)

    def _process_mcu_row(self) -> None:
        if self._num_components == 1:
            for i in range(self._mcus_per_row):
                self._code_block(self._block_8_8_grey(i), 0)
            return
        h, v = self._comp_h_samp[0], self._comp_v_samp[0]
        for i in range(self._mcus_per_row):
            if (h, v) == (1, 1):
                for c in range(3):
                    self._code_block(self._block_8_8(i, 0, c), c)
            elif (h, v) == (2, 1):
                self._code_block(self._block_8_8(i * 2, 0, 0), 0)
                self._code_block(self._block_8_8(i * 2 + 1, 0, 0), 0)
                self._code_block(self._block_16_8_8(i, 1), 1)
                self._code_block(self._block_16_8_8(i, 2), 2)
            else:
                for y in (0, 1):
                    self._code_block(self._block_8_8(i * 2, y, 0), 0)
                    self._code_block(self._block_8_8(i * 2 + 1, y, 0), 0)
                self._code_block(self._block_16_8(i, 1), 1)
                self._code_block(self._block_16_8(i, 2), 2)

    # ------------------------------------------------------------------ rows

    def _load_mcu(self, scanline) -> None:
        data = bytes(scanline)
        width = self._image_x
        needed = width * 3 if self._image_bpp == 3 else width
        if len(data) < needed:
            raise ValueError(f"scanline holds {len(data)} bytes, {needed} needed")
        if self._num_components == 1:
            row = rgb_to_y(data[:needed]) if self._image_bpp == 3 else data[:needed]
        else:
            row = rgb_to_ycc(data[:needed]) if self._image_bpp == 3 else y_to_ycc(data[:needed])
        # Repeat the last pixel to fill the row up to a whole MCU.
        padding = row[-self._num_components:] * (self._image_x_mcu - width)
        self._mcu_lines[self._mcu_y_ofs][:] = row + padding

        self._mcu_y_ofs += 1
        if self._mcu_y_ofs == self._mcu_y:
            self._process_mcu_row()
            self._mcu_y_ofs = 0

    def _process_end_of_image(self) -> None:
        if self._mcu_y_ofs:
            last = bytes(self._mcu_lines[self._mcu_y_ofs - 1])
            for line in self._mcu_lines[self._mcu_y_ofs:]:
                line[:] = last
            self._process_mcu_row()

        self._put_bits(0x7F, 7)
        self._emit_marker(_M_EOI)
        self._flush_output()
        if self._writes_ok:
            self._writes_ok = bool(self._stream.put_buf(None))
        self._pass_num += 1