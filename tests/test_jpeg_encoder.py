import pytest

from camconv.jpeg_encoder import (
    JpegEncoder,
    JpegEncoderError,
    Params,
    Subsampling,
)
from camconv.jpeg_tables import (
    DC_LUM_BITS,
    DC_LUM_VAL,
    STD_CHROMA_QUANT,
    STD_LUM_QUANT,
    compute_quant_table,
)


class ListStream:
    def __init__(self, result=True):
        self.chunks = []
        self.result = result

    def put_buf(self, data):
        self.chunks.append(data)
        return self.result


def encode(rows, width, height, channels, params=None, encoder=None):
    encoder = encoder or JpegEncoder()
    stream = ListStream()
    encoder.init(stream, width, height, channels, params)
    for row in rows:
        encoder.process_scanline(row)
    encoder.process_scanline(None)
    return stream


def payload(stream):
    return b"".join(c for c in stream.chunks if c is not None)


def segments(data):
    pos = 2
    result = []
    while True:
        marker = data[pos + 1]
        length = int.from_bytes(data[pos + 2:pos + 4], "big")
        result.append((marker, data[pos + 4:pos + 2 + length]))
        pos += 2 + length
        if marker == 0xDA:
            return result, data[pos:]


def grey_rows(width, height, value=128):
    return [bytes([value]) * width for _ in range(height)]


def pattern_rows(width, height, channels):
    return [
        bytes(((x * 37 + y * 91 + c * 53) % 256) for x in range(width) for c in range(channels))
        for y in range(height)
    ]


GREY = Params(quality=85, subsampling=Subsampling.Y_ONLY)


def test_stream_framing():
    stream = encode(grey_rows(8, 8), 8, 8, 1, GREY)
    data = payload(stream)
    assert data[:2] == b"\xff\xd8"
    assert data[-2:] == b"\xff\xd9"
    assert stream.chunks[-1] is None
    segs, _ = segments(data)
    assert segs[0] == (0xE0, b"JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00")


def test_marker_order_grayscale_and_colour():
    grey, _ = segments(payload(encode(grey_rows(8, 8), 8, 8, 1, GREY)))
    assert [m for m, _ in grey] == [0xE0, 0xDB, 0xC0, 0xC4, 0xC4, 0xDA]
    colour, _ = segments(payload(encode(pattern_rows(16, 16, 3), 16, 16, 3)))
    assert [m for m, _ in colour] == [0xE0, 0xDB, 0xDB, 0xC0, 0xC4, 0xC4, 0xC4, 0xC4, 0xDA]


def test_sof_grayscale():
    segs, _ = segments(payload(encode(grey_rows(16, 8), 16, 8, 1, GREY)))
    sof = dict(segs)[0xC0]
    assert sof == bytes([8, 0, 8, 0, 16, 1, 1, 0x11, 0])


@pytest.mark.parametrize(
    "subsampling, luma",
    [(Subsampling.H1V1, 0x11), (Subsampling.H2V1, 0x21), (Subsampling.H2V2, 0x22)],
)
def test_sof_colour_sampling(subsampling, luma):
    params = Params(quality=50, subsampling=subsampling)
    stream = encode(pattern_rows(20, 18, 3), 20, 18, 3, params)
    segs, _ = segments(payload(stream))
    sof = dict(segs)[0xC0]
    assert sof[:6] == bytes([8, 0, 18, 0, 20, 3])
    assert sof[6:] == bytes([1, luma, 0, 2, 0x11, 1, 3, 0x11, 1])


@pytest.mark.parametrize("quality", [1, 10, 50, 85, 100])
def test_dqt_tables_follow_quality(quality):
    params = Params(quality=quality, subsampling=Subsampling.H2V2)
    segs, _ = segments(payload(encode(pattern_rows(16, 16, 3), 16, 16, 3, params)))
    dqts = [p for m, p in segs if m == 0xDB]
    assert dqts[0] == b"\x00" + bytes(compute_quant_table(quality, STD_LUM_QUANT))
    assert dqts[1] == b"\x01" + bytes(compute_quant_table(quality, STD_CHROMA_QUANT))


def test_first_dht_is_standard_dc_luma():
    segs, _ = segments(payload(encode(grey_rows(8, 8), 8, 8, 1, GREY)))
    dhts = [p for m, p in segs if m == 0xC4]
    assert dhts[0] == b"\x00" + bytes(DC_LUM_BITS[1:]) + bytes(DC_LUM_VAL)
    assert dhts[1][0] == 0x10


def test_sos_grayscale():
    segs, _ = segments(payload(encode(grey_rows(8, 8), 8, 8, 1, GREY)))
    assert dict(segs)[0xDA] == b"\x01\x01\x00\x00\x3f\x00"


@pytest.mark.parametrize("width, height", [(8, 8), (5, 3)])
def test_flat_mid_grey_block(width, height):
    _, rest = segments(payload(encode(grey_rows(width, height), width, height, 1, GREY)))
    assert rest == b"\x2b\xff\xd9"


@pytest.mark.parametrize("subsampling", list(Subsampling))
def test_rgb_grey_matches_single_channel(subsampling):
    width, height = 20, 13
    grey = [bytes(((x * 11 + y * 7) % 256) for x in range(width)) for y in range(height)]
    rgb = [bytes(v for v in row for _ in range(3)) for row in grey]
    params = Params(quality=75, subsampling=subsampling)
    a = payload(encode(grey, width, height, 1, params))
    b = payload(encode(rgb, width, height, 3, params))
    assert a == b


def test_chunks_are_full_buffers():
    stream = encode(pattern_rows(64, 64, 3), 64, 64, 3, Params(quality=95))
    data_chunks = [c for c in stream.chunks if c is not None]
    assert len(data_chunks) > 2
    assert all(len(c) == 512 for c in data_chunks[:-1])
    assert 0 < len(data_chunks[-1]) <= 512


def test_entropy_data_is_byte_stuffed():
    _, rest = segments(payload(encode(pattern_rows(48, 40, 3), 48, 40, 3, Params(quality=100))))
    entropy = rest[:-2]
    for pos, value in enumerate(entropy):
        if value == 0xFF:
            assert entropy[pos + 1] == 0


def test_encoder_reuse_is_deterministic():
    encoder = JpegEncoder()
    rows = pattern_rows(30, 22, 3)
    first = payload(encode(rows, 30, 22, 3, Params(quality=60), encoder))
    second = payload(encode(rows, 30, 22, 3, Params(quality=60), encoder))
    assert first == second


def test_higher_quality_gives_larger_output():
    rows = pattern_rows(64, 64, 3)
    low = payload(encode(rows, 64, 64, 3, Params(quality=10)))
    high = payload(encode(rows, 64, 64, 3, Params(quality=95)))
    assert len(high) > len(low)


def test_params_defaults_and_check():
    params = Params()
    assert params.quality == 85
    assert params.subsampling is Subsampling.H2V2
    assert params.check() is True
    assert Params(quality=0).check() is False
    assert Params(quality=101).check() is False
    assert Params(subsampling=7).check() is False


@pytest.mark.parametrize(
    "stream, width, height, channels, params",
    [
        (ListStream(), 0, 8, 1, None),
        (ListStream(), 8, 0, 1, None),
        (ListStream(), 8, 8, 2, None),
        (None, 8, 8, 1, None),
        (ListStream(), 8, 8, 1, Params(quality=0)),
    ],
)
def test_init_rejects_bad_arguments(stream, width, height, channels, params):
    with pytest.raises(ValueError):
        JpegEncoder().init(stream, width, height, channels, params)


def test_scanline_before_init_fails():
    with pytest.raises(JpegEncoderError):
        JpegEncoder().process_scanline(b"\x00" * 8)


def test_scanline_after_finish_fails():
    encoder = JpegEncoder()
    encoder.init(ListStream(), 8, 8, 1, GREY)
    encoder.process_scanline(None)
    with pytest.raises(JpegEncoderError):
        encoder.process_scanline(b"\x00" * 8)


def test_scanline_after_deinit_fails():
    encoder = JpegEncoder()
    encoder.init(ListStream(), 8, 8, 1, GREY)
    encoder.deinit()
    with pytest.raises(JpegEncoderError):
        encoder.process_scanline(b"\x00" * 8)


def test_short_scanline_rejected():
    encoder = JpegEncoder()
    encoder.init(ListStream(), 8, 8, 3, Params())
    with pytest.raises(ValueError):
        encoder.process_scanline(b"\x00" * 10)


def test_failing_stream_during_colour_headers():
    with pytest.raises(JpegEncoderError):
        JpegEncoder().init(ListStream(result=False), 16, 16, 3, Params())


def test_failing_stream_at_end_of_image():
    encoder = JpegEncoder()
    stream = ListStream(result=False)
    encoder.init(stream, 8, 8, 1, GREY)
    with pytest.raises(JpegEncoderError):
        encoder.process_scanline(None)
    assert len(stream.chunks) == 1