import pytest

from camconv.yuv import yuv2rgb


def test_neutral_chroma_mid_luma():
    assert yuv2rgb(128, 128, 128) == (130, 130, 130)


def test_black_level_is_clamped_to_zero():
    assert yuv2rgb(0, 128, 128) == (0, 0, 0)
    assert yuv2rgb(16, 128, 128) == (0, 0, 0)


def test_white_level_is_clamped_to_255():
    assert yuv2rgb(255, 128, 128) == (255, 255, 255)


@pytest.mark.parametrize("y", range(0, 256, 7))
def test_neutral_chroma_gives_grey(y):
    r, g, b = yuv2rgb(y, 128, 128)
    assert r == g == b


@pytest.mark.parametrize("u", range(0, 256, 17))
@pytest.mark.parametrize("v", range(0, 256, 17))
def test_output_within_byte_range(u, v):
    for y in (0, 64, 128, 192, 255):
        assert all(0 <= c <= 255 for c in yuv2rgb(y, u, v))


def test_luma_is_monotonic_for_grey():
    values = [yuv2rgb(y, 128, 128)[0] for y in range(256)]
    assert values == sorted(values)


def test_high_v_increases_red_only():
    base = yuv2rgb(128, 128, 128)
    shifted = yuv2rgb(128, 128, 200)
    assert shifted[0] > base[0]
    assert shifted[2] == base[2]


def test_high_u_increases_blue_only():
    base = yuv2rgb(128, 128, 128)
    shifted = yuv2rgb(128, 200, 128)
    assert shifted[2] > base[2]
    assert shifted[0] == base[0]


@pytest.mark.parametrize("args", [(256, 0, 0), (0, -1, 0), (0, 0, 300)])
def test_out_of_range_component_raises(args):
    with pytest.raises(ValueError):
        yuv2rgb(*args)