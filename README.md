# camconv

camconv is a pure-Python library for raw camera frames. It converts RGB565, RGB888,
YUV422 (YUYV) and grayscale buffers into 24-bit BMP images or baseline JPEG files. It has
no third-party dependencies.

## Installation

```
pip install .
```

## Pixel formats

`camconv.formats.PixFormat` names the source formats: `RGB565`, `YUV422`, `GRAYSCALE`,
`JPEG` and `RGB888`.

There are two helpers for single pixels:

- `camconv.formats.rgb565_to_rgb888(hb, lb)` expands one big-endian RGB565 pixel to
  `(r, g, b)`.
- `camconv.yuv.yuv2rgb(y, u, v)` converts one YUV sample to `(r, g, b)` through a fixed
  lookup table. The results are clamped to 0–255.

Both helpers raise `ValueError` for a component outside 0–255.

## JPEG

```python
from camconv.formats import PixFormat
from camconv.to_jpg import fmt2jpg, fmt2jpg_cb

jpeg_bytes = fmt2jpg(frame, 320, 240, PixFormat.RGB565, 80)

chunks = []

def collect(index, data):
    if data is None:  # end of image
        return 0
    chunks.append(data)
    return len(data)

fmt2jpg_cb(frame, 320, 240, PixFormat.YUV422, 80, collect)
```

The callback given to `fmt2jpg_cb` is called as `callback(index, data)`:

- `index` is the number of bytes taken so far.
- `data` is a chunk of at most 512 bytes.
- A final call with `data=None` marks the end of the image.
- The callback returns how many bytes it took.

Behaviour of the JPEG functions:

- Quality is clamped to the range 1–100.
- Grayscale input gives a single-component JPEG.
- Colour input is converted to RGB and encoded with H2V2 chroma subsampling.
- `fmt2jpg` keeps at most 128 KiB of output and silently drops the rest. Use `fmt2jpg_cb`
  or `MemoryStream(max_len=...)` with `convert_image` for larger images.
- A source that is too short for the given size raises `ValueError`.
- `PixFormat.JPEG` input raises `ValueError`.

`camconv.to_jpg.convert_line_format(src, fmt, width, line)` returns one scanline as grey
bytes or RGB triples.

### Scanline encoder

`camconv.jpeg_encoder.JpegEncoder` can be driven one scanline at a time:

```python
from camconv.jpeg_encoder import JpegEncoder, Params, Subsampling
from camconv.to_jpg import MemoryStream

stream = MemoryStream()
encoder = JpegEncoder()
encoder.init(stream, width, height, 3, Params(quality=90, subsampling=Subsampling.H1V1))
for row in rgb_rows:
    encoder.process_scanline(row)
encoder.process_scanline(None)  # finish the image
jpeg_bytes = stream.getvalue()
```

An output stream is any object with a `put_buf(data)` method that returns a true value on
success. `camconv.to_jpg` provides two: `MemoryStream`, which has `getvalue()` and `size`,
and `CallbackStream`.

Errors are raised as follows:

- Invalid sizes, channel counts or `Params` raise `ValueError`.
- A failed stream write raises `JpegEncoderError`.
- Feeding scanlines to an encoder that is not initialised raises `JpegEncoderError`.

## BMP

```python
from camconv.formats import PixFormat
from camconv.to_bmp import fmt2bmp, fmt2rgb888

bmp_bytes = fmt2bmp(frame, 320, 240, PixFormat.GRAYSCALE)
bgr = fmt2rgb888(frame, PixFormat.RGB565)
```

`fmt2bmp` returns a complete top-down 24-bit BMP with a 54-byte header. It raises
`ValueError` when the source is too short.

`fmt2rgb888` converts a whole buffer to 24-bit pixels in B, G, R byte order. `RGB888` input
is returned unchanged.

`camconv.to_bmp.bmp_header(width, height)` builds the 54-byte header on its own.

## Building blocks

`camconv.jpeg_tables` holds the pieces the encoder uses:

- the standard quantisation and Huffman tables
- colour conversion: `rgb_to_ycc`, `rgb_to_y`, `y_to_ycc`
- the integer forward DCT: `dct2d`
- `compute_huffman_table`
- `compute_quant_table`

## What it does not do

- It does not decode JPEG. `PixFormat.JPEG` input to `fmt2bmp`, `fmt2rgb888` or the JPEG
  encoder raises `ValueError`.
- It does not capture frames from a camera. It only converts buffers you already hold.
- It has no command-line tool.