import io

import pytest

from tests.helpers.imaging import load_pyvips

pyvips = load_pyvips()
np = pytest.importorskip("numpy")
Image = pytest.importorskip("PIL.Image")
pytestmark = pytest.mark.imaging

from imgbatch.image_engine.decoder import (  # noqa: E402
    PyvipsCodec,
    UnsupportedFormatError,
)


def _pil_bytes(img, fmt: str) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def codec() -> PyvipsCodec:
    return PyvipsCodec()


def test_guess_format_from_content(codec):
    img = Image.new("RGB", (4, 3), color=(10, 20, 30))
    assert codec.guess_format(_pil_bytes(img, "PNG")) == "png"
    assert codec.guess_format(_pil_bytes(img, "JPEG")) == "jpeg"
    assert codec.guess_format(_pil_bytes(img, "BMP")) == "bmp"
    assert codec.guess_format(b"not an image at all") is None


def test_decode_png_rgba(codec):
    arr = np.zeros((3, 4, 4), dtype=np.uint8)
    arr[..., 0] = 200
    arr[..., 3] = 128
    data = _pil_bytes(Image.fromarray(arr), "PNG")

    out = codec.decode(data)
    assert out.shape == (3, 4, 4)
    assert out.dtype == np.uint8
    np.testing.assert_array_equal(out, arr)


def test_decode_rgb_gets_opaque_alpha(codec):
    data = _pil_bytes(Image.new("RGB", (5, 2), color=(1, 2, 3)), "PNG")
    out = codec.decode(data)
    assert out.shape == (2, 5, 4)
    assert out[0, 0].tolist() == [1, 2, 3, 255]


def test_decode_greyscale(codec):
    data = _pil_bytes(Image.new("L", (2, 2), color=77), "PNG")
    out = codec.decode(data)
    assert out[1, 1].tolist() == [77, 77, 77, 255]


def test_decode_unknown_bytes_raises(codec):
    with pytest.raises(UnsupportedFormatError):
        codec.decode(b"definitely not an image")


def test_encode_png_keeps_alpha(codec):
    arr = np.full((3, 3, 4), 255, dtype=np.uint8)
    arr[0, 0, 3] = 0
    data = codec.encode(arr, "png")
    assert data.startswith(b"\x89PNG")

    back = np.asarray(Image.open(io.BytesIO(data)).convert("RGBA"))
    np.testing.assert_array_equal(back, arr)


@pytest.mark.parametrize("fmt, magic", [("jpg", b"\xff\xd8"), ("jpeg", b"\xff\xd8"), ("webp", b"RIFF")])
def test_encode_lossy_formats(codec, fmt, magic):
    arr = np.full((8, 8, 4), 120, dtype=np.uint8)
    data = codec.encode(arr, fmt, quality=80)
    assert data.startswith(magic)


def test_encode_jpeg_flattens_transparency_onto_white(codec):
    arr = np.zeros((8, 8, 4), dtype=np.uint8)
    data = codec.encode(arr, "jpg", quality=95)
    back = np.asarray(Image.open(io.BytesIO(data)).convert("RGB"))
    assert back.min() > 240


def test_encode_unknown_format_raises(codec):
    with pytest.raises(UnsupportedFormatError):
        codec.encode(np.zeros((1, 1, 4), dtype=np.uint8), "tga")
