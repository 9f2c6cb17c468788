"""Image codec built on pyvips.

The batch operations talk to codecs only through `ImageCodec`, so the flood
fill and the per-file tasks can be exercised with synthetic buffers. The
pyvips implementation decodes any supported encoded format into an RGBA
uint8 numpy array and encodes such arrays back to bytes.
"""

import contextlib
import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import numpy as np

from imgbatch.logger import get_logger

_logger = get_logger("decoder")

RGB_CHANNELS = 3
RGBA_CHANNELS = 4
_GREY_ALPHA_CHANNELS = 2
_GREY_NDIM = 2
_IMAGE_NDIM = 3
_OPAQUE = 255

# Locate bundled libvips (frozen exe/_MEIPASS and source tree)
_BASE_DIR = Path(getattr(sys, "_MEIPASS", Path(__file__).resolve().parent.parent))
_LIBVIPS_DIR = _BASE_DIR / "libvips"
if os.name == "nt" and _LIBVIPS_DIR.exists():
    with contextlib.suppress(Exception):
        os.add_dll_directory(str(_LIBVIPS_DIR))

# pyvips loader nickname prefix -> format name
_LOADER_FORMATS = {
    "pngload": "png",
    "jpegload": "jpeg",
    "gifload": "gif",
    "webpload": "webp",
    "tiffload": "tiff",
    "svgload": "svg",
    "heifload": "heif",
    "jp2kload": "jp2",
    "jxlload": "jxl",
    "pdfload": "pdf",
    "ppmload": "ppm",
    "radload": "hdr",
}

# Used when libvips has no native loader for the bytes (BMP without ImageMagick)
_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"\xff\xd8\xff", "jpeg"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
    (b"BM", "bmp"),
    (b"II*\x00", "tiff"),
    (b"MM\x00*", "tiff"),
)

# target format -> (save suffix, supports alpha, takes Q)
_SAVE_FORMATS = {
    "png": (".png", True, False),
    "jpg": (".jpg", False, True),
    "jpeg": (".jpg", False, True),
    "bmp": (".bmp", False, False),
    "webp": (".webp", True, True),
}

TARGET_FORMATS = frozenset(_SAVE_FORMATS)


class DecodeError(Exception):
    """Raised when encoded bytes cannot be turned into a pixel buffer."""


class UnsupportedFormatError(DecodeError):
    """No loader recognises the data, or the target format is unknown."""


class CorruptImageError(DecodeError):
    """A loader recognised the data but failed to decode it."""


class EncodeError(Exception):
    """Raised when a pixel buffer cannot be encoded."""


def as_rgba(array: Any) -> "np.ndarray":
    """Return `array` as a C-contiguous (H, W, 4) uint8 array.

    Greyscale (H, W) and (H, W, 1) inputs are replicated to RGB; missing alpha
    is filled with 255. Raises ValueError for shapes that are not images.
    """
    arr = np.asarray(array)
    if arr.dtype != np.uint8:
        raise ValueError(f"expected uint8 pixel data, got {arr.dtype}")
    if arr.ndim == _GREY_NDIM:
        arr = arr[:, :, np.newaxis]
    if arr.ndim != _IMAGE_NDIM:
        raise ValueError(f"expected a 2-D or 3-D pixel array, got {arr.ndim} dimensions")
    bands = arr.shape[2]
    if bands == 1:
        arr = np.repeat(arr, RGB_CHANNELS, axis=2)
    elif bands not in (RGB_CHANNELS, RGBA_CHANNELS):
        raise ValueError(f"unsupported channel count: {bands}")
    if arr.shape[2] == RGB_CHANNELS:
        alpha = np.full(arr.shape[:2] + (1,), _OPAQUE, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=2)
    return np.ascontiguousarray(arr)


class ImageCodec(ABC):
    """Decode encoded bytes into RGBA buffers and encode them back."""

    @abstractmethod
    def guess_format(self, data: bytes) -> str | None:
        """Return a lowercase format name for `data`, or None if unrecognised."""
        raise NotImplementedError()

    @abstractmethod
    def decode(self, data: bytes) -> "np.ndarray":
        """Return an (H, W, 4) uint8 array.

        Raises UnsupportedFormatError or CorruptImageError.
        """
        raise NotImplementedError()

    @abstractmethod
    def encode(self, array: "np.ndarray", fmt: str, quality: int = 90) -> bytes:
        """Encode an RGBA array as `fmt`.

        Raises UnsupportedFormatError for unknown formats and EncodeError on failure.
        """
        raise NotImplementedError()


_pyvips: Any | None = None


def _get_pyvips_module() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        # Configure pyvips caches to avoid memory growth across many files
        with contextlib.suppress(Exception):
            pyvips.cache_set_max(0)
            pyvips.cache_set_max_mem(0)
            pyvips.cache_set_max_files(0)
        _pyvips = pyvips
    return _pyvips


def _sniff_signature(data: bytes) -> str | None:
    head = bytes(data[:16])
    for magic, fmt in _SIGNATURES:
        if head.startswith(magic):
            return fmt
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "webp"
    return None


class PyvipsCodec(ImageCodec):
    """`ImageCodec` backed by libvips through pyvips."""

    def guess_format(self, data: bytes) -> str | None:
        pyvips = _get_pyvips_module()
        loader = None
        with contextlib.suppress(pyvips.Error):
            loader = pyvips.Image.find_load_buffer(data)
        if loader:
            for prefix, fmt in _LOADER_FORMATS.items():
                if loader.startswith(prefix):
                    return fmt
        # magickload and unknown loaders: fall back to the file signature
        sniffed = _sniff_signature(data)
        if sniffed is None and loader:
            return loader.split("load", 1)[0]
        return sniffed

    def decode(self, data: bytes) -> "np.ndarray":
        pyvips = _get_pyvips_module()
        loader = None
        with contextlib.suppress(pyvips.Error):
            loader = pyvips.Image.find_load_buffer(data)
        if not loader:
            raise UnsupportedFormatError("no loader recognises this data")
        try:
            image = pyvips.Image.new_from_buffer(data, "", access="sequential")
            with contextlib.suppress(pyvips.Error):
                image = image.colourspace("srgb")
            if image.format != "uchar":
                image = image.cast("uchar")
            if image.bands == _GREY_ALPHA_CHANNELS:
                grey = image[0]
                image = grey.bandjoin([grey, grey, image[1]])
            elif image.bands > RGBA_CHANNELS:
                image = image.extract_band(0, n=RGBA_CHANNELS)
            mem = image.write_to_memory()
            array = np.frombuffer(mem, dtype=np.uint8).reshape(image.height, image.width, image.bands)
            return as_rgba(array.copy())
        except (pyvips.Error, ValueError) as e:
            raise CorruptImageError(f"{loader}: {e}") from e

    def encode(self, array: "np.ndarray", fmt: str, quality: int = 90) -> bytes:
        key = (fmt or "").lower()
        if key not in _SAVE_FORMATS:
            raise UnsupportedFormatError(f"Unsupported format: {fmt}")
        suffix, keeps_alpha, takes_q = _SAVE_FORMATS[key]

        pyvips = _get_pyvips_module()
        arr = as_rgba(array)
        height, width = arr.shape[:2]
        try:
            image = pyvips.Image.new_from_memory(arr.tobytes(), width, height, RGBA_CHANNELS, "uchar")
            image = image.copy(interpretation="srgb")
            if not keeps_alpha:
                image = image.flatten(background=[255, 255, 255]).cast("uchar")
            kwargs = {"Q": int(quality)} if takes_q else {}
            return image.write_to_buffer(suffix, **kwargs)
        except pyvips.Error as e:
            raise EncodeError(f"{key}: {e}") from e


def decode_file(path: str | Path, codec: ImageCodec | None = None) -> tuple[str, "np.ndarray | None", str | None]:
    """Read and decode an image file.

    Returns (path, array|None, error|None).
    """
    codec = codec or PyvipsCodec()
    try:
        data = Path(path).read_bytes()
        array = codec.decode(data)
        return str(path), array, None
    except (OSError, DecodeError) as e:
        _logger.debug("decode failed: %s: %s", path, e)
        return str(path), None, str(e)
