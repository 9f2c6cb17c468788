"""Format conversion of a single file.

The source format is detected from the file's content, not its extension.
Only PNG, JPEG and BMP sources are converted; outputs land flat in the output
directory as <stem>.<format> and existing outputs are never overwritten.
"""

from __future__ import annotations

import math
import time
from pathlib import Path

from imgbatch.file_result import FAILED, OK, SKIPPED, FileResult
from imgbatch.image_engine.decoder import (
    TARGET_FORMATS,
    DecodeError,
    EncodeError,
    ImageCodec,
    PyvipsCodec,
    UnsupportedFormatError,
)
from imgbatch.logger import get_logger
from imgbatch.path_utils import extension_of, flat_output_path

_logger = get_logger("converter")

CONVERTIBLE_SOURCE_FORMATS = frozenset({"png", "jpeg", "bmp"})
DEFAULT_QUALITY = 90


def format_size(size_bytes: int) -> str:
    if size_bytes == 0:
        return "0B"
    if size_bytes < 0:
        raise ValueError("size_bytes must be non-negative")
    size_name = ("B", "KB", "MB", "GB", "TB")
    i = min(int(math.floor(math.log(size_bytes, 1024))), len(size_name) - 1)
    s = round(size_bytes / math.pow(1024, i), 2)
    return f"{s} {size_name[i]}"


def is_target_format(fmt: str) -> bool:
    return (fmt or "").lower() in TARGET_FORMATS


def convert_image(
    img_path: str | Path,
    output_dir: str | Path,
    target_format: str,
    codec: ImageCodec | None = None,
    quality: int = DEFAULT_QUALITY,
) -> FileResult:
    """Convert one image to `target_format`. Must be pickleable for multiprocessing."""
    start = time.perf_counter()
    codec = codec or PyvipsCodec()
    src = str(img_path)
    target = (target_format or "").lower()

    def _result(status: str, output: Path | None = None, message: str = "") -> FileResult:
        return FileResult(
            src, status, output=str(output) if output else None, message=message, elapsed=time.perf_counter() - start
        )

    if extension_of(img_path) == "svg":
        return _result(SKIPPED, message="SVG files are not supported")

    try:
        data = Path(img_path).read_bytes()
    except OSError as e:
        return _result(FAILED, message=f"could not read: {e}")

    fmt = codec.guess_format(data)
    if fmt is None:
        return _result(FAILED, message="could not determine image format")
    if fmt not in CONVERTIBLE_SOURCE_FORMATS:
        return _result(SKIPPED, message=f"unsupported file format ({fmt})")

    try:
        array = codec.decode(data)
    except DecodeError as e:
        _logger.debug("decode failed: %s: %s", img_path, e)
        return _result(SKIPPED, message=f"could not decode ({e})")

    output_path = flat_output_path(img_path, output_dir, target)
    if output_path.exists():
        return _result(SKIPPED, output_path, "output already exists")

    try:
        encoded = codec.encode(array, target, quality=quality)
    except UnsupportedFormatError as e:
        return _result(FAILED, message=str(e))
    except EncodeError as e:
        return _result(FAILED, message=f"could not encode: {e}")

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(encoded)
    except OSError as e:
        return _result(FAILED, output_path, f"failed to save: {e}")

    _logger.debug("converted %s -> %s (%s)", img_path, output_path, format_size(len(encoded)))
    return _result(OK, output_path)
