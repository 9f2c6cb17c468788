"""Per-file background removal: decode, fill, write PNG."""

from __future__ import annotations

import time
from pathlib import Path

from imgbatch.background.flood_fill import DEFAULT_EDGE_THRESHOLD, InvalidImageError, remove_background
from imgbatch.file_result import FAILED, OK, SKIPPED, FileResult
from imgbatch.image_engine.decoder import EncodeError, ImageCodec, PyvipsCodec, decode_file
from imgbatch.logger import get_logger
from imgbatch.path_utils import mirrored_output_path

_logger = get_logger("background_operations")

OUTPUT_FORMAT = "png"


def remove_background_file(
    path: str | Path,
    source_dir: str | Path,
    output_dir: str | Path,
    threshold: int = DEFAULT_EDGE_THRESHOLD,
    codec: ImageCodec | None = None,
) -> FileResult:
    """Remove the near-white border background of one file.

    The output mirrors the file's location under `source_dir` inside
    `output_dir` and is always PNG. Must be pickleable for multiprocessing.
    """
    start = time.perf_counter()
    codec = codec or PyvipsCodec()
    src = str(path)

    _path, array, err = decode_file(path, codec)
    if array is None:
        return FileResult(src, SKIPPED, message=f"could not decode ({err})", elapsed=time.perf_counter() - start)

    try:
        processed = remove_background(array, threshold)
    except InvalidImageError as e:
        return FileResult(src, SKIPPED, message=str(e), elapsed=time.perf_counter() - start)

    out_path = mirrored_output_path(path, source_dir, output_dir, OUTPUT_FORMAT)
    try:
        data = codec.encode(processed, OUTPUT_FORMAT)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(data)
    except (OSError, EncodeError) as e:
        _logger.debug("save failed: %s: %s", out_path, e)
        return FileResult(
            src, FAILED, output=str(out_path), message=f"failed to save: {e}", elapsed=time.perf_counter() - start
        )

    return FileResult(src, OK, output=str(out_path), elapsed=time.perf_counter() - start)
