"""Input discovery for batch runs.

Discovery is a single sequential pass that returns an immutable, sorted tuple;
the parallel stage only ever reads it.
"""

from __future__ import annotations

import os
from pathlib import Path

from imgbatch.logger import get_logger
from imgbatch.path_utils import abs_path, extension_of

_logger = get_logger("discovery")

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "bmp", "webp", "tiff"})
_JPEG_ALIASES = frozenset({"jpg", "jpeg"})


def _walk_files(source_dir: str | Path):
    def _on_error(err: OSError) -> None:
        _logger.debug("walk: skipping %s: %s", getattr(err, "filename", "?"), err)

    for root, _dirs, files in os.walk(abs_path(source_dir), onerror=_on_error):
        for name in files:
            path = Path(root) / name
            if path.is_file():
                yield path


def collect_image_files(source_dir: str | Path) -> tuple[Path, ...]:
    """All files under `source_dir` (recursive) with a known image extension."""
    found = [p for p in _walk_files(source_dir) if extension_of(p) in IMAGE_EXTENSIONS]
    return tuple(sorted(found))


def _same_target(ext: str, target_format: str) -> bool:
    target = target_format.lower()
    if ext in _JPEG_ALIASES and target in _JPEG_ALIASES:
        return True
    return ext == target


def collect_convert_candidates(source_dir: str | Path, target_format: str) -> tuple[Path, ...]:
    """Files to hand to the converter.

    SVG files are skipped here, as are files already carrying the target
    extension. Everything else is left for content-based format detection.
    """
    found: list[Path] = []
    for path in _walk_files(source_dir):
        ext = extension_of(path)
        if not ext:
            continue
        if ext == "svg":
            _logger.info("Skipping SVG file: %s", path)
            continue
        if _same_target(ext, target_format):
            continue
        _logger.debug("Found supported image file: %s", path)
        found.append(path)
    return tuple(sorted(found))
