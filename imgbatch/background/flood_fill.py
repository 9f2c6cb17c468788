"""Border-seeded, edge-aware flood fill for near-white background removal.

The fill starts from every pixel on the outer frame and walks 4-connected
neighbours breadth-first. A pixel is removed (alpha set to 0) only when it is
near-white and none of its in-bounds neighbours differ from it by more than the
edge threshold in any RGB channel. A candidate that touches an edge is kept and
the walk does not continue through it in any direction.
"""

from collections import deque
from typing import Any

import numpy as np

from imgbatch.image_engine.decoder import as_rgba
from imgbatch.logger import get_logger

_logger = get_logger("flood_fill")

NEAR_WHITE_FLOOR = 240
DEFAULT_EDGE_THRESHOLD = 30
MAX_EDGE_THRESHOLD = 255
_ALPHA = 3


class InvalidImageError(ValueError):
    """Pixel buffer cannot be filled (empty or malformed)."""


class VisitedGrid:
    """Per-fill record of processed coordinates."""

    __slots__ = ("_cells", "height", "width")

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self._cells = bytearray(width * height)

    def mark(self, x: int, y: int) -> bool:
        """Mark (x, y); return False if it was already marked."""
        i = y * self.width + x
        if self._cells[i]:
            return False
        self._cells[i] = 1
        return True

    def __contains__(self, xy: tuple[int, int]) -> bool:
        x, y = xy
        return bool(self._cells[y * self.width + x])

    def count(self) -> int:
        return self._cells.count(1)


def validate_threshold(threshold: Any) -> int:
    if isinstance(threshold, bool) or not isinstance(threshold, (int, np.integer)):
        raise ValueError(f"edge threshold must be an integer, got {threshold!r}")
    if not 0 <= threshold <= MAX_EDGE_THRESHOLD:
        raise ValueError(f"edge threshold must be within 0..{MAX_EDGE_THRESHOLD}, got {threshold}")
    return int(threshold)


def _source_buffer(image: Any) -> "np.ndarray":
    try:
        source = as_rgba(image)
    except ValueError as e:
        raise InvalidImageError(str(e)) from e
    height, width = source.shape[:2]
    if width < 1 or height < 1:
        raise InvalidImageError(f"image must be at least 1x1, got {width}x{height}")
    return source


def is_edge(pixel_a, pixel_b, threshold: int) -> bool:
    """True if any of R, G, B differs by more than `threshold`. Alpha is ignored."""
    return (
        abs(int(pixel_a[0]) - int(pixel_b[0])) > threshold
        or abs(int(pixel_a[1]) - int(pixel_b[1])) > threshold
        or abs(int(pixel_a[2]) - int(pixel_b[2])) > threshold
    )


def near_white_mask(source: "np.ndarray") -> "np.ndarray":
    """Removal candidates: R, G and B all above NEAR_WHITE_FLOOR."""
    return np.all(source[..., :3] > NEAR_WHITE_FLOOR, axis=2)


def edge_adjacent_mask(source: "np.ndarray", threshold: int) -> "np.ndarray":
    """`is_edge` evaluated against every in-bounds 4-neighbour, for all pixels at once."""
    rgb = source[..., :3].astype(np.int16)
    horizontal = (np.abs(rgb[:, 1:] - rgb[:, :-1]) > threshold).any(axis=2)
    vertical = (np.abs(rgb[1:] - rgb[:-1]) > threshold).any(axis=2)

    mask = np.zeros(source.shape[:2], dtype=bool)
    mask[:, :-1] |= horizontal
    mask[:, 1:] |= horizontal
    mask[:-1, :] |= vertical
    mask[1:, :] |= vertical
    return mask


def _border_seeds(width: int, height: int) -> deque:
    queue: deque = deque()
    for x in range(width):
        queue.append((x, 0))
        queue.append((x, height - 1))
    for y in range(1, height - 1):
        queue.append((0, y))
        queue.append((width - 1, y))
    return queue


def _flat_flags(mask: "np.ndarray") -> bytes:
    """Row-major one-byte-per-pixel copy of a boolean mask for fast scalar lookups."""
    return np.ascontiguousarray(mask, dtype=np.uint8).tobytes()


def _fill(source: "np.ndarray", threshold: int) -> "np.ndarray":
    height, width = source.shape[:2]

    # Classification reads the source only.
    candidate = _flat_flags(near_white_mask(source))
    edged = _flat_flags(edge_adjacent_mask(source, threshold))

    visited = VisitedGrid(width, height)
    queue = _border_seeds(width, height)
    removed = np.zeros(height * width, dtype=bool)

    while queue:
        x, y = queue.popleft()
        if not visited.mark(x, y):
            continue
        i = y * width + x
        if not candidate[i] or edged[i]:
            continue

        removed[i] = True
        if x > 0:
            queue.append((x - 1, y))
        if x + 1 < width:
            queue.append((x + 1, y))
        if y > 0:
            queue.append((x, y - 1))
        if y + 1 < height:
            queue.append((x, y + 1))

    _logger.debug(
        "fill %dx%d threshold=%d: visited=%d removed=%d",
        width,
        height,
        threshold,
        visited.count(),
        int(removed.sum()),
    )
    return removed.reshape(height, width)


def background_mask(image: Any, threshold: int = DEFAULT_EDGE_THRESHOLD) -> "np.ndarray":
    """Boolean (H, W) mask of the pixels `remove_background` makes transparent."""
    threshold = validate_threshold(threshold)
    return _fill(_source_buffer(image), threshold)


def remove_background(image: Any, threshold: int = DEFAULT_EDGE_THRESHOLD) -> "np.ndarray":
    """Return an RGBA copy of `image` with the border-connected near-white region transparent.

    RGB values are never changed; removed pixels only get alpha 0. The input
    array is not modified.

    Raises:
        InvalidImageError: empty or malformed buffer.
        ValueError: threshold outside 0..255.
    """
    threshold = validate_threshold(threshold)
    source = _source_buffer(image)
    output = source.copy()
    output[_fill(source, threshold), _ALPHA] = 0
    return output
