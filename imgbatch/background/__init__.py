"""Background removal public API.

Expose the flood fill and the per-file operation as `imgbatch.background`.
"""

from imgbatch.background.background_operations import remove_background_file
from imgbatch.background.flood_fill import (
    DEFAULT_EDGE_THRESHOLD,
    NEAR_WHITE_FLOOR,
    InvalidImageError,
    VisitedGrid,
    background_mask,
    edge_adjacent_mask,
    is_edge,
    remove_background,
)

__all__ = [
    "DEFAULT_EDGE_THRESHOLD",
    "NEAR_WHITE_FLOOR",
    "InvalidImageError",
    "VisitedGrid",
    "background_mask",
    "edge_adjacent_mask",
    "is_edge",
    "remove_background",
    "remove_background_file",
]
