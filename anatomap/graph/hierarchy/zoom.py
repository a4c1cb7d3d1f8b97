"""Zoom band helpers for mapping hierarchy depth onto map zoom levels."""
from __future__ import annotations

import math
from typing import Tuple

from anatomap.config import MAX_MARKER_ZOOM, MIN_MARKER_ZOOM


def depth_to_zoom_range(
    depth: int,
    max_depth: int,
    min_marker_zoom: int = MIN_MARKER_ZOOM,
    max_marker_zoom: int = MAX_MARKER_ZOOM,
) -> Tuple[int, int]:
    """Default ``(min_zoom, max_zoom)`` band for a term at ``depth``.

    Depth is scaled linearly from ``[0, max_depth]`` onto the marker zoom
    range. Bands at or beyond the deepest zoom collapse to the terminal band
    ``(max_marker_zoom, max_marker_zoom)``.
    """
    if max_depth > 0:
        zoom = min_marker_zoom + math.floor((max_marker_zoom - min_marker_zoom) * depth / max_depth)
    else:
        zoom = min_marker_zoom
    if zoom < 0:
        return (0, 1)
    if zoom >= max_marker_zoom:
        return (max_marker_zoom, max_marker_zoom)
    return (zoom, zoom + 1)


def zoom_index(zoom_level: float, max_marker_zoom: int = MAX_MARKER_ZOOM) -> int:
    """Integer zoom record index for a (possibly fractional) map zoom."""
    return max(0, min(int(math.floor(zoom_level)), max_marker_zoom))
