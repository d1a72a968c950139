"""
Resize Snapping
===============

Maps a continuous pointer drag onto the discrete set of allowed block sizes.
"""

import math
from typing import Sequence, Tuple

from ..models.block_models import ALLOWED_SIZES

# One grid unit per this many pixels, in both axes
PIXELS_PER_CELL = 200


def pointer_delta_to_units(delta_px: float) -> int:
    """Whole grid units covered by a pointer delta (floored)."""
    return math.floor(delta_px / PIXELS_PER_CELL)


def snap_size(
    candidate_w: int,
    candidate_h: int,
    allowed: Sequence[Tuple[int, int]] = ALLOWED_SIZES
) -> Tuple[int, int]:
    """
    Nearest allowed size by Manhattan distance.

    Ties resolve to the earliest member of ``allowed``.
    """
    best = allowed[0]
    best_distance = abs(best[0] - candidate_w) + abs(best[1] - candidate_h)
    for w, h in allowed[1:]:
        distance = abs(w - candidate_w) + abs(h - candidate_h)
        if distance < best_distance:
            best, best_distance = (w, h), distance
    return best


def snapped_resize(
    start_w: int,
    start_h: int,
    delta_x_px: float,
    delta_y_px: float
) -> Tuple[int, int]:
    """Snapped size for a block that started at start_w×start_h."""
    candidate_w = start_w + pointer_delta_to_units(delta_x_px)
    candidate_h = start_h + pointer_delta_to_units(delta_y_px)
    return snap_size(candidate_w, candidate_h)
