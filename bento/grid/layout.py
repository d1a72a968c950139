"""
Grid Layout Model
=================

Pure functions over a list of blocks: occupancy, collision and bounds checks.
No I/O.
"""

from typing import Iterable, List, Optional, Tuple

from ..errors import InvalidPlacement
from ..models.block_models import ALLOWED_SIZES, GRID_HEIGHT, GRID_WIDTH, Block, Position


def _overlaps(x: int, y: int, w: int, h: int, other: Position) -> bool:
    # Strict inequalities: rectangles sharing an edge do not overlap
    return (
        x < other.x + other.w
        and x + w > other.x
        and y < other.y + other.h
        and y + h > other.y
    )


def rects_overlap(a: Position, b: Position) -> bool:
    """True when the two rectangles share at least one cell."""
    return _overlaps(a.x, a.y, a.w, a.h, b)


def in_bounds(x: int, y: int, w: int, h: int) -> bool:
    return x >= 0 and y >= 0 and x + w <= GRID_WIDTH and y + h <= GRID_HEIGHT


def is_valid_placement(
    x: int,
    y: int,
    w: int,
    h: int,
    exclude_id: Optional[str],
    blocks: Iterable[Block]
) -> bool:
    """
    Check whether a w×h rectangle can sit at (x, y).

    Args:
        x, y: Top-left cell
        w, h: Size in cells
        exclude_id: Block ignored for the overlap test (the one being moved
            or resized), or None
        blocks: Current layout

    Returns:
        False if the rectangle leaves the grid or overlaps another block
    """
    if not in_bounds(x, y, w, h):
        return False
    for block in blocks:
        if block.id == exclude_id:
            continue
        if _overlaps(x, y, w, h, block.position):
            return False
    return True


def cell_occupancy(blocks: Iterable[Block]) -> List[List[bool]]:
    """Occupancy grid indexed [y][x]."""
    grid = [[False] * GRID_WIDTH for _ in range(GRID_HEIGHT)]
    for block in blocks:
        p = block.position
        for y in range(max(p.y, 0), min(p.y + p.h, GRID_HEIGHT)):
            for x in range(max(p.x, 0), min(p.x + p.w, GRID_WIDTH)):
                grid[y][x] = True
    return grid


def empty_cells(blocks: Iterable[Block]) -> List[Tuple[int, int]]:
    """Uncovered (x, y) cells in row-major order."""
    occupancy = cell_occupancy(blocks)
    return [
        (x, y)
        for y in range(GRID_HEIGHT)
        for x in range(GRID_WIDTH)
        if not occupancy[y][x]
    ]


def find_block(blocks: Iterable[Block], block_id: str) -> Optional[Block]:
    for block in blocks:
        if block.id == block_id:
            return block
    return None


def validate_layout(blocks: List[Block]) -> None:
    """
    Raise InvalidPlacement for the first block that breaks the layout rules.

    Rules: every block has an allowed size, lies inside the grid and does not
    overlap any block listed before it.
    """
    for index, block in enumerate(blocks):
        p = block.position
        if p.size not in ALLOWED_SIZES:
            raise InvalidPlacement(f"Size {p.w}x{p.h} is not allowed", block_id=block.id)
        if not is_valid_placement(p.x, p.y, p.w, p.h, block.id, blocks[:index]):
            raise InvalidPlacement(
                f"Block at ({p.x}, {p.y}) size {p.w}x{p.h} is out of bounds or overlaps",
                block_id=block.id
            )
