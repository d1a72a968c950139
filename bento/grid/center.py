"""
Center Block
============

Every rendered layout shows exactly one center block. Pages without a
persisted center get a default one at render time; it is never stored.
"""

from typing import List

from ..models.block_models import (
    LIGHT_BACKGROUND, Block, BlockStyle, BlockType, Position
)

CENTER_BLOCK_ID = "center"


def default_center_block() -> Block:
    """The synthesized center block, centered in the 6x4 grid."""
    return Block(
        id=CENTER_BLOCK_ID,
        type=BlockType.TEXT,
        content="Welcome to my page",
        position=Position(x=2, y=1, w=2, h=2),
        is_center=True,
        style=BlockStyle(background_color=LIGHT_BACKGROUND, text_color="white"),
    )


def is_synthetic_center(block: Block) -> bool:
    return block.is_center and block.id == CENTER_BLOCK_ID


def renderable_blocks(persisted: List[Block]) -> List[Block]:
    """
    Blocks to display for a persisted list.

    Returns a new list; the input is never mutated. If no persisted block is a
    center block, the default one is prepended.
    """
    if any(block.is_center for block in persisted):
        return list(persisted)
    return [default_center_block(), *persisted]
