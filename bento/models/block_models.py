"""
Block Models for Bento
======================

Models for grid positions, block styles and placed blocks.

The JSON wire format uses camelCase names (isCenter, backgroundColor,
textColor); python code uses the snake_case attributes.
"""

import uuid
from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


# Fixed grid geometry
GRID_WIDTH = 6
GRID_HEIGHT = 4

# Allowed (w, h) block sizes. Order matters: resize snapping picks the first
# closest member.
ALLOWED_SIZES: List[Tuple[int, int]] = [
    (1, 1),
    (1, 2),
    (2, 1),
    (2, 2),
    (2, 3),
    (3, 1),
]

# Palette used by the editor toolbar
DARK_BACKGROUND = "rgb(23, 23, 23)"
LIGHT_BACKGROUND = "rgb(38, 38, 38)"


class BlockType(str, Enum):
    """Kind of content a block renders."""
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    LINK = "link"


class Position(BaseModel):
    """Cell rectangle on the grid."""
    x: int = Field(ge=0, le=GRID_WIDTH - 1)
    y: int = Field(ge=0, le=GRID_HEIGHT - 1)
    w: int = Field(default=1, ge=1, le=GRID_WIDTH)
    h: int = Field(default=1, ge=1, le=GRID_HEIGHT)

    @property
    def size(self) -> Tuple[int, int]:
        return (self.w, self.h)

    def merged(self, update: "PositionUpdate") -> "Position":
        """Return a copy with the fields present in ``update`` applied."""
        return self.model_copy(update=update.model_dump(exclude_none=True))


class PositionUpdate(BaseModel):
    """Partial position update; only supplied fields change."""
    x: Optional[int] = Field(default=None, ge=0, le=GRID_WIDTH - 1)
    y: Optional[int] = Field(default=None, ge=0, le=GRID_HEIGHT - 1)
    w: Optional[int] = Field(default=None, ge=1, le=GRID_WIDTH)
    h: Optional[int] = Field(default=None, ge=1, le=GRID_HEIGHT)


class BlockStyle(BaseModel):
    """Free-form colors for a block."""
    model_config = ConfigDict(populate_by_name=True)

    background_color: Optional[str] = Field(default=None, alias="backgroundColor")
    text_color: Optional[str] = Field(default=None, alias="textColor")

    def merged(self, other: "BlockStyle") -> "BlockStyle":
        """Overlay the colors set on ``other``."""
        return self.model_copy(update=other.model_dump(exclude_none=True))


class Block(BaseModel):
    """A positioned, typed content unit on the grid."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: BlockType = BlockType.TEXT
    content: str = ""
    position: Position
    is_center: bool = Field(default=False, alias="isCenter")
    style: BlockStyle = Field(default_factory=BlockStyle)


class BlockPatch(BaseModel):
    """Partial block update accepted by PATCH /api/blocks/{id}."""
    position: Optional[PositionUpdate] = None
    content: Optional[str] = None
    style: Optional[BlockStyle] = None
    type: Optional[BlockType] = None


def new_block(x: int, y: int) -> Block:
    """Block created by clicking an empty cell."""
    return Block(
        type=BlockType.TEXT,
        content="New block",
        position=Position(x=x, y=y, w=1, h=1),
        is_center=False,
        style=BlockStyle(background_color=DARK_BACKGROUND, text_color="white"),
    )


def dump_blocks(blocks: List[Block]) -> List[dict]:
    """JSON-ready representation, as sent over the wire."""
    return [b.model_dump(mode="json", by_alias=True) for b in blocks]
