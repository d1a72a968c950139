"""
Page Models for Bento
=====================

Models for the per-user page document and its HTTP payloads.
"""

from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime

from .block_models import Block

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"

# Set by the upstream authenticator to the session's username
IDENTITY_HEADER = "X-Bento-User"


class Page(BaseModel):
    """A user's page: the persisted document holding their blocks."""
    username: str = Field(min_length=1, max_length=64, pattern=USERNAME_PATTERN)
    email: str
    register_date: datetime = Field(default_factory=datetime.now)
    blocks: List[Block] = Field(default_factory=list)
    updated_at: Optional[datetime] = None

    def find_block(self, block_id: str) -> Optional[Block]:
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    def center_block(self) -> Optional[Block]:
        for block in self.blocks:
            if block.is_center:
                return block
        return None


class RegisterRequest(BaseModel):
    """Request to register a page owner."""
    username: str = Field(min_length=1, max_length=64, pattern=USERNAME_PATTERN)
    email: str


class PageView(BaseModel):
    """What a visitor sees at /{username}."""
    username: str
    blocks: List[Block]
    editable: bool = False
