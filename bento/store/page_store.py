"""
Page Store
==========

Per-user page documents with JSON persistence.

Every write takes the acting identity explicitly and only touches the page it
owns.
"""

import json
import logging
import re
import uuid
from pathlib import Path
from typing import Optional, Dict, List
from datetime import datetime

from ..errors import CenterBlockProtected, NotFound, PageExists, Unauthorized
from ..grid.layout import validate_layout
from ..models.block_models import Block, BlockPatch, PositionUpdate
from ..models.page_models import USERNAME_PATTERN, Page

logger = logging.getLogger(__name__)


class PageStore:
    """Manages page documents, one JSON file per user."""

    def __init__(self, pages_dir: Optional[Path] = None):
        self.pages_dir = pages_dir or Path("pages")
        self.pages_dir.mkdir(parents=True, exist_ok=True)
        self._cache: Dict[str, Page] = {}
        logger.info(f"[PAGE-STORE] Initialized with pages_dir={self.pages_dir}")

    def _page_path(self, username: str) -> Path:
        return self.pages_dir / f"{username}.json"

    def create_page(self, username: str, email: str) -> Page:
        """Register a new page owner with no blocks."""
        if self.get_page(username) is not None:
            raise PageExists(f"Username '{username}' already exists")

        page = Page(username=username, email=email)
        self._cache[username] = page
        self._save_page(username)
        logger.info(f"[PAGE-STORE] Created page for {username}")
        return page

    def get_page(self, username: str) -> Optional[Page]:
        """Get page document, loading it from disk on first access."""
        if username in self._cache:
            return self._cache[username]
        if not re.match(USERNAME_PATTERN, username):
            return None

        page_path = self._page_path(username)
        if page_path.exists():
            with open(page_path) as f:
                self._cache[username] = Page.model_validate(json.load(f))
                return self._cache[username]
        return None

    def _require_page(self, username: str) -> Page:
        page = self.get_page(username)
        if page is None:
            raise NotFound(f"User '{username}' not found")
        return page

    def _authorize(self, acting_identity: Optional[str], owner: str) -> Page:
        """The acting identity must be the page owner."""
        if not acting_identity or acting_identity != owner:
            logger.warning(f"[PAGE-STORE] Rejected write by {acting_identity!r} on page {owner!r}")
            raise Unauthorized("Unauthorized")
        return self._require_page(owner)

    def list_blocks(self, username: str) -> List[Block]:
        """Persisted blocks of a page, in stored order."""
        return list(self._require_page(username).blocks)

    def get_block(self, username: str, block_id: str) -> Block:
        block = self._require_page(username).find_block(block_id)
        if block is None:
            raise NotFound("Block not found", block_id=block_id)
        return block

    def create_block(self, acting_identity: str, owner: str, block: Block) -> List[Block]:
        """
        Append a block to the owner's page.

        Returns:
            The page's full block list after the insert
        """
        page = self._authorize(acting_identity, owner)

        if page.find_block(block.id) is not None:
            block = block.model_copy(update={"id": str(uuid.uuid4())})
            logger.info(f"[PAGE-STORE] Reassigned colliding block id to {block.id}")

        if block.is_center and page.center_block() is not None:
            raise CenterBlockProtected("Page already has a center block", block_id=block.id)

        blocks = [*page.blocks, block]
        validate_layout(blocks)

        page.blocks = blocks
        self._touch(owner)
        logger.info(f"[PAGE-STORE] {owner}: added block {block.id} at ({block.position.x}, {block.position.y})")
        return list(page.blocks)

    def update_block_position(
        self,
        acting_identity: str,
        owner: str,
        block_id: str,
        update: PositionUpdate
    ) -> Block:
        """Apply a partial position update; only supplied fields change."""
        return self.update_block(acting_identity, owner, block_id, BlockPatch(position=update))

    def update_block(
        self,
        acting_identity: str,
        owner: str,
        block_id: str,
        patch: BlockPatch
    ) -> Block:
        """Apply content, style, type and position changes to one block."""
        page = self._authorize(acting_identity, owner)

        for index, block in enumerate(page.blocks):
            if block.id != block_id:
                continue

            changes = {}
            if patch.position is not None:
                position = block.position.merged(patch.position)
                if block.is_center and position.size != block.position.size:
                    raise CenterBlockProtected("Center block cannot be resized", block_id=block_id)
                changes["position"] = position
            if patch.type is not None and patch.type != block.type:
                if block.is_center:
                    raise CenterBlockProtected("Center block type cannot change", block_id=block_id)
                changes["type"] = patch.type
            if patch.content is not None:
                changes["content"] = patch.content
            if patch.style is not None:
                changes["style"] = block.style.merged(patch.style)

            updated = block.model_copy(update=changes)
            blocks = list(page.blocks)
            blocks[index] = updated
            if "position" in changes:
                validate_layout(blocks)

            page.blocks = blocks
            self._touch(owner)
            logger.info(f"[PAGE-STORE] {owner}: updated block {block_id} ({', '.join(changes) or 'no changes'})")
            return updated

        raise NotFound("Block not found", block_id=block_id)

    def delete_block(self, acting_identity: str, owner: str, block_id: str) -> None:
        """Remove a block from the owner's page. Center blocks are protected."""
        page = self._authorize(acting_identity, owner)

        block = page.find_block(block_id)
        if block is None:
            raise NotFound("Block not found", block_id=block_id)
        if block.is_center:
            raise CenterBlockProtected("Center block cannot be deleted", block_id=block_id)

        page.blocks = [b for b in page.blocks if b.id != block_id]
        self._touch(owner)
        logger.info(f"[PAGE-STORE] {owner}: deleted block {block_id}")

    def _touch(self, username: str):
        self._cache[username].updated_at = datetime.now()
        self._save_page(username)

    def _save_page(self, username: str):
        """Save page to disk."""
        if username in self._cache:
            with open(self._page_path(username), "w") as f:
                json.dump(self._cache[username].model_dump(mode="json", by_alias=True), f, indent=2)
