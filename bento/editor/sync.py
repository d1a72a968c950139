"""
Block Sync
==========

Optimistic local mutation, remote persistence and reconciliation for one
user's page.

``blocks`` is the working copy the grid renders (center block included).
``remote_blocks`` is the last-known persisted list. Every mutation is applied
to ``blocks`` first, then written remotely with the acting identity. When a
write fails, the affected block is restored from the snapshot taken before
the mutation, unless a later change has touched it since.
"""

import asyncio
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from ..errors import BentoError, NotFound, TransportFailure
from ..grid.center import is_synthetic_center, renderable_blocks
from ..grid.layout import find_block, is_valid_placement
from ..models.block_models import (
    DARK_BACKGROUND, LIGHT_BACKGROUND, Block, BlockPatch, BlockStyle, BlockType,
    PositionUpdate, dump_blocks, new_block
)

logger = logging.getLogger(__name__)

RETRY_BACKOFF_SECONDS = float(os.getenv("BENTO_RETRY_BACKOFF_MS", "500")) / 1000


class BlockRemote(Protocol):
    """Remote block store operations used by the sync layer."""

    async def list_blocks(self, username: str) -> List[Block]: ...

    async def create_block(self, acting_identity: str, owner: str, block: Block) -> List[Block]: ...

    async def update_block_position(
        self, acting_identity: str, owner: str, block_id: str, update: PositionUpdate
    ) -> Block: ...

    async def update_block(
        self, acting_identity: str, owner: str, block_id: str, patch: BlockPatch
    ) -> Block: ...

    async def delete_block(self, acting_identity: str, owner: str, block_id: str) -> None: ...


class SyncNotice(BaseModel):
    """Non-blocking notice about a write that did not stick."""
    action: str
    block_id: Optional[str] = None
    error: str
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)


@dataclass
class PendingWrite:
    """Pre-mutation snapshot kept alongside an in-flight write."""
    action: str
    block_id: str
    seq: int
    index: int
    before: Optional[Block]  # None when the write adds the block
    applied: Optional[Block]  # None when the write removes the block


class BlockSync:
    """Local working copy of one page, kept in step with the remote store."""

    def __init__(self, remote: BlockRemote, owner: str, retry_backoff: Optional[float] = None):
        self.remote = remote
        self.owner = owner
        self.retry_backoff = RETRY_BACKOFF_SECONDS if retry_backoff is None else retry_backoff
        self.blocks: List[Block] = []
        self.remote_blocks: List[Block] = []
        self.notices: List[SyncNotice] = []
        # Set by the interaction controller while a drag or resize is live
        self.interaction_active = False
        # Block whose size is being previewed by a live resize, if any
        self.previewing: Optional[str] = None
        self._in_flight = 0
        self._open_writes: Dict[str, int] = {}
        # Bumped whenever a write starts or finishes
        self._revision = 0
        self._seq = 0
        self._confirmed_seq: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Reads and reconciliation
    # ------------------------------------------------------------------

    async def load(self) -> List[Block]:
        """Fetch the persisted list and replace local state with its rendered form."""
        self.remote_blocks = await self.remote.list_blocks(self.owner)
        self.blocks = renderable_blocks(self.remote_blocks)
        logger.info(f"[SYNC] Loaded {len(self.remote_blocks)} blocks for {self.owner}")
        return self.blocks

    async def refresh(self) -> bool:
        """
        Background pass: fetch a new remote snapshot, then reconcile.

        A snapshot fetched while any write started or finished may predate
        that write and is dropped.
        """
        revision = self._revision
        try:
            snapshot = await self.remote.list_blocks(self.owner)
        except BentoError as e:
            logger.warning(f"[SYNC] Refresh failed: {type(e).__name__}: {e.message}")
            return False

        if self._revision != revision:
            logger.debug(f"[SYNC] Dropping refresh for {self.owner}: writes changed state while fetching")
            return False

        self.remote_blocks = snapshot
        return self.reconcile()

    def reconcile(self) -> bool:
        """
        Converge local state to the remote snapshot.

        Skipped while an interaction or a write is in progress.

        Returns:
            True if local state was overwritten
        """
        if self.interaction_active or self._in_flight:
            return False

        remote_view = renderable_blocks(self.remote_blocks)
        if dump_blocks(remote_view) == dump_blocks(self.blocks):
            return False

        self.blocks = remote_view
        logger.info(f"[SYNC] Local state diverged from remote for {self.owner}; reset to remote snapshot")
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_block(self, acting_identity: str, x: int, y: int) -> Optional[Block]:
        """Add a 1x1 block at an empty cell. Occupied cells are a silent no-op."""
        if not is_valid_placement(x, y, 1, 1, None, self.blocks):
            logger.debug(f"[SYNC] Add at ({x}, {y}) rejected: cell unavailable")
            return None

        block = new_block(x, y)
        self.blocks.append(block)
        write = self._pending("add", block.id, len(self.blocks) - 1, None, block)

        with self._writing(write):
            try:
                server_blocks = await self.remote.create_block(acting_identity, self.owner, block)
            except BentoError as e:
                self._fail(write, e)
                return None

        # Server list is canonical after an add, except for blocks still
        # being changed locally
        self.remote_blocks = server_blocks
        self.blocks = self._keep_local_changes(renderable_blocks(server_blocks))
        return find_block(self.blocks, block.id) or block

    async def move_block(self, acting_identity: str, block_id: str, x: int, y: int) -> bool:
        """Move a block to (x, y), keeping its size. Invalid targets are a no-op."""
        index = self._index_of(block_id)
        if index < 0:
            return False
        block = self.blocks[index]
        if block.is_center:
            return False

        p = block.position
        if not is_valid_placement(x, y, p.w, p.h, block.id, self.blocks):
            logger.debug(f"[SYNC] Move of {block_id} to ({x}, {y}) rejected")
            return False

        moved = block.model_copy(update={"position": p.model_copy(update={"x": x, "y": y})})
        self.blocks[index] = moved
        write = self._pending("move", block_id, index, block, moved)
        return await self._persist_position(acting_identity, write, PositionUpdate(x=x, y=y))

    def preview_size(self, block_id: str, w: int, h: int) -> Optional[Block]:
        """
        Resize a block locally, without a remote write.

        Returns:
            The resized block, or None if the size does not fit at the
            block's current position
        """
        index = self._index_of(block_id)
        if index < 0:
            return None
        block = self.blocks[index]
        if block.is_center:
            return None

        p = block.position
        if not is_valid_placement(p.x, p.y, w, h, block.id, self.blocks):
            return None

        resized = block.model_copy(update={"position": p.model_copy(update={"w": w, "h": h})})
        self.blocks[index] = resized
        return resized

    async def persist_size(self, acting_identity: str, block_id: str, before: Block) -> bool:
        """Write the block's current local size; ``before`` is restored on failure."""
        index = self._index_of(block_id)
        if index < 0:
            return False
        current = self.blocks[index]
        write = self._pending("resize", block_id, index, before, current)
        update = PositionUpdate(w=current.position.w, h=current.position.h)
        return await self._persist_position(acting_identity, write, update)

    async def edit_block(
        self,
        acting_identity: str,
        block_id: str,
        content: Optional[str] = None,
        style: Optional[BlockStyle] = None,
        block_type: Optional[BlockType] = None
    ) -> bool:
        """Change content, style or type of a block."""
        index = self._index_of(block_id)
        if index < 0:
            return False
        block = self.blocks[index]

        if self._is_synthetic(block):
            logger.info("[SYNC] Default center block is not persisted; edit ignored")
            return False
        if block_type is not None and block.is_center and block_type != block.type:
            return False

        changes = {}
        if content is not None:
            changes["content"] = content
        if style is not None:
            changes["style"] = block.style.merged(style)
        if block_type is not None:
            changes["type"] = block_type
        if not changes:
            return False

        edited = block.model_copy(update=changes)
        self.blocks[index] = edited
        write = self._pending("edit", block_id, index, block, edited)
        patch = BlockPatch(content=content, style=style, type=block_type)

        with self._writing(write):
            try:
                confirmed = await self.remote.update_block(acting_identity, self.owner, block_id, patch)
            except BentoError as e:
                self._fail(write, e)
                return False

        self._confirm(write, confirmed)
        return True

    async def toggle_background(self, acting_identity: str, block_id: str) -> bool:
        """Flip a block between the two palette backgrounds."""
        block = find_block(self.blocks, block_id)
        if block is None:
            return False
        color = LIGHT_BACKGROUND if block.style.background_color == DARK_BACKGROUND else DARK_BACKGROUND
        return await self.edit_block(acting_identity, block_id, style=BlockStyle(background_color=color))

    async def delete_block(self, acting_identity: str, block_id: str) -> bool:
        """Remove a block. The center block cannot be deleted."""
        index = self._index_of(block_id)
        before = None
        if index >= 0:
            before = self.blocks[index]
            if before.is_center:
                return False
            del self.blocks[index]
        write = self._pending("delete", block_id, index, before, None)

        with self._writing(write):
            try:
                await self._retrying(self.remote.delete_block, acting_identity, self.owner, block_id)
            except NotFound:
                logger.info(f"[SYNC] Block {block_id} already absent remotely")
            except BentoError as e:
                self._fail(write, e)
                return False

        self.remote_blocks = [b for b in self.remote_blocks if b.id != block_id]
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _persist_position(self, acting_identity: str, write: PendingWrite, update: PositionUpdate) -> bool:
        with self._writing(write):
            try:
                confirmed = await self._retrying(
                    self.remote.update_block_position, acting_identity, self.owner, write.block_id, update
                )
            except BentoError as e:
                self._fail(write, e)
                return False

        self._confirm(write, confirmed)
        return True

    async def _retrying(self, call, *args):
        """Run an idempotent remote call, retrying once after a transport failure."""
        try:
            return await call(*args)
        except TransportFailure as e:
            logger.warning(f"[SYNC] Transport failure, retrying once in {self.retry_backoff}s: {e.message}")
            await asyncio.sleep(self.retry_backoff)
            return await call(*args)

    @contextmanager
    def _writing(self, write: PendingWrite):
        self._in_flight += 1
        self._open_writes[write.block_id] = self._open_writes.get(write.block_id, 0) + 1
        self._revision += 1
        try:
            yield
        finally:
            self._in_flight -= 1
            self._revision += 1
            remaining = self._open_writes[write.block_id] - 1
            if remaining:
                self._open_writes[write.block_id] = remaining
            else:
                del self._open_writes[write.block_id]

    def _keep_local_changes(self, server_view: List[Block]) -> List[Block]:
        """
        Server view with the local version of every block that has a write in
        flight or a live resize preview.
        """
        held = set(self._open_writes)
        if self.previewing is not None:
            held.add(self.previewing)
        if not held:
            return server_view

        local = {b.id: b for b in self.blocks if b.id in held}
        merged = []
        for block in server_view:
            if block.id not in held:
                merged.append(block)
            elif block.id in local:
                merged.append(local.pop(block.id))
            # held but gone locally: a delete is in flight
        merged.extend(local.values())
        return merged

    def _pending(
        self,
        action: str,
        block_id: str,
        index: int,
        before: Optional[Block],
        applied: Optional[Block]
    ) -> PendingWrite:
        self._seq += 1
        return PendingWrite(action, block_id, self._seq, index, before, applied)

    def _confirm(self, write: PendingWrite, confirmed: Block) -> None:
        """Record a server-confirmed block in the remote snapshot."""
        # An older write acknowledged after a newer one must not win
        if write.seq < self._confirmed_seq.get(write.block_id, 0):
            return
        self._confirmed_seq[write.block_id] = write.seq
        self.remote_blocks = [confirmed if b.id == confirmed.id else b for b in self.remote_blocks]

    def _fail(self, write: PendingWrite, error: BentoError) -> None:
        self._rollback(write)
        self.notices.append(SyncNotice(
            action=write.action,
            block_id=write.block_id,
            error=type(error).__name__,
            message=error.message
        ))
        logger.error(f"[SYNC] {write.action} of {write.block_id} failed: {type(error).__name__}: {error.message}")

    def _rollback(self, write: PendingWrite) -> None:
        index = self._index_of(write.block_id)

        if write.applied is None:
            # Removed optimistically: put it back where it was
            if index < 0 and write.before is not None:
                self.blocks.insert(min(write.index, len(self.blocks)), write.before)
            return

        if index < 0:
            return
        if self.blocks[index].model_dump() != write.applied.model_dump():
            logger.info(f"[SYNC] {write.block_id} changed again since the failed {write.action}; keeping newer state")
            return

        if write.before is None:
            del self.blocks[index]
        else:
            self.blocks[index] = write.before

    def _index_of(self, block_id: str) -> int:
        for index, block in enumerate(self.blocks):
            if block.id == block_id:
                return index
        return -1

    def _is_synthetic(self, block: Block) -> bool:
        return is_synthetic_center(block) and find_block(self.remote_blocks, block.id) is None
