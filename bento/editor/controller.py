"""
Grid Controller
===============

Turns pointer events on the grid into layout operations and sync commands.

Two interaction sessions, never live at the same time:
- drag:   drag_start -> drag_over* -> drop | drag_end
- resize: resize_start -> resize_move* -> resize_end

Resize writes are debounced: each new snapped size cancels the pending write
and schedules another after a quiet period, so one continuous drag produces a
single remote write carrying the final size.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Tuple

from ..grid.layout import cell_occupancy, empty_cells, find_block
from ..grid.resize import snapped_resize
from ..models.block_models import Block
from .sync import BlockSync

logger = logging.getLogger(__name__)

RESIZE_DEBOUNCE_SECONDS = float(os.getenv("BENTO_RESIZE_DEBOUNCE_MS", "100")) / 1000


@dataclass
class DragPayload:
    """Transfer payload carried from drag start to drop."""
    block_id: str


@dataclass
class ResizeSession:
    """State of one resize drag. Owns the debounce timer handle."""
    anchor_block_id: str
    pointer_start: Tuple[float, float]
    start_size: Tuple[int, int]
    current_preview_size: Tuple[int, int]
    acting_identity: str
    before: Block
    handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    @property
    def has_pending_write(self) -> bool:
        return self.handle is not None and not self.handle.cancelled()

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        """Schedule ``callback``, replacing any pending one."""
        self.cancel()
        self.handle = asyncio.get_running_loop().call_later(delay, callback)

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()
            self.handle = None


class GridController:
    """Interaction state for an editable grid, bound to one BlockSync."""

    def __init__(self, sync: BlockSync, debounce_seconds: Optional[float] = None):
        self.sync = sync
        self.debounce_seconds = RESIZE_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self.hovered_block_id: Optional[str] = None
        self.hovered_cell: Optional[Tuple[int, int]] = None
        self.drag: Optional[DragPayload] = None
        self.resize: Optional[ResizeSession] = None
        self._writes: Set[asyncio.Task] = set()

    @property
    def is_dragging(self) -> bool:
        return self.drag is not None

    @property
    def is_resizing(self) -> bool:
        return self.resize is not None

    @property
    def blocks(self) -> List[Block]:
        return self.sync.blocks

    def occupancy(self) -> List[List[bool]]:
        return cell_occupancy(self.sync.blocks)

    def add_targets(self) -> List[Tuple[int, int]]:
        """Empty cells that accept a click-to-add."""
        return empty_cells(self.sync.blocks)

    def _set_interaction(self) -> None:
        self.sync.interaction_active = self.is_dragging or self.is_resizing
        self.sync.previewing = self.resize.anchor_block_id if self.resize is not None else None

    # ------------------------------------------------------------------
    # Hover and click
    # ------------------------------------------------------------------

    def hover_block(self, block_id: Optional[str]) -> None:
        self.hovered_block_id = block_id

    def hover_cell(self, cell: Optional[Tuple[int, int]]) -> None:
        if self.is_dragging:
            return
        self.hovered_cell = cell

    async def click_cell(self, acting_identity: str, x: int, y: int) -> Optional[Block]:
        """Click on an empty cell adds a block there."""
        if self.is_dragging or self.is_resizing:
            return None
        return await self.sync.add_block(acting_identity, x, y)

    # ------------------------------------------------------------------
    # Drag to move
    # ------------------------------------------------------------------

    def drag_start(self, block_id: str) -> Optional[DragPayload]:
        """Begin dragging a block. The center block is not draggable."""
        if self.is_resizing:
            return None
        block = find_block(self.sync.blocks, block_id)
        if block is None or block.is_center:
            return None

        self.drag = DragPayload(block_id=block_id)
        self._set_interaction()
        return self.drag

    def drag_over(self, x: int, y: int) -> None:
        """Highlight the cell under the pointer; no mutation."""
        if self.is_dragging:
            self.hovered_cell = (x, y)

    async def drop(self, acting_identity: str, x: int, y: int, payload: Optional[DragPayload] = None) -> bool:
        """
        Drop the dragged block on (x, y).

        Returns:
            True if the block moved and the position write succeeded
        """
        payload = payload or self.drag
        if payload is None:
            return False

        try:
            return await self.sync.move_block(acting_identity, payload.block_id, x, y)
        finally:
            self.drag_end()

    def drag_end(self) -> None:
        self.drag = None
        self.hovered_cell = None
        self._set_interaction()

    # ------------------------------------------------------------------
    # Resize
    # ------------------------------------------------------------------

    def resize_start(
        self,
        acting_identity: str,
        block_id: str,
        pointer_x: float,
        pointer_y: float
    ) -> Optional[ResizeSession]:
        """Begin a resize drag. The center block has a fixed size."""
        if self.is_dragging or self.is_resizing:
            return None
        block = find_block(self.sync.blocks, block_id)
        if block is None or block.is_center:
            return None

        size = block.position.size
        self.resize = ResizeSession(
            anchor_block_id=block_id,
            pointer_start=(pointer_x, pointer_y),
            start_size=size,
            current_preview_size=size,
            acting_identity=acting_identity,
            before=block
        )
        self._set_interaction()
        return self.resize

    def resize_move(self, pointer_x: float, pointer_y: float) -> Optional[Tuple[int, int]]:
        """
        Track the pointer during a resize.

        The snapped size is applied locally when it fits; otherwise the last
        valid size stays. A changed size (re)schedules the debounced write.

        Returns:
            The current preview size
        """
        session = self.resize
        if session is None:
            return None

        start_w, start_h = session.start_size
        size = snapped_resize(
            start_w,
            start_h,
            pointer_x - session.pointer_start[0],
            pointer_y - session.pointer_start[1]
        )
        if size == session.current_preview_size:
            return size

        if self.sync.preview_size(session.anchor_block_id, *size) is None:
            return session.current_preview_size

        session.current_preview_size = size
        session.schedule(self.debounce_seconds, lambda: self._flush_resize(session))
        return size

    async def resize_end(self) -> None:
        """Pointer up: commit any pending size now and clear the session."""
        session = self.resize
        if session is None:
            return

        self.resize = None
        self._set_interaction()
        if session.has_pending_write:
            session.cancel()
            await self._write_size(session)

    def close(self) -> None:
        """Teardown: cancel pending timers so nothing is written afterwards."""
        if self.resize is not None:
            self.resize.cancel()
            self.resize = None
        self.drag = None
        self.hovered_cell = None
        self.hovered_block_id = None
        self._set_interaction()
        logger.debug("[GRID-CONTROLLER] Closed")

    async def wait_for_writes(self) -> None:
        """Wait for debounced writes already handed to the event loop."""
        if self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)

    def _flush_resize(self, session: ResizeSession) -> None:
        # Timer callback: the quiet period elapsed without another size change
        session.handle = None
        task = asyncio.get_running_loop().create_task(self._write_size(session))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)

    async def _write_size(self, session: ResizeSession) -> None:
        logger.info(
            f"[GRID-CONTROLLER] Persisting size {session.current_preview_size} "
            f"for block {session.anchor_block_id}"
        )
        ok = await self.sync.persist_size(session.acting_identity, session.anchor_block_id, session.before)
        if ok:
            session.before = find_block(self.sync.blocks, session.anchor_block_id) or session.before
