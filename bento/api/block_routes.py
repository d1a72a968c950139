"""
Block Routes
============

API routes for block management.

Reads are public. Writes require the acting identity to own the page named by
the ``username`` query parameter (defaulting to the acting identity).
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional, List

from ..errors import BentoError
from ..models.block_models import Block, BlockPatch
from ..store.page_store import PageStore
from .dependencies import get_acting_identity, to_http_exception

router = APIRouter(prefix="/api/blocks", tags=["blocks"])

# Injected by server
page_store: Optional[PageStore] = None


def get_page_store() -> PageStore:
    """Dependency to get page store."""
    if page_store is None:
        raise HTTPException(500, "Page store not initialized")
    return page_store


@router.get("", response_model=List[Block])
async def list_blocks(
    username: Optional[str] = Query(default=None),
    store: PageStore = Depends(get_page_store)
):
    """Get all blocks for a user."""
    if not username:
        raise HTTPException(status_code=400, detail="Username is required")

    try:
        return store.list_blocks(username)
    except BentoError as e:
        raise to_http_exception(e)


@router.post("", response_model=List[Block])
async def add_block(
    block: Block,
    username: Optional[str] = Query(default=None),
    acting_identity: str = Depends(get_acting_identity),
    store: PageStore = Depends(get_page_store)
):
    """Add a block; returns the updated block list."""
    try:
        return store.create_block(acting_identity, username or acting_identity, block)
    except BentoError as e:
        raise to_http_exception(e)


@router.get("/{block_id}", response_model=Block)
async def get_block(
    block_id: str,
    username: Optional[str] = Query(default=None),
    store: PageStore = Depends(get_page_store)
):
    """Get a specific block from a user's page."""
    if not username:
        raise HTTPException(status_code=400, detail="Username is required")

    try:
        return store.get_block(username, block_id)
    except BentoError as e:
        raise to_http_exception(e)


@router.patch("/{block_id}", response_model=Block)
async def update_block(
    block_id: str,
    patch: BlockPatch,
    username: Optional[str] = Query(default=None),
    acting_identity: str = Depends(get_acting_identity),
    store: PageStore = Depends(get_page_store)
):
    """Update a block's position, content, style or type."""
    try:
        return store.update_block(acting_identity, username or acting_identity, block_id, patch)
    except BentoError as e:
        raise to_http_exception(e)


@router.delete("/{block_id}")
async def delete_block(
    block_id: str,
    username: Optional[str] = Query(default=None),
    acting_identity: str = Depends(get_acting_identity),
    store: PageStore = Depends(get_page_store)
):
    """Delete a block. Center blocks are protected."""
    try:
        store.delete_block(acting_identity, username or acting_identity, block_id)
    except BentoError as e:
        raise to_http_exception(e)

    return {"message": "Block deleted successfully", "id": block_id}
