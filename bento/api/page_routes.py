"""
Page Routes
===========

API routes for registering page owners and reading published pages.
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Optional

from ..errors import BentoError
from ..grid.center import renderable_blocks
from ..models.page_models import PageView, RegisterRequest
from ..store.page_store import PageStore
from .dependencies import get_optional_identity, to_http_exception

router = APIRouter(prefix="/api/users", tags=["pages"])

# Injected by server
page_store: Optional[PageStore] = None


def get_page_store() -> PageStore:
    """Dependency to get page store."""
    if page_store is None:
        raise HTTPException(500, "Page store not initialized")
    return page_store


@router.post("", status_code=201)
async def register(request: RegisterRequest, store: PageStore = Depends(get_page_store)):
    """Create an empty page for a new user."""
    try:
        page = store.create_page(request.username, request.email)
    except BentoError as e:
        raise to_http_exception(e)

    return {"message": "User created successfully", "username": page.username}


@router.get("/{username}/page", response_model=PageView)
async def get_page(
    username: str,
    acting_identity: Optional[str] = Depends(get_optional_identity),
    store: PageStore = Depends(get_page_store)
):
    """Published page: blocks as rendered, plus whether the viewer may edit."""
    try:
        blocks = store.list_blocks(username)
    except BentoError as e:
        raise to_http_exception(e)

    return PageView(
        username=username,
        blocks=renderable_blocks(blocks),
        editable=acting_identity == username
    )
