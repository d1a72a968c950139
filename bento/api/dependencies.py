"""
Shared Route Dependencies
=========================

Acting identity and error translation for the API routers.

Authentication happens upstream; the authenticator forwards the session's
username in the X-Bento-User header.
"""

import logging
from typing import Optional
from fastapi import Header, HTTPException

from ..errors import BentoError
from ..models.page_models import IDENTITY_HEADER

logger = logging.getLogger(__name__)


def get_optional_identity(
    x_bento_user: Optional[str] = Header(default=None, alias=IDENTITY_HEADER)
) -> Optional[str]:
    """Acting identity if a session is present (public reads)."""
    return x_bento_user or None


def get_acting_identity(
    x_bento_user: Optional[str] = Header(default=None, alias=IDENTITY_HEADER)
) -> str:
    """Dependency requiring an authenticated session."""
    if not x_bento_user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_bento_user


def to_http_exception(error: BentoError) -> HTTPException:
    """Translate a domain error into the matching HTTP response."""
    logger.info(f"[API] {type(error).__name__}: {error.message}")
    return HTTPException(status_code=error.status_code, detail=error.message)
