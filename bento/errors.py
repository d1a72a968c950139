"""
Bento Errors
============

Error kinds shared by the page store, the HTTP API and the editor sync layer.
"""

from typing import Optional


class BentoError(Exception):
    """Base class for all Bento errors."""

    status_code = 500

    def __init__(self, message: str, block_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.block_id = block_id


class Unauthorized(BentoError):
    """Session missing, or acting identity is not the page owner."""
    status_code = 401


class CenterBlockProtected(BentoError):
    """Forbidden change to a center block (delete, retype, resize)."""
    status_code = 403


class NotFound(BentoError):
    """Target page or block is absent."""
    status_code = 404


class PageExists(BentoError):
    status_code = 409


class InvalidPlacement(BentoError):
    """Rectangle leaves the grid, overlaps another block or has a disallowed size."""
    status_code = 409


class TransportFailure(BentoError):
    """Network or server error on an issued remote call."""
    status_code = 502
