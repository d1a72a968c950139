"""
Bento Server
============

FastAPI server for the link-in-bio grid page builder.

Features:
- Public page and block reads per username
- Owner-only block writes (add, move, resize, edit, delete)
- Page documents persisted as JSON files
"""

import os
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

from . import __version__
from .store.page_store import PageStore
from .api import block_routes, page_routes


# Shared store instance
page_store: PageStore = None


def install_page_store(store: PageStore) -> None:
    """Inject the page store into route modules."""
    global page_store
    page_store = store
    block_routes.page_store = store
    page_routes.page_store = store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("[BENTO] Starting up...")

    pages_dir = Path(os.getenv("BENTO_DATA_DIR", Path(__file__).parent.parent / "pages"))
    install_page_store(PageStore(pages_dir=pages_dir))

    logger.info("[BENTO] Page store initialized")

    yield

    logger.info("[BENTO] Shutting down...")


# Create FastAPI app
app = FastAPI(
    title="Bento",
    description="Link-in-bio page builder on a 6x4 block grid",
    version=__version__,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(page_routes.router)
app.include_router(block_routes.router)


@app.get("/")
async def root():
    """Return API info."""
    return {
        "service": "Bento",
        "version": __version__,
        "status": "running",
        "endpoints": {
            "page": "/api/users/{username}/page",
            "blocks": "/api/blocks?username={username}",
            "block": "/api/blocks/{block_id}"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "bento",
        "pages_dir": str(page_store.pages_dir) if page_store else None
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "bento.server:app",
        host="0.0.0.0",
        port=8080,
        reload=True
    )
