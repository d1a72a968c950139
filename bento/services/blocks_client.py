"""
Blocks API Client for Bento
===========================

HTTP client for the block store API. Implements the remote side of the editor
sync layer: every write carries the acting identity explicitly, and HTTP
outcomes are mapped onto Bento error kinds.
"""

import os
import logging
from typing import Any, Dict, List, Optional
import httpx

from ..errors import (
    BentoError, CenterBlockProtected, InvalidPlacement, NotFound, TransportFailure, Unauthorized
)
from ..models.block_models import Block, BlockPatch, PositionUpdate
from ..models.page_models import IDENTITY_HEADER

logger = logging.getLogger(__name__)

BENTO_API_URL = os.getenv("BENTO_API_URL", "http://localhost:8080")

STATUS_ERRORS = {
    401: Unauthorized,
    403: CenterBlockProtected,
    404: NotFound,
    409: InvalidPlacement,
}


class BlocksClient:
    """
    Async client for /api/blocks.

    Usage:
        client = BlocksClient()
        blocks = await client.list_blocks("alice")
        await client.update_block_position("alice", "alice", block_id, PositionUpdate(x=1, y=0))
        await client.close()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url or BENTO_API_URL
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        logger.info(f"[BLOCKS-CLIENT] Initialized with base URL: {self.base_url}")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"}
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        acting_identity: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None
    ) -> httpx.Response:
        headers = {IDENTITY_HEADER: acting_identity} if acting_identity else None

        try:
            client = await self._get_client()
            response = await client.request(method, path, params=params, json=json, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"[BLOCKS-CLIENT-TIMEOUT] {method} {path} timed out")
            raise TransportFailure("Request timed out") from e
        except httpx.TransportError as e:
            logger.error(f"[BLOCKS-CLIENT-ERROR] {method} {path}: {type(e).__name__}: {e}")
            raise TransportFailure(f"Connection error: {e}") from e

        if response.is_success:
            return response

        detail = self._error_detail(response)
        logger.error(f"[BLOCKS-CLIENT-ERROR] {method} {path}: HTTP {response.status_code}: {detail}")
        error_class = STATUS_ERRORS.get(response.status_code)
        if error_class is not None:
            raise error_class(detail)
        if response.status_code >= 500:
            raise TransportFailure(f"HTTP {response.status_code}: {detail}")
        raise BentoError(f"HTTP {response.status_code}: {detail}")

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(data, dict) and "detail" in data:
            return str(data["detail"])
        return response.text[:200]

    async def list_blocks(self, username: str) -> List[Block]:
        """Public read of a user's persisted blocks."""
        response = await self._request("GET", "/api/blocks", params={"username": username})
        return [Block.model_validate(b) for b in response.json()]

    async def create_block(self, acting_identity: str, owner: str, block: Block) -> List[Block]:
        """Add a block; returns the server's canonical block list."""
        response = await self._request(
            "POST",
            "/api/blocks",
            acting_identity=acting_identity,
            params={"username": owner},
            json=block.model_dump(mode="json", by_alias=True)
        )
        blocks = [Block.model_validate(b) for b in response.json()]
        logger.info(f"[BLOCKS-CLIENT-OK] create {block.id}, page now has {len(blocks)} blocks")
        return blocks

    async def update_block_position(
        self,
        acting_identity: str,
        owner: str,
        block_id: str,
        update: PositionUpdate
    ) -> Block:
        """Partial position update."""
        return await self.update_block(acting_identity, owner, block_id, BlockPatch(position=update))

    async def update_block(
        self,
        acting_identity: str,
        owner: str,
        block_id: str,
        patch: BlockPatch
    ) -> Block:
        """Content, style, type or position update."""
        response = await self._request(
            "PATCH",
            f"/api/blocks/{block_id}",
            acting_identity=acting_identity,
            params={"username": owner},
            json=patch.model_dump(mode="json", by_alias=True, exclude_none=True)
        )
        logger.info(f"[BLOCKS-CLIENT-OK] update {block_id}")
        return Block.model_validate(response.json())

    async def delete_block(self, acting_identity: str, owner: str, block_id: str) -> None:
        await self._request(
            "DELETE",
            f"/api/blocks/{block_id}",
            acting_identity=acting_identity,
            params={"username": owner}
        )
        logger.info(f"[BLOCKS-CLIENT-OK] delete {block_id}")
