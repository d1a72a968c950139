"""
Tests for BlocksClient against the real app over an in-process transport,
including the editor sync layer driving it.
"""

import asyncio
import subprocess
import sys
from pathlib import Path

import httpx
import pytest

from bento import server
from bento.editor.sync import BlockSync
from bento.errors import CenterBlockProtected, InvalidPlacement, NotFound, TransportFailure, Unauthorized
from bento.models.block_models import BlockPatch, BlockStyle, PositionUpdate
from bento.services.blocks_client import BlocksClient
from bento.store.page_store import PageStore
from conftest import make_block


@pytest.fixture
def store(tmp_path):
    s = PageStore(pages_dir=tmp_path)
    s.create_page("alice", "alice@example.com")
    server.install_page_store(s)
    yield s
    server.install_page_store(None)


def make_client():
    return BlocksClient(base_url="http://testserver", transport=httpx.ASGITransport(app=server.app))


def run(coro_fn):
    async def wrapper():
        client = make_client()
        try:
            return await coro_fn(client)
        finally:
            await client.close()

    return asyncio.run(wrapper())


# ── client ───────────────────────────────────────────────────────────────────

class TestBlocksClient:
    def test_create_and_list(self, store):
        async def scenario(client):
            created = await client.create_block("alice", "alice", make_block("a", 0, 0))
            listed = await client.list_blocks("alice")
            return created, listed

        created, listed = run(scenario)
        assert [b.id for b in created] == ["a"]
        assert listed == created
        assert listed[0].style.background_color == "rgb(23, 23, 23)"

    def test_partial_position_update(self, store):
        store.create_block("alice", "alice", make_block("a", 0, 0))

        async def scenario(client):
            return await client.update_block_position("alice", "alice", "a", PositionUpdate(w=2))

        block = run(scenario)
        assert (block.position.x, block.position.y, block.position.w, block.position.h) == (0, 0, 2, 1)

    def test_style_patch(self, store):
        store.create_block("alice", "alice", make_block("a", 0, 0))

        async def scenario(client):
            patch = BlockPatch(style=BlockStyle(background_color="rgb(38, 38, 38)"))
            return await client.update_block("alice", "alice", "a", patch)

        block = run(scenario)
        assert block.style.background_color == "rgb(38, 38, 38)"
        assert block.style.text_color == "white"

    def test_error_mapping(self, store):
        store.create_block("alice", "alice", make_block("a", 0, 0))
        store.create_block("alice", "alice", make_block("c", 2, 1, 2, 2, is_center=True))

        async def scenario(client):
            with pytest.raises(NotFound):
                await client.delete_block("alice", "alice", "ghost")
            with pytest.raises(Unauthorized):
                await client.delete_block("bob", "alice", "a")
            with pytest.raises(CenterBlockProtected):
                await client.delete_block("alice", "alice", "c")
            with pytest.raises(InvalidPlacement):
                await client.update_block_position("alice", "alice", "a", PositionUpdate(x=2, y=1))

        run(scenario)
        assert [b.id for b in store.list_blocks("alice")] == ["a", "c"]

    def test_unreachable_server(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def scenario():
            client = BlocksClient(base_url="http://testserver", transport=httpx.MockTransport(refuse))
            try:
                with pytest.raises(TransportFailure):
                    await client.list_blocks("alice")
            finally:
                await client.close()

        asyncio.run(scenario())

    def test_server_error_is_transport_failure(self):
        async def scenario():
            transport = httpx.MockTransport(lambda request: httpx.Response(503, text="unavailable"))
            client = BlocksClient(base_url="http://testserver", transport=transport)
            try:
                with pytest.raises(TransportFailure):
                    await client.delete_block("alice", "alice", "a")
            finally:
                await client.close()

        asyncio.run(scenario())


# ── sync over the client ─────────────────────────────────────────────────────

class TestSyncEndToEnd:
    def test_add_move_delete(self, store):
        async def scenario(client):
            sync = BlockSync(client, "alice", retry_backoff=0)
            await sync.load()
            block = await sync.add_block("alice", 0, 0)
            assert await sync.move_block("alice", block.id, 5, 3)
            assert await sync.delete_block("alice", block.id)
            return sync, block

        sync, block = run(scenario)
        assert store.list_blocks("alice") == []
        assert [b.id for b in sync.blocks] == ["center"]
        assert sync.notices == []

    def test_foreign_editor_rolled_back(self, store):
        store.create_block("alice", "alice", make_block("a", 0, 0))

        async def scenario(client):
            sync = BlockSync(client, "alice", retry_backoff=0)
            await sync.load()
            assert not await sync.move_block("mallory", "a", 5, 0)
            return sync

        sync = run(scenario)
        moved = [b for b in sync.blocks if b.id == "a"][0]
        assert (moved.position.x, moved.position.y) == (0, 0)
        assert sync.notices[-1].error == "Unauthorized"
        assert store.get_block("alice", "a").position.x == 0

    def test_refresh_picks_up_other_session(self, store):
        async def scenario(client):
            sync = BlockSync(client, "alice", retry_backoff=0)
            await sync.load()
            store.create_block("alice", "alice", make_block("b", 4, 0))
            assert await sync.refresh()
            return sync

        sync = run(scenario)
        assert [b.id for b in sync.blocks] == ["center", "b"]


def test_client_imports_without_fastapi():
    check = (
        "import sys\n"
        "import bento.services.blocks_client\n"
        "assert 'fastapi' not in sys.modules, sorted(m for m in sys.modules if m.startswith('fastapi'))\n"
    )
    result = subprocess.run(
        [sys.executable, "-c", check],
        cwd=Path(__file__).resolve().parent.parent,
        capture_output=True,
        text=True
    )
    assert result.returncode == 0, result.stderr
