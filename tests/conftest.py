"""Shared fixtures: block factory and in-memory remote block stores."""

import asyncio

import pytest

from bento.errors import NotFound, Unauthorized
from bento.models.block_models import Block, BlockStyle, BlockType, Position


def make_block(block_id, x, y, w=1, h=1, is_center=False, **kwargs):
    return Block(
        id=block_id,
        position=Position(x=x, y=y, w=w, h=h),
        is_center=is_center,
        style=kwargs.pop("style", BlockStyle(background_color="rgb(23, 23, 23)", text_color="white")),
        type=kwargs.pop("type", BlockType.TEXT),
        content=kwargs.pop("content", f"block {block_id}"),
    )


class FakeRemote:
    """In-memory stand-in for BlocksClient that records every call."""

    def __init__(self, blocks=None):
        self.blocks = list(blocks or [])
        self.calls = []
        self.failures = []

    def fail_next(self, *errors):
        """Raise these errors, in order, on the next write calls."""
        self.failures.extend(errors)

    def writes(self, name=None):
        return [c for c in self.calls if c[0] != "list" and (name is None or c[0] == name)]

    def _check(self, acting_identity, owner):
        if self.failures:
            raise self.failures.pop(0)
        if acting_identity != owner:
            raise Unauthorized("Unauthorized")

    def _index(self, block_id):
        for index, block in enumerate(self.blocks):
            if block.id == block_id:
                return index
        raise NotFound("Block not found", block_id=block_id)

    async def list_blocks(self, username):
        self.calls.append(("list", username))
        return list(self.blocks)

    async def create_block(self, acting_identity, owner, block):
        self.calls.append(("create", block))
        self._check(acting_identity, owner)
        self.blocks.append(block)
        return list(self.blocks)

    async def update_block_position(self, acting_identity, owner, block_id, update):
        self.calls.append(("update_position", block_id, update))
        self._check(acting_identity, owner)
        index = self._index(block_id)
        block = self.blocks[index]
        updated = block.model_copy(update={"position": block.position.merged(update)})
        self.blocks[index] = updated
        return updated

    async def update_block(self, acting_identity, owner, block_id, patch):
        self.calls.append(("update", block_id, patch))
        self._check(acting_identity, owner)
        index = self._index(block_id)
        block = self.blocks[index]
        changes = {}
        if patch.content is not None:
            changes["content"] = patch.content
        if patch.style is not None:
            changes["style"] = block.style.merged(patch.style)
        if patch.type is not None:
            changes["type"] = patch.type
        updated = block.model_copy(update=changes)
        self.blocks[index] = updated
        return updated

    async def delete_block(self, acting_identity, owner, block_id):
        self.calls.append(("delete", block_id))
        self._check(acting_identity, owner)
        del self.blocks[self._index(block_id)]


class HeldRemote(FakeRemote):
    """FakeRemote whose next call of a given kind can be held until released."""

    def __init__(self, blocks=None):
        super().__init__(blocks)
        self.holds = {}

    def hold(self, name):
        # Create inside the running loop
        event = asyncio.Event()
        self.holds[name] = event
        return event

    async def _wait(self, name):
        event = self.holds.pop(name, None)
        if event is not None:
            await event.wait()

    async def list_blocks(self, username):
        # The snapshot is taken when the request arrives
        self.calls.append(("list", username))
        snapshot = list(self.blocks)
        await self._wait("list")
        return snapshot

    async def create_block(self, acting_identity, owner, block):
        await self._wait("create")
        return await super().create_block(acting_identity, owner, block)

    async def update_block_position(self, acting_identity, owner, block_id, update):
        await self._wait("update_position")
        return await super().update_block_position(acting_identity, owner, block_id, update)


@pytest.fixture
def remote():
    return FakeRemote()
