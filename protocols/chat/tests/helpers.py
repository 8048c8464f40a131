"""
Shared helpers for chat protocol tests.
"""
from typing import Optional

from core.node_store import NodeStore
from core.node_types import ThreadDataParams
from core.nodes import StoredNode


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now_ms: int = 1_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> int:
        self.now_ms += ms
        return self.now_ms


async def create_channel(store: NodeStore, name: Optional[str] = None,
                         ref_id: Optional[bytes] = None) -> StoredNode:
    """Create a channel node at the root of the store."""
    params = ThreadDataParams(
        data=name.encode('utf-8') if name is not None else None,
        ref_id=ref_id,
    )
    return await store.create("channel", params)


def make_node(owner: bytes, id1: bytes = b'\x01' * 32, ref_id: Optional[bytes] = None,
              data: Optional[bytes] = None, creation_time: int = 0, **kwargs) -> StoredNode:
    """Build an unsigned node for tests that need no store."""
    kind = kwargs.pop('kind', 'channel')
    return StoredNode(kind=kind, owner=owner, id1=id1, creation_time=creation_time,
                      ref_id=ref_id, data=data, **kwargs)
