"""
Protocol-agnostic interfaces to the node storage and annotation layers.

Controllers only depend on these protocols. ``core.node_store``,
``core.annotations`` and ``core.view`` are local implementations; any other
storage or merge engine satisfying the same shapes can be injected.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class DataNode(Protocol):
    """An immutable record in the append log."""

    kind: str
    owner: bytes
    id1: bytes
    id2: Optional[bytes]
    parent_id: Optional[bytes]
    ref_id: Optional[bytes]
    creation_time: int
    data: Optional[bytes]
    annotations: Optional[bytes]
    has_blob: bool
    blob_length: Optional[int]
    is_licensed: bool
    license_min_distance: int

    @property
    def id(self) -> bytes:
        """Secondary id when present, otherwise the primary id."""
        ...


@dataclass
class ThreadDataParams:
    """Parameters for creating a node in a thread."""
    data: Optional[bytes] = None
    ref_id: Optional[bytes] = None
    parent_id: Optional[bytes] = None
    blob: Optional[bytes] = None


@runtime_checkable
class ThreadStore(Protocol):
    """Write side of the node storage, as seen by a thread controller."""

    def create(self, kind: str, params: ThreadDataParams) -> Awaitable[DataNode]:
        ...

    def create_edit(self, kind: str, target: DataNode, params: ThreadDataParams) -> Awaitable[DataNode]:
        ...

    def create_reaction(self, kind: str, target: DataNode, params: ThreadDataParams) -> Awaitable[DataNode]:
        ...

    def destroy(self, node: DataNode) -> Awaitable[List[DataNode]]:
        ...

    def grant_license(self, kind: str, node: DataNode, targets: List[bytes]) -> Awaitable[None]:
        ...

    def fetch(self, parent_id: bytes, tail: Optional[int] = None) -> List[DataNode]:
        ...

    def subscribe(self, parent_id: bytes,
                  callback: Callable[[List[DataNode], List[bytes]], None]) -> Callable[[], None]:
        ...


@runtime_checkable
class ReactionState(Protocol):
    """Resolved state of one reaction on a node."""

    public_keys: Any  # collection of endorsing identities as hex strings


@runtime_checkable
class MergedAnnotations(Protocol):
    """Result of resolving a node's annotation blob."""

    def get_edit_node(self) -> Optional[DataNode]:
        ...

    def get_reactions(self) -> Mapping[str, ReactionState]:
        ...


# Parses raw annotation bytes, raises on malformed input.
AnnotationResolver = Callable[[bytes], MergedAnnotations]
