"""
Ordered, bounded view over the content nodes of one thread.

The view keeps every node it has been given for ordering purposes, but only
the newest ``tail`` nodes are in the window and carry a data object. Data
objects are created by ``data_factory``, filled in place by ``make_data`` on
every add or update, and handed to ``purge_data`` when they leave the window.

Ordering follows the ``ref_id`` chain: a node always sorts after the node it
references. Nodes whose reference is unknown, and siblings referencing the
same node, are ordered by ``(creation_time, id1)``.
"""
from __future__ import annotations

import heapq
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from core.log import get_logger
from core.node_types import DataNode


log = get_logger("ThreadView")

DEFAULT_TAIL = 10


@dataclass
class ViewItem:
    """A node inside the window together with its derived data."""
    id1: bytes
    node: DataNode
    data: Any


ChangeEvent = Dict[str, List[ViewItem]]


def order_nodes(nodes: Iterable[DataNode]) -> List[DataNode]:
    """Topologically order nodes by ``ref_id``, ties by ``(creation_time, id1)``."""
    by_id = {node.id1: node for node in nodes}
    children: Dict[bytes, List[DataNode]] = {}
    heap: List[Tuple[int, bytes]] = []

    for node in by_id.values():
        if node.ref_id and node.ref_id in by_id and node.ref_id != node.id1:
            children.setdefault(node.ref_id, []).append(node)
        else:
            heap.append((node.creation_time, node.id1))
    heapq.heapify(heap)

    ordered: List[DataNode] = []
    while heap:
        _, id1 = heapq.heappop(heap)
        ordered.append(by_id[id1])
        for child in children.pop(id1, []):
            heapq.heappush(heap, (child.creation_time, child.id1))

    # Reference cycles cannot come from honest writers, keep them visible anyway.
    leftover = [n for group in children.values() for n in group]
    ordered.extend(sorted(leftover, key=lambda n: (n.creation_time, n.id1)))
    return ordered


class ThreadView:
    """Incrementally updated, ordered window of thread items."""

    def __init__(self,
                 make_data: Callable[[DataNode, Any], None],
                 purge_data: Callable[[Any], None],
                 data_factory: Callable[[], Any] = dict,
                 tail: int = DEFAULT_TAIL):
        self._make_data = make_data
        self._purge_data = purge_data
        self._data_factory = data_factory
        self._tail = tail
        self._nodes: Dict[bytes, DataNode] = {}
        self._items: List[ViewItem] = []
        self._subscribers: List[Callable[[ChangeEvent], None]] = []

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_items(self) -> List[ViewItem]:
        return list(self._items)

    def get_last_item(self) -> Optional[ViewItem]:
        return self._items[-1] if self._items else None

    def find_by_id(self, id1: bytes) -> Optional[ViewItem]:
        for item in self._items:
            if item.id1 == id1:
                return item
        return None

    def get_tail(self) -> int:
        return self._tail

    def __len__(self) -> int:
        return len(self._items)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on_change(self, callback: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        """Subscribe to window changes. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _emit(self, event: ChangeEvent) -> None:
        if not (event['added'] or event['updated'] or event['removed']):
            return
        for callback in list(self._subscribers):
            callback(event)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def apply(self, nodes: Iterable[DataNode]) -> ChangeEvent:
        """Add new nodes or replace updated ones."""
        updated_ids = set()
        for node in nodes:
            if node.id1 in self._nodes:
                updated_ids.add(node.id1)
            self._nodes[node.id1] = node
        return self._rebuild(updated_ids)

    def remove(self, ids: Iterable[bytes]) -> ChangeEvent:
        """Drop nodes from the view."""
        for id1 in ids:
            self._nodes.pop(id1, None)
        return self._rebuild(set())

    def update_stream(self, tail: int) -> ChangeEvent:
        """Resize the window, e.g. to load older history."""
        self._tail = max(0, tail)
        return self._rebuild(set())

    def _rebuild(self, updated_ids: set) -> ChangeEvent:
        ordered = order_nodes(self._nodes.values())
        window = ordered[-self._tail:] if self._tail > 0 else []

        previous = {item.id1: item for item in self._items}
        event: ChangeEvent = {'added': [], 'updated': [], 'removed': []}
        items: List[ViewItem] = []

        for node in window:
            item = previous.pop(node.id1, None)
            if item is None:
                item = ViewItem(id1=node.id1, node=node, data=self._data_factory())
                self._make_data(node, item.data)
                event['added'].append(item)
            elif node.id1 in updated_ids:
                item.node = node
                self._make_data(node, item.data)
                event['updated'].append(item)
            items.append(item)

        for item in previous.values():
            self._purge_data(item.data)
            event['removed'].append(item)

        self._items = items
        if event['added'] or event['removed']:
            log.debug(f"Window now {len(items)} item(s): "
                      f"+{len(event['added'])} ~{len(event['updated'])} -{len(event['removed'])}")
        self._emit(event)
        return event
