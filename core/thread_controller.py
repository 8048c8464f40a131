"""
Thread controller base class.

A thread controller binds one thread (the children of ``parent_id`` in the
store) to a ``ThreadView`` and re-publishes every view change as a single
"changed" notification. Subclasses decide what data each item carries by
overriding ``new_data``, ``make_data`` and ``purge_data``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from core.log import get_logger
from core.node_types import DataNode, ThreadStore
from core.view import DEFAULT_TAIL, ChangeEvent, ThreadView, ViewItem


log = get_logger("ThreadController")


@dataclass
class ThreadControllerParams:
    thread_name: Optional[str] = None
    parent_id: Optional[bytes] = None
    tail: int = DEFAULT_TAIL


class ThreadController:
    """Keeps an ordered view of a thread and notifies on change."""

    def __init__(self, store: ThreadStore, public_key: bytes, params: ThreadControllerParams):
        self.store = store
        self.params = params
        self._public_key = public_key
        self._handlers: List[Callable[[], None]] = []
        self._closed = False

        self.view = ThreadView(
            make_data=self.make_data,
            purge_data=self.purge_data,
            data_factory=self.new_data,
            tail=params.tail,
        )
        self._unsubscribe_view = self.view.on_change(self._on_view_change)
        self._unsubscribe_store = store.subscribe(params.parent_id, self._on_store_change)

        self.view.apply(store.fetch(params.parent_id))

    # ------------------------------------------------------------------
    # Hooks for subclasses
    # ------------------------------------------------------------------

    def new_data(self) -> Any:
        return {}

    def make_data(self, node: DataNode, data: Any) -> None:
        """Fill ``data`` in place from ``node``."""

    def purge_data(self, data: Any) -> None:
        """Release ``data`` when its item leaves the window."""

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def on_change(self, handler: Callable[[], None]) -> Callable[[], None]:
        """Register a handler called once per view change. Returns an unsubscribe function."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def _on_view_change(self, event: ChangeEvent) -> None:
        for handler in list(self._handlers):
            handler()

    def _on_store_change(self, changed: List[DataNode], removed: List[bytes]) -> None:
        if removed:
            self.view.remove(removed)
        if changed:
            self.view.apply(changed)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_public_key(self) -> bytes:
        return self._public_key

    def get_items(self) -> List[ViewItem]:
        return self.view.get_items()

    def get_last_item(self) -> Optional[ViewItem]:
        return self.view.get_last_item()

    def find_by_id(self, id1: bytes) -> Optional[ViewItem]:
        return self.view.find_by_id(id1)

    def get_tail(self) -> int:
        return self.view.get_tail()

    def update_stream(self, tail: int) -> None:
        self.view.update_stream(tail)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop listening to the store and the view."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe_store()
        self._unsubscribe_view()
        self._handlers.clear()
        log.debug(f"Closed thread {self.params.thread_name}")
