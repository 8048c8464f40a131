"""
Channel list controller.

Lists the channel nodes at the root of the store, creates public and private
channels and keeps at most one ``MessageController`` per opened channel.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from core.log import get_logger
from core.node_types import DataNode, ThreadDataParams, ThreadStore
from core.thread_controller import ThreadController, ThreadControllerParams
from protocols.chat.channel import get_channel_name, is_private_channel
from protocols.chat.message_controller import MessageController


log = get_logger("ChannelListController")

CHANNEL_KIND = "channel"
CHANNEL_LIST_TAIL = 1000


@dataclass
class Channel:
    name: str = ""
    is_private: bool = False
    controller: Optional[MessageController] = None


class ChannelListController(ThreadController):
    """Keeps the list of channels and the controllers of opened ones."""

    def __init__(self, store: ThreadStore, public_key: bytes,
                 params: Optional[ThreadControllerParams] = None,
                 **message_options: Any):
        params = params or ThreadControllerParams(tail=CHANNEL_LIST_TAIL)
        params.thread_name = params.thread_name or "channels"
        params.parent_id = None

        self._thread_name: Optional[str] = message_options.pop("thread_name", None)
        self._message_options: Dict[str, Any] = message_options
        self._active_id1: Optional[bytes] = None

        super().__init__(store, public_key, params)

    def new_data(self) -> Channel:
        return Channel()

    def make_data(self, node: DataNode, channel: Channel) -> None:
        channel.name = get_channel_name(node, self.get_public_key())
        channel.is_private = is_private_channel(node)

    def purge_data(self, channel: Channel) -> None:
        if channel.controller is not None:
            channel.controller.close()
            channel.controller = None

    async def make_channel(self, name: str) -> DataNode:
        """Create a public channel named ``name``."""
        if not name:
            raise ValueError("name is required")
        node = await self.store.create(CHANNEL_KIND, ThreadDataParams(data=name.encode('utf-8')))
        log.info(f"Created channel {name}")
        return node

    async def make_private_channel(self, public_key: bytes) -> DataNode:
        """Create a private channel between us and the holder of ``public_key``."""
        if not public_key:
            raise ValueError("public_key is required")
        node = await self.store.create(CHANNEL_KIND, ThreadDataParams(ref_id=public_key))
        log.info(f"Created private channel with {public_key.hex()[:16]}")
        return node

    def open_channel(self, id1: bytes) -> MessageController:
        """Return the controller for a channel, creating it on first open."""
        item = self.find_by_id(id1)
        if item is None:
            raise KeyError(f"Unknown channel {id1.hex()}")

        channel: Channel = item.data
        if channel.controller is None or channel.controller.closed:
            channel.controller = MessageController(
                self.store, self.get_public_key(), item.node,
                params=ThreadControllerParams(thread_name=self._thread_name),
                **self._message_options,
            )
        return channel.controller

    def set_channel_active(self, id1: Optional[bytes]) -> None:
        self._active_id1 = id1

    def get_active_controller(self) -> Optional[MessageController]:
        if self._active_id1 is None:
            return None
        item = self.find_by_id(self._active_id1)
        if item is None:
            return None
        return item.data.controller

    def close(self) -> None:
        for item in self.get_items():
            self.purge_data(item.data)
        super().close()
