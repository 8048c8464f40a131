"""
Message thread controller.

Binds to a channel node, keeps the ordered window of messages posted under
it and turns post/edit/react/delete into store writes, licensing every write
to the channel's participants.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Collection, Dict, List, Optional

from core.annotations import REACT, REACTION_SEPARATOR, UNREACT, load_annotations
from core.config import DEFAULT_DELETE_GRACE_MS, DEFAULT_HISTORY_PAGE
from core.log import get_logger
from core.node_types import AnnotationResolver, DataNode, ThreadDataParams, ThreadStore
from core.scheduler import LoopScheduler, ScheduledTask, TaskScheduler
from core.thread_controller import ThreadController, ThreadControllerParams
from protocols.chat import channel as channel_identity


log = get_logger("MessageController")

MESSAGE_KIND = "message"
LICENSE_KIND = "default"


@dataclass
class Message:
    """The collected data needed to display a message."""
    text: str = ""
    public_key: str = ""
    id1: str = ""
    creation_timestamp: Optional[datetime] = None
    edited_text: Optional[str] = None
    reactions: Optional[Dict[str, Any]] = None
    has_blob: bool = False
    blob_length: Optional[int] = None

    @property
    def display_text(self) -> str:
        return self.edited_text if self.edited_text is not None else self.text


def _decode(data: Optional[bytes]) -> str:
    return data.decode('utf-8', errors='replace') if data is not None else ""


def reaction_verb(endorsers: Optional[Collection[str]], public_key_hex: str) -> str:
    """Toggle decision: unreact if ``public_key_hex`` already endorses, else react."""
    if endorsers and public_key_hex in endorsers:
        return UNREACT
    return REACT


def endorsers_of(message: Message, reaction: str) -> Collection[str]:
    """Public keys (hex) currently endorsing ``reaction`` on ``message``."""
    if not message.reactions:
        return ()
    state = message.reactions.get(reaction)
    if state is None:
        return ()
    return state.public_keys


class MessageController(ThreadController):
    """Thread controller for the messages of one channel."""

    def __init__(self, store: ThreadStore, public_key: bytes, channel_node: DataNode,
                 params: Optional[ThreadControllerParams] = None,
                 resolver: AnnotationResolver = load_annotations,
                 scheduler: Optional[TaskScheduler] = None,
                 delete_grace_ms: int = DEFAULT_DELETE_GRACE_MS,
                 history_page: int = DEFAULT_HISTORY_PAGE):
        params = params or ThreadControllerParams()
        # "channel" refers to the thread configuration for channel messages
        params.thread_name = params.thread_name or "channel"
        params.parent_id = channel_node.id

        self.channel_node = channel_node
        self.resolver = resolver
        self.scheduler = scheduler or LoopScheduler()
        self.delete_grace_ms = delete_grace_ms
        self.history_page = history_page
        self._targets = tuple(channel_identity.authorization_targets(channel_node))

        super().__init__(store, public_key, params)

    @property
    def targets(self) -> List[bytes]:
        """License targets, fixed at construction."""
        return list(self._targets)

    @staticmethod
    def is_private_channel(channel_node: DataNode) -> bool:
        return channel_identity.is_private_channel(channel_node)

    @staticmethod
    def get_name_for(channel_node: DataNode, public_key: bytes) -> str:
        return channel_identity.get_channel_name(channel_node, public_key)

    def get_name(self) -> str:
        return self.get_name_for(self.channel_node, self.get_public_key())

    def load_history(self) -> None:
        """Extend the window backwards by one page."""
        self.update_stream(self.get_tail() + self.history_page)

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def new_data(self) -> Message:
        return Message()

    def make_data(self, node: DataNode, message: Message) -> None:
        """Set ``message`` in place from ``node`` and its annotations."""
        message.text = _decode(node.data)
        message.public_key = node.owner.hex()
        message.id1 = node.id1.hex()
        message.creation_timestamp = datetime.fromtimestamp(node.creation_time / 1000, tz=timezone.utc)
        message.has_blob = node.has_blob
        message.blob_length = node.blob_length

        if not node.annotations:
            return

        try:
            merged = self.resolver(node.annotations)
            edit_node = merged.get_edit_node()
            edited_text = _decode(edit_node.data) if edit_node is not None else message.edited_text
            reactions = dict(merged.get_reactions())
        except Exception as e:
            # Unreadable annotations leave the previous edit/reaction state.
            log.debug(f"Could not load annotations of {node.id1.hex()[:8]}: {e}")
            return

        message.edited_text = edited_text
        message.reactions = reactions

    def purge_data(self, message: Message) -> None:
        pass

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _license(self, node: DataNode) -> None:
        if node.is_licensed:
            await self.store.grant_license(LICENSE_KIND, node, self.targets)

    async def send_message(self, text: str) -> DataNode:
        """
        Post a message.

        The message refers to the current last message as ``ref_id`` so the
        thread can be ordered by following references.

        Raises whatever the store raises.
        """
        last = self.get_last_item()
        params = ThreadDataParams(
            ref_id=last.node.id1 if last is not None else None,
            parent_id=self.params.parent_id,
            data=text.encode('utf-8'),
        )

        node = await self.store.create(MESSAGE_KIND, params)
        await self._license(node)
        return node

    async def edit_message(self, node_to_edit: DataNode, text: str) -> DataNode:
        """Post an edit of ``node_to_edit``. Empty text hides the message."""
        params = ThreadDataParams(data=text.encode('utf-8'))

        node = await self.store.create_edit(MESSAGE_KIND, node_to_edit, params)
        await self._license(node)
        return node

    async def toggle_reaction(self, message: Message, node_to_react_to: DataNode,
                              reaction: str) -> DataNode:
        """React with ``reaction``, or take the reaction back if already given."""
        if not reaction:
            raise ValueError("reaction is required")

        verb = reaction_verb(endorsers_of(message, reaction), self.get_public_key().hex())
        params = ThreadDataParams(data=f"{verb}{REACTION_SEPARATOR}{reaction}".encode('utf-8'))

        node = await self.store.create_reaction(MESSAGE_KIND, node_to_react_to, params)
        await self._license(node)
        return node

    async def delete_message(self, message_node: DataNode) -> ScheduledTask:
        """
        Hide a message now and destroy it after the grace delay.

        The edit to empty text is applied immediately. Destruction is
        scheduled ``delete_grace_ms`` later so the edit can reach other
        peers first: once the node is gone the edit can no longer spread.
        The scheduled destruction is not cancelled by ``close()``.
        """
        await self.edit_message(message_node, "")

        log.info(f"Deleting {message_node.id1.hex()[:8]} in {self.delete_grace_ms}ms")
        return self.scheduler.schedule(
            self.delete_grace_ms,
            lambda: self._destroy(message_node),
            name=f"delete {message_node.id1.hex()[:8]}",
        )

    async def _destroy(self, message_node: DataNode) -> List[DataNode]:
        destroyed = await self.store.destroy(message_node)

        for node in destroyed:
            if node.is_licensed and node.license_min_distance == 0:
                await self.store.grant_license(LICENSE_KIND, node, self.targets)

        return destroyed
