"""
Chat protocol: channels and message threads over the node store.
"""

from .channel import (
    NO_NAME,
    authorization_targets,
    get_channel_name,
    is_private_channel,
)
from .message_controller import (
    Message,
    MessageController,
    reaction_verb,
)
from .channel_list import (
    Channel,
    ChannelListController,
)

__all__ = [
    "NO_NAME",
    "authorization_targets",
    "get_channel_name",
    "is_private_channel",
    "Message",
    "MessageController",
    "reaction_verb",
    "Channel",
    "ChannelListController",
]
