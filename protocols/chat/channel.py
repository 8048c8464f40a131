"""
Channel identity: public or private, display name and license targets.

A channel node with a non-empty ``ref_id`` is a private channel between two
peers: the owner of the node and the peer whose public key is the ``ref_id``.
Any other channel is public and named by its data.
"""
from typing import List

from core.node_types import DataNode


NO_NAME = "<no name>"


def is_private_channel(channel: DataNode) -> bool:
    """True if the channel carries a non-empty ``ref_id``."""
    return len(channel.ref_id or b'') > 0


def get_channel_name(channel: DataNode, public_key: bytes) -> str:
    """
    Name a channel as seen by the holder of ``public_key``.

    A private channel is named by the other participant's public key in hex,
    so both sides see each other's key. A public channel is named by its
    data, or ``"<no name>"`` when it has none.
    """
    if is_private_channel(channel):
        if channel.ref_id == public_key:
            return channel.owner.hex()
        return channel.ref_id.hex()  # type: ignore[union-attr]

    if channel.data is None:
        return NO_NAME
    return channel.data.decode('utf-8', errors='replace')


def authorization_targets(channel: DataNode) -> List[bytes]:
    """
    Identities that must be licensed to see writes in this channel.

    Empty for public channels. For a private channel the owner, plus the
    ``ref_id`` peer unless it is the owner itself.
    """
    targets: List[bytes] = []
    if not is_private_channel(channel):
        # TODO: decide on a license policy for public channels (group membership).
        return targets

    targets.append(channel.owner)
    if channel.ref_id and channel.ref_id != channel.owner:
        targets.append(channel.ref_id)
    return targets
