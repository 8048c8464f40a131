"""
Tests for the channel list controller.
"""
import pytest

from protocols.chat.channel_list import ChannelListController
from protocols.chat.message_controller import MessageController


def _channels(store, scheduler):
    return ChannelListController(store, store.get_public_key(), scheduler=scheduler)


@pytest.mark.asyncio
async def test_make_channel_lists_it(alice_store, scheduler):
    channels = _channels(alice_store, scheduler)
    calls = []
    channels.on_change(lambda: calls.append(1))

    await channels.make_channel("general")

    items = channels.get_items()
    assert len(calls) == 1
    assert [item.data.name for item in items] == ["general"]
    assert items[0].data.is_private is False
    assert items[0].data.controller is None


@pytest.mark.asyncio
async def test_make_channel_requires_name(alice_store, scheduler):
    channels = _channels(alice_store, scheduler)

    with pytest.raises(ValueError):
        await channels.make_channel("")


@pytest.mark.asyncio
async def test_private_channel_named_after_peer(alice_store, bob_store, alice, bob, scheduler):
    alices = _channels(alice_store, scheduler)
    await alices.make_private_channel(bob.public_key)

    bobs = _channels(bob_store, scheduler)

    assert alices.get_last_item().data.name == bob.public_key_hex
    assert alices.get_last_item().data.is_private is True
    assert bobs.get_last_item().data.name == alice.public_key_hex


@pytest.mark.asyncio
async def test_open_channel_reuses_controller(alice_store, scheduler):
    channels = _channels(alice_store, scheduler)
    node = await channels.make_channel("general")

    first = channels.open_channel(node.id1)
    second = channels.open_channel(node.id1)

    assert isinstance(first, MessageController)
    assert first is second
    assert first.get_name() == "general"
    assert first.scheduler is scheduler


@pytest.mark.asyncio
async def test_open_passes_message_options(alice_store, scheduler):
    channels = ChannelListController(alice_store, alice_store.get_public_key(),
                                     scheduler=scheduler, delete_grace_ms=5, history_page=3)
    node = await channels.make_channel("general")

    controller = channels.open_channel(node.id1)

    assert controller.delete_grace_ms == 5
    assert controller.history_page == 3
    assert controller.params.thread_name == "channel"


@pytest.mark.asyncio
async def test_open_uses_configured_thread_name(alice_store, scheduler):
    channels = ChannelListController(alice_store, alice_store.get_public_key(),
                                     scheduler=scheduler, thread_name="room")
    node = await channels.make_channel("general")

    assert channels.open_channel(node.id1).params.thread_name == "room"


def test_open_unknown_channel(alice_store, scheduler):
    channels = _channels(alice_store, scheduler)

    with pytest.raises(KeyError):
        channels.open_channel(b'\x09' * 32)


@pytest.mark.asyncio
async def test_reopen_after_close_creates_new_controller(alice_store, scheduler):
    channels = _channels(alice_store, scheduler)
    node = await channels.make_channel("general")

    first = channels.open_channel(node.id1)
    first.close()
    second = channels.open_channel(node.id1)

    assert second is not first
    assert not second.closed


@pytest.mark.asyncio
async def test_active_controller(alice_store, scheduler):
    channels = _channels(alice_store, scheduler)
    node = await channels.make_channel("general")
    assert channels.get_active_controller() is None

    controller = channels.open_channel(node.id1)
    channels.set_channel_active(node.id1)

    assert channels.get_active_controller() is controller


@pytest.mark.asyncio
async def test_close_closes_open_controllers(alice_store, scheduler):
    channels = _channels(alice_store, scheduler)
    node = await channels.make_channel("general")
    controller = channels.open_channel(node.id1)

    channels.close()

    assert controller.closed
    assert channels.closed
