"""
Tests for the SQLite node store.
"""
import pytest

from core.annotations import load_annotations
from core.node_store import KIND_DESTROY, StorageError
from core.node_types import DataNode, ThreadDataParams, ThreadStore
from protocols.chat.tests.helpers import create_channel


@pytest.mark.asyncio
async def test_created_node_is_signed_by_owner(alice_store, alice):
    channel = await create_channel(alice_store, "general")

    assert isinstance(channel, DataNode)
    assert channel.owner == alice.public_key
    assert alice_store.verify_node(channel) is True
    assert channel.id == channel.id1


@pytest.mark.asyncio
async def test_tampered_node_fails_verification(alice_store):
    from dataclasses import replace

    channel = await create_channel(alice_store, "general")
    forged = replace(channel, data=b"other name")

    assert alice_store.verify_node(forged) is False


def test_store_satisfies_thread_store_protocol(alice_store):
    assert isinstance(alice_store, ThreadStore)


@pytest.mark.asyncio
async def test_fetch_lists_content_nodes_only(alice_store):
    channel = await create_channel(alice_store, "general")
    first = await alice_store.create("message", ThreadDataParams(data=b"hi", parent_id=channel.id))
    await alice_store.create_edit("message", first, ThreadDataParams(data=b"hello"))
    await alice_store.create_reaction("message", first, ThreadDataParams(data=b"react/wave"))

    nodes = alice_store.fetch(channel.id)

    assert [n.id1 for n in nodes] == [first.id1]
    assert nodes[0].annotations is not None
    assert [n.id1 for n in alice_store.fetch(None)] == [channel.id1]


@pytest.mark.asyncio
async def test_fetch_tail_returns_newest(alice_store):
    channel = await create_channel(alice_store, "general")
    for i in range(5):
        await alice_store.create("message", ThreadDataParams(data=str(i).encode(), parent_id=channel.id))

    nodes = alice_store.fetch(channel.id, tail=2)

    assert [n.data for n in nodes] == [b"3", b"4"]


@pytest.mark.asyncio
async def test_annotations_resolve_edit(alice_store):
    channel = await create_channel(alice_store, "general")
    message = await alice_store.create("message", ThreadDataParams(data=b"hi", parent_id=channel.id))
    await alice_store.create_edit("message", message, ThreadDataParams(data=b"hi there"))

    annotated = alice_store.get_node(message.id1)
    merged = load_annotations(annotated.annotations)

    assert merged.get_edit_node().data == b"hi there"


@pytest.mark.asyncio
async def test_subscribers_notified_of_writes(alice_store):
    channel = await create_channel(alice_store, "general")
    seen = []
    unsubscribe = alice_store.subscribe(channel.id, lambda changed, removed: seen.append((changed, removed)))

    message = await alice_store.create("message", ThreadDataParams(data=b"hi", parent_id=channel.id))
    await alice_store.create_edit("message", message, ThreadDataParams(data=b""))
    unsubscribe()
    await alice_store.create("message", ThreadDataParams(data=b"unseen", parent_id=channel.id))

    assert len(seen) == 2
    assert seen[0][0][0].id1 == message.id1
    assert seen[1][0][0].annotations is not None


@pytest.mark.asyncio
async def test_private_channel_messages_are_licensed(alice_store, bob):
    public = await create_channel(alice_store, "general")
    private = await create_channel(alice_store, ref_id=bob.public_key)

    in_public = await alice_store.create("message", ThreadDataParams(data=b"a", parent_id=public.id))
    in_private = await alice_store.create("message", ThreadDataParams(data=b"b", parent_id=private.id))
    edit = await alice_store.create_edit("message", in_private, ThreadDataParams(data=b"c"))

    assert in_public.is_licensed is False
    assert in_private.is_licensed is True
    assert edit.is_licensed is True


@pytest.mark.asyncio
async def test_grant_license_records_targets(alice_store, alice, bob):
    channel = await create_channel(alice_store, ref_id=bob.public_key)
    message = await alice_store.create("message", ThreadDataParams(data=b"a", parent_id=channel.id))

    await alice_store.grant_license("default", message, [alice.public_key, bob.public_key])

    assert alice_store.licenses_for(message) == [alice.public_key, bob.public_key]


@pytest.mark.asyncio
async def test_destroy_removes_node_and_annotations(alice_store, bob):
    channel = await create_channel(alice_store, ref_id=bob.public_key)
    message = await alice_store.create("message", ThreadDataParams(data=b"a", parent_id=channel.id))
    edit = await alice_store.create_edit("message", message, ThreadDataParams(data=b""))
    removed_ids = []
    alice_store.subscribe(channel.id, lambda changed, removed: removed_ids.extend(removed))

    records = await alice_store.destroy(message)

    assert alice_store.get_node(message.id1) is None
    assert alice_store.get_node(edit.id1) is None
    assert alice_store.is_destroyed(message.id1)
    assert removed_ids == [message.id1]
    assert [r.kind for r in records] == [KIND_DESTROY, KIND_DESTROY]
    assert [r.license_min_distance for r in records] == [0, 1]
    assert records[0].ref_id == message.id1
    assert all(r.is_licensed for r in records)


@pytest.mark.asyncio
async def test_destroy_requires_ownership(alice_store, bob_store):
    channel = await create_channel(alice_store, "general")
    message = await alice_store.create("message", ThreadDataParams(data=b"a", parent_id=channel.id))

    with pytest.raises(StorageError):
        await bob_store.destroy(message)


@pytest.mark.asyncio
async def test_edit_of_unknown_node_fails(alice_store):
    channel = await create_channel(alice_store, "general")
    message = await alice_store.create("message", ThreadDataParams(data=b"a", parent_id=channel.id))
    await alice_store.destroy(message)

    with pytest.raises(StorageError):
        await alice_store.create_edit("message", message, ThreadDataParams(data=b"b"))


@pytest.mark.asyncio
async def test_blob_flags(alice_store):
    channel = await create_channel(alice_store, "general")
    message = await alice_store.create(
        "message", ThreadDataParams(data=b"file", parent_id=channel.id, blob=b"12345"))

    stored = alice_store.get_node(message.id1)

    assert stored.has_blob is True
    assert stored.blob_length == 5
