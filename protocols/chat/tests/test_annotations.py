"""
Tests for annotation merging.
"""
import json

import pytest

from core.annotations import (
    AnnotationError,
    MessageAnnotations,
    encode_annotations,
    load_annotations,
    parse_reaction,
)
from protocols.chat.tests.helpers import make_node


AUTHOR = b'\x01' * 32
OTHER = b'\x02' * 32


def _target():
    return make_node(AUTHOR, id1=b'\x10' * 32, kind='message', data=b'original')


def _edit(owner, text, t, n):
    return make_node(owner, id1=bytes([n]) * 32, kind='edit', data=text.encode(), creation_time=t)


def _reaction(owner, data, t, n):
    return make_node(owner, id1=bytes([n]) * 32, kind='reaction', data=data.encode(), creation_time=t)


def test_no_annotations_encodes_to_none():
    assert encode_annotations(_target(), [], []) is None


def test_last_edit_wins_regardless_of_input_order():
    edits = [_edit(AUTHOR, "second", 20, 0x21), _edit(AUTHOR, "first", 10, 0x20)]
    merged = load_annotations(encode_annotations(_target(), edits, []))

    assert merged.get_edit_node().data == b"second"


def test_edit_by_other_identity_is_ignored():
    edits = [_edit(AUTHOR, "mine", 10, 0x20), _edit(OTHER, "vandalism", 20, 0x21)]
    merged = load_annotations(encode_annotations(_target(), edits, []))

    assert merged.get_edit_node().data == b"mine"


def test_empty_edit_is_kept():
    merged = load_annotations(encode_annotations(_target(), [_edit(AUTHOR, "", 10, 0x20)], []))

    assert merged.get_edit_node().data == b""


def test_reactions_replay_in_order():
    reactions = [
        _reaction(AUTHOR, "react/thumbsup", 10, 0x30),
        _reaction(OTHER, "react/thumbsup", 11, 0x31),
        _reaction(AUTHOR, "unreact/thumbsup", 12, 0x32),
        _reaction(OTHER, "react/heart", 13, 0x33),
    ]
    merged = load_annotations(encode_annotations(_target(), [], reactions))
    result = merged.get_reactions()

    assert result["thumbsup"].public_keys == {OTHER.hex()}
    assert result["heart"].public_keys == {OTHER.hex()}
    assert merged.get_edit_node() is None


def test_reaction_with_no_endorsers_is_dropped():
    reactions = [
        _reaction(AUTHOR, "react/thumbsup", 10, 0x30),
        _reaction(AUTHOR, "unreact/thumbsup", 11, 0x31),
    ]
    merged = load_annotations(encode_annotations(_target(), [], reactions))

    assert merged.get_reactions() == {}


@pytest.mark.parametrize("raw", [
    b"not json",
    b"\xff\xfe",
    b"[]",
    json.dumps({"target": {"owner": "zz"}}).encode(),
    json.dumps({"target": {"owner": AUTHOR.hex()}, "edits": [{"kind": "edit"}]}).encode(),
])
def test_malformed_blob_raises(raw):
    with pytest.raises(AnnotationError):
        load_annotations(raw)


def test_parse_reaction_rejects_unknown_verb():
    with pytest.raises(AnnotationError):
        parse_reaction(b"wave")


def test_malformed_reaction_is_skipped():
    edits = [_edit(AUTHOR, "still visible", 20, 0x20)]
    reactions = [
        _reaction(OTHER, "bogus", 10, 0x30),
        _reaction(OTHER, "react/heart", 11, 0x31),
        _reaction(OTHER, "", 12, 0x32),
    ]
    merged = load_annotations(encode_annotations(_target(), edits, reactions))

    assert merged.get_edit_node().data == b"still visible"
    assert list(merged.get_reactions()) == ["heart"]


def test_failed_load_keeps_previous_state():
    annotations = MessageAnnotations()
    annotations.load(encode_annotations(_target(), [_edit(AUTHOR, "kept", 10, 0x20)], []))

    with pytest.raises(AnnotationError):
        annotations.load(b"garbage")

    assert annotations.get_edit_node().data == b"kept"


def test_parse_reaction_allows_separator_in_name():
    assert parse_reaction(b"react/a/b") == ("react", "a/b")
