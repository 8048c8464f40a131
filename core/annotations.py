"""
Annotation merge for message nodes.

A node's annotation blob lists every edit and reaction node that targets it.
Merging is deterministic: operations are applied in ``(creation_time, id1)``
order, so every replica holding the same set of operations resolves the same
edit and the same reaction sets regardless of arrival order.

Blob layout (JSON, UTF-8)::

    {
      "target": {"id1": "<hex>", "owner": "<hex>"},
      "edits": [<node dict>, ...],
      "reactions": [<node dict>, ...]
    }

Reaction node data is ``"react/<name>"`` or ``"unreact/<name>"``. Reaction
nodes with any other data are skipped.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from core.log import get_logger
from core.nodes import StoredNode


log = get_logger("Annotations")


REACT = "react"
UNREACT = "unreact"
REACTION_SEPARATOR = "/"


class AnnotationError(ValueError):
    """Raised when an annotation blob cannot be parsed."""


@dataclass
class ReactionState:
    """Identities (hex public keys) currently endorsing a reaction."""
    public_keys: Set[str] = field(default_factory=set)


def _order_key(node: StoredNode) -> Tuple[int, bytes]:
    return (node.creation_time, node.id1)


def parse_reaction(data: Optional[bytes]) -> Tuple[str, str]:
    """Split reaction node data into (verb, reaction name)."""
    if not data:
        raise AnnotationError("Empty reaction data")
    try:
        text = data.decode('utf-8')
    except UnicodeDecodeError as e:
        raise AnnotationError(f"Reaction data is not text: {e}") from e
    verb, sep, name = text.partition(REACTION_SEPARATOR)
    if not sep or not name or verb not in (REACT, UNREACT):
        raise AnnotationError(f"Malformed reaction: {text!r}")
    return verb, name


class MessageAnnotations:
    """Resolved edit pointer and reactions of one message node."""

    def __init__(self) -> None:
        self._edit_node: Optional[StoredNode] = None
        self._reactions: Dict[str, ReactionState] = {}

    def load(self, raw: bytes) -> None:
        """
        Parse and merge an annotation blob.

        Raises AnnotationError if the blob is malformed. On error the
        previously loaded state is kept.
        """
        try:
            doc = json.loads(raw.decode('utf-8'))
        except (UnicodeDecodeError, ValueError) as e:
            raise AnnotationError(f"Annotation blob is not JSON: {e}") from e
        if not isinstance(doc, dict) or not isinstance(doc.get('target'), dict):
            raise AnnotationError("Annotation blob has no target")

        try:
            target_owner = bytes.fromhex(doc['target']['owner'])
            edits = [StoredNode.from_dict(d) for d in doc.get('edits', [])]
            reactions = [StoredNode.from_dict(d) for d in doc.get('reactions', [])]
        except (KeyError, TypeError, ValueError) as e:
            raise AnnotationError(f"Bad annotation entry: {e}") from e

        edit_node = self._merge_edits(edits, target_owner)
        merged = self._merge_reactions(reactions)

        self._edit_node = edit_node
        self._reactions = merged

    @staticmethod
    def _merge_edits(edits: Iterable[StoredNode], target_owner: bytes) -> Optional[StoredNode]:
        # Only the author of a message may edit it; last writer wins.
        own = [n for n in edits if n.owner == target_owner]
        if not own:
            return None
        return max(own, key=_order_key)

    @staticmethod
    def _merge_reactions(nodes: Iterable[StoredNode]) -> Dict[str, ReactionState]:
        states: Dict[str, ReactionState] = {}
        for node in sorted(nodes, key=_order_key):
            try:
                verb, name = parse_reaction(node.data)
            except AnnotationError as e:
                # A bad operation from one peer must not hide the others.
                log.debug(f"Skipping reaction {node.id1.hex()[:8]}: {e}")
                continue
            state = states.setdefault(name, ReactionState())
            if verb == REACT:
                state.public_keys.add(node.owner.hex())
            else:
                state.public_keys.discard(node.owner.hex())
        return {name: state for name, state in states.items() if state.public_keys}

    def get_edit_node(self) -> Optional[StoredNode]:
        return self._edit_node

    def get_reactions(self) -> Dict[str, ReactionState]:
        return self._reactions


def load_annotations(raw: bytes) -> MessageAnnotations:
    """Default annotation resolver."""
    annotations = MessageAnnotations()
    annotations.load(raw)
    return annotations


def encode_annotations(target: StoredNode, edits: List[StoredNode],
                       reactions: List[StoredNode]) -> Optional[bytes]:
    """Build the annotation blob for ``target``, or None if nothing annotates it."""
    if not edits and not reactions:
        return None
    doc: Dict[str, Any] = {
        'target': {'id1': target.id1.hex(), 'owner': target.owner.hex()},
        'edits': [n.to_dict() for n in edits],
        'reactions': [n.to_dict() for n in reactions],
    }
    return json.dumps(doc, sort_keys=True).encode('utf-8')
