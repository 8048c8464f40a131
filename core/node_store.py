"""
Local append-log node store backed by SQLite.

Implements the ``ThreadStore`` interface for one identity. Nodes are signed
by their owner, addressed by the hash of their signed payload and never
mutated: edits and reactions are new nodes pointing at their target, and are
surfaced on the target as its annotation blob.

Licensing: a node created under a parent that carries a ``ref_id`` (a
two-party thread) is flagged ``is_licensed`` and needs a license record
before it may be distributed. Annotation nodes inherit the flag from their
target.
"""
import sqlite3
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional

import nacl.utils

from core import crypto
from core.annotations import encode_annotations
from core.db import get_connection, init_database
from core.identity import Identity
from core.log import get_logger
from core.node_types import ThreadDataParams
from core.nodes import StoredNode


log = get_logger("NodeStore")

NODE_COLUMNS = ("id1, kind, owner, parent_id, ref_id, target_id, creation_time, data, "
                "blob_length, is_licensed, license_min_distance, nonce, signature")

KIND_EDIT = "edit"
KIND_REACTION = "reaction"
KIND_DESTROY = "destroy"
ANNOTATION_KINDS = (KIND_EDIT, KIND_REACTION)

StoreCallback = Callable[[List[StoredNode], List[bytes]], None]


class StorageError(Exception):
    """Raised when the store rejects an operation."""


def _now_ms() -> int:
    return int(time.time() * 1000)


class NodeStore:
    """SQLite node store acting on behalf of one identity."""

    def __init__(self, identity: Identity, db_path: str = ":memory:",
                 db: Optional[sqlite3.Connection] = None,
                 license_private: bool = True,
                 clock: Callable[[], int] = _now_ms):
        self.identity = identity
        self.license_private = license_private
        self.clock = clock
        self._last_time = 0
        self._owns_db = db is None
        self.db = db if db is not None else get_connection(db_path)
        init_database(self.db)
        self._subscribers: Dict[bytes, List[StoreCallback]] = {}

    def get_public_key(self) -> bytes:
        return self.identity.public_key

    def close(self) -> None:
        self._subscribers.clear()
        if self._owns_db:
            self.db.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _row_to_node(self, row: sqlite3.Row) -> StoredNode:
        return StoredNode(
            kind=row['kind'],
            owner=bytes(row['owner']),
            id1=bytes(row['id1']),
            creation_time=row['creation_time'],
            parent_id=bytes(row['parent_id']) if row['parent_id'] is not None else None,
            ref_id=bytes(row['ref_id']) if row['ref_id'] is not None else None,
            target_id=bytes(row['target_id']) if row['target_id'] is not None else None,
            data=bytes(row['data']) if row['data'] is not None else None,
            blob_length=row['blob_length'],
            is_licensed=bool(row['is_licensed']),
            license_min_distance=row['license_min_distance'],
            nonce=bytes(row['nonce']),
            signature=bytes(row['signature']),
        )

    def _annotate(self, node: StoredNode) -> StoredNode:
        """Attach the annotation blob built from the node's edit/reaction children."""
        if node.kind in ANNOTATION_KINDS or node.kind == KIND_DESTROY:
            return node
        cursor = self.db.execute(
            f"SELECT {NODE_COLUMNS} FROM nodes WHERE target_id = ? ORDER BY creation_time, id1",
            (node.id1,),
        )
        children = [self._row_to_node(row) for row in cursor]
        edits = [n for n in children if n.kind == KIND_EDIT]
        reactions = [n for n in children if n.kind == KIND_REACTION]
        return node.with_annotations(encode_annotations(node, edits, reactions))

    def get_node(self, id1: bytes) -> Optional[StoredNode]:
        """Get a node by primary id, with annotations."""
        row = self.db.execute(
            f"SELECT {NODE_COLUMNS} FROM nodes WHERE id1 = ?", (id1,)
        ).fetchone()
        if row is None:
            return None
        return self._annotate(self._row_to_node(row))

    def fetch(self, parent_id: Optional[bytes], tail: Optional[int] = None) -> List[StoredNode]:
        """
        List the content nodes of a thread, oldest first.

        Edit, reaction and destroy nodes are not listed; they surface as
        annotations or not at all. ``parent_id=None`` lists root nodes.
        """
        kinds = ANNOTATION_KINDS + (KIND_DESTROY,)
        placeholders = ", ".join("?" for _ in kinds)
        if parent_id is None:
            where = "parent_id IS NULL"
            params: tuple = kinds
        else:
            where = "parent_id = ?"
            params = (parent_id,) + kinds
        query = (f"SELECT {NODE_COLUMNS} FROM nodes WHERE {where} "
                 f"AND kind NOT IN ({placeholders}) ORDER BY creation_time DESC, id1 DESC")
        if tail is not None:
            query += " LIMIT ?"
            params = params + (tail,)
        rows = self.db.execute(query, params).fetchall()
        nodes = [self._annotate(self._row_to_node(row)) for row in rows]
        nodes.reverse()
        return nodes

    def licenses_for(self, node: StoredNode) -> List[bytes]:
        """Return the license targets recorded for a node."""
        cursor = self.db.execute(
            "SELECT target FROM licenses WHERE node_id1 = ? ORDER BY created_at, rowid",
            (node.id1,),
        )
        return [bytes(row['target']) for row in cursor]

    def is_destroyed(self, id1: bytes) -> bool:
        row = self.db.execute("SELECT 1 FROM destroyed_nodes WHERE id1 = ?", (id1,)).fetchone()
        return row is not None

    def verify_node(self, node: StoredNode) -> bool:
        """Check a node's signature and that its id matches its payload."""
        payload = node.signing_payload()
        if crypto.hash(payload + node.signature) != node.id1:
            return False
        return crypto.verify(payload, node.signature, node.owner)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, parent_id: Optional[bytes], callback: StoreCallback) -> Callable[[], None]:
        """
        Get notified when content nodes under ``parent_id`` are added,
        re-annotated or destroyed.

        The callback receives (changed_nodes, removed_ids). Returns an
        unsubscribe function.
        """
        key = parent_id or b''
        self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def _notify(self, parent_id: Optional[bytes], changed: List[StoredNode],
                removed: List[bytes]) -> None:
        for callback in list(self._subscribers.get(parent_id or b'', [])):
            callback(changed, removed)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _next_time(self) -> int:
        # Strictly increasing per writer so our own operations never tie.
        self._last_time = max(self.clock(), self._last_time + 1)
        return self._last_time

    def _parent_is_licensed(self, parent_id: Optional[bytes]) -> bool:
        if not self.license_private or parent_id is None:
            return False
        parent = self.db.execute(
            "SELECT ref_id FROM nodes WHERE id1 = ?", (parent_id,)
        ).fetchone()
        return parent is not None and bool(parent['ref_id'])

    def _insert(self, kind: str, params: ThreadDataParams, target: Optional[StoredNode] = None,
                is_licensed: bool = False, license_min_distance: int = 0) -> StoredNode:
        blob = params.blob
        unsigned = StoredNode(
            kind=kind,
            owner=self.identity.public_key,
            id1=b'',
            creation_time=self._next_time(),
            parent_id=params.parent_id,
            ref_id=params.ref_id,
            target_id=target.id1 if target is not None else None,
            data=params.data,
            blob_length=len(blob) if blob is not None else None,
            is_licensed=is_licensed,
            license_min_distance=license_min_distance,
            nonce=nacl.utils.random(8),
        )
        payload = unsigned.signing_payload()
        signature = self.identity.sign(payload)
        id1 = crypto.hash(payload + signature)

        node = replace(unsigned, id1=id1, signature=signature)

        self.db.execute(
            f"INSERT INTO nodes ({NODE_COLUMNS}, blob) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (node.id1, node.kind, node.owner, node.parent_id, node.ref_id, node.target_id,
             node.creation_time, node.data, node.blob_length, int(node.is_licensed),
             node.license_min_distance, node.nonce, node.signature, blob),
        )
        self.db.commit()
        return node

    async def create(self, kind: str, params: ThreadDataParams) -> StoredNode:
        """Append a content node to a thread."""
        node = self._insert(kind, params, is_licensed=self._parent_is_licensed(params.parent_id))
        log.debug(f"Created {node}")
        self._notify(node.parent_id, [node], [])
        return node

    def _require_target(self, target: StoredNode) -> StoredNode:
        current = self.get_node(target.id1)
        if current is None:
            raise StorageError(f"Unknown node {target.id1.hex()}")
        return current

    async def _annotate_target(self, kind: str, target: StoredNode,
                               params: ThreadDataParams) -> StoredNode:
        target = self._require_target(target)
        child_params = ThreadDataParams(
            data=params.data,
            parent_id=target.parent_id,
            ref_id=params.ref_id,
            blob=params.blob,
        )
        node = self._insert(kind, child_params, target=target, is_licensed=target.is_licensed)
        log.debug(f"Created {node} on {target}")
        updated = self.get_node(target.id1)
        if updated is not None:
            self._notify(updated.parent_id, [updated], [])
        return node

    async def create_edit(self, kind: str, target: StoredNode, params: ThreadDataParams) -> StoredNode:
        """Append an edit node targeting ``target``. ``kind`` names the edited thread kind."""
        log.debug(f"Edit of {kind} {target}")
        return await self._annotate_target(KIND_EDIT, target, params)

    async def create_reaction(self, kind: str, target: StoredNode, params: ThreadDataParams) -> StoredNode:
        """Append a reaction node targeting ``target``."""
        log.debug(f"Reaction on {kind} {target}")
        return await self._annotate_target(KIND_REACTION, target, params)

    async def destroy(self, node: StoredNode) -> List[StoredNode]:
        """
        Remove a node and its edit/reaction children.

        Returns the destroy records written as a consequence: one for the
        node itself (license distance 0) and one per removed child (license
        distance 1, covered by the node's own record).
        """
        target = self._require_target(node)
        if target.owner != self.identity.public_key:
            raise StorageError(f"Cannot destroy {target}: not the owner")

        children = [self._row_to_node(row) for row in self.db.execute(
            f"SELECT {NODE_COLUMNS} FROM nodes WHERE target_id = ?", (target.id1,)
        )]

        records: List[StoredNode] = []
        for removed, distance in [(target, 0)] + [(child, 1) for child in children]:
            record = self._insert(
                KIND_DESTROY,
                ThreadDataParams(parent_id=target.parent_id, ref_id=removed.id1),
                is_licensed=removed.is_licensed,
                license_min_distance=distance,
            )
            records.append(record)
            self.db.execute("DELETE FROM nodes WHERE id1 = ?", (removed.id1,))
            self.db.execute("DELETE FROM licenses WHERE node_id1 = ?", (removed.id1,))
            self.db.execute(
                "INSERT OR IGNORE INTO destroyed_nodes (id1, destroyed_by, destroyed_at) VALUES (?, ?, ?)",
                (removed.id1, self.identity.public_key, self.clock()),
            )
        self.db.commit()

        log.info(f"Destroyed {target} and {len(children)} annotation node(s)")
        self._notify(target.parent_id, [], [target.id1])
        return records

    async def grant_license(self, kind: str, node: StoredNode, targets: List[bytes]) -> None:
        """Record a license for ``node`` to each target identity."""
        now = self.clock()
        for target in targets:
            self.db.execute(
                "INSERT OR IGNORE INTO licenses (node_id1, kind, target, granted_by, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (node.id1, kind, target, self.identity.public_key, now),
            )
        self.db.commit()
        log.debug(f"Licensed {node} to {len(targets)} target(s)")
