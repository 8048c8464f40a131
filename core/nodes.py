"""
Concrete node record used by the local node store.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional


def _hex(value: Optional[bytes]) -> Optional[str]:
    return value.hex() if value is not None else None


def _unhex(value: Optional[str]) -> Optional[bytes]:
    return bytes.fromhex(value) if value is not None else None


@dataclass(frozen=True)
class StoredNode:
    """An immutable, signed record in the append log."""
    kind: str
    owner: bytes
    id1: bytes
    creation_time: int
    parent_id: Optional[bytes] = None
    ref_id: Optional[bytes] = None
    target_id: Optional[bytes] = None  # edit/reaction nodes point at the annotated node
    data: Optional[bytes] = None
    blob_length: Optional[int] = None
    is_licensed: bool = False
    license_min_distance: int = 0
    nonce: bytes = b''
    signature: bytes = b''
    id2: Optional[bytes] = None
    annotations: Optional[bytes] = field(default=None, compare=False)

    @property
    def id(self) -> bytes:
        return self.id2 if self.id2 else self.id1

    @property
    def has_blob(self) -> bool:
        return self.blob_length is not None

    def signing_payload(self) -> bytes:
        """Canonical bytes covered by the owner's signature."""
        payload = {
            'kind': self.kind,
            'owner': self.owner.hex(),
            'creation_time': self.creation_time,
            'parent_id': _hex(self.parent_id),
            'ref_id': _hex(self.ref_id),
            'target_id': _hex(self.target_id),
            'data': _hex(self.data),
            'blob_length': self.blob_length,
            'nonce': self.nonce.hex(),
        }
        return json.dumps(payload, sort_keys=True).encode('utf-8')

    def with_annotations(self, annotations: Optional[bytes]) -> 'StoredNode':
        return replace(self, annotations=annotations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'owner': self.owner.hex(),
            'id1': self.id1.hex(),
            'id2': _hex(self.id2),
            'creation_time': self.creation_time,
            'parent_id': _hex(self.parent_id),
            'ref_id': _hex(self.ref_id),
            'target_id': _hex(self.target_id),
            'data': _hex(self.data),
            'blob_length': self.blob_length,
            'is_licensed': self.is_licensed,
            'license_min_distance': self.license_min_distance,
            'nonce': self.nonce.hex(),
            'signature': self.signature.hex(),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> 'StoredNode':
        """Rebuild a node from ``to_dict`` output. Raises KeyError/ValueError on bad input."""
        return StoredNode(
            kind=str(d['kind']),
            owner=bytes.fromhex(d['owner']),
            id1=bytes.fromhex(d['id1']),
            id2=_unhex(d.get('id2')),
            creation_time=int(d['creation_time']),
            parent_id=_unhex(d.get('parent_id')),
            ref_id=_unhex(d.get('ref_id')),
            target_id=_unhex(d.get('target_id')),
            data=_unhex(d.get('data')),
            blob_length=d.get('blob_length'),
            is_licensed=bool(d.get('is_licensed', False)),
            license_min_distance=int(d.get('license_min_distance', 0)),
            nonce=bytes.fromhex(d.get('nonce', '')),
            signature=bytes.fromhex(d.get('signature', '')),
        )

    def __str__(self) -> str:
        return f"{self.kind}:{self.id1.hex()[:8]} by {self.owner.hex()[:8]}"
