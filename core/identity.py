"""
Core identity management.

An identity is an Ed25519 keypair. Its public key is the owner of every node
it creates and is what license targets and reactions refer to.
"""
from typing import Any, Dict

from core import crypto


class Identity:
    """Represents a cryptographic identity."""

    def __init__(self, public_key: bytes, secret_key: bytes, name: str = "User"):
        self.public_key = public_key
        self.secret_key = secret_key
        self.name = name

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()

    def sign(self, data: bytes) -> bytes:
        """Sign data with identity secret key."""
        return crypto.sign(data, self.secret_key)

    def verify_signature(self, data: bytes, signature: bytes) -> bool:
        """Verify signature with public key."""
        return crypto.verify(data, signature, self.public_key)

    def to_dict(self) -> Dict[str, Any]:
        """Return identity as dictionary (without secret key)."""
        return {
            'name': self.name,
            'public_key': self.public_key_hex,
        }

    def __repr__(self) -> str:
        return f"Identity({self.name!r}, {self.public_key_hex[:16]})"


def create_identity(name: str = "User") -> Identity:
    """Create new identity with a fresh keypair."""
    secret_key, public_key = crypto.generate_keypair()
    return Identity(public_key, secret_key, name)


def identity_from_key_pair(key_pair: Dict[str, Any], name: str = "User") -> Identity:
    """
    Build an identity from a wallet key pair entry.

    Args:
        key_pair: {'secret_key': hex, 'public_key': hex (optional)}

    Raises:
        ValueError: If the secret key is missing or does not match the public key
    """
    secret_hex = key_pair.get('secret_key')
    if not secret_hex:
        raise ValueError("secret_key is required in key pair")

    secret_key = bytes.fromhex(secret_hex)
    public_key = crypto.public_key_for(secret_key)

    public_hex = key_pair.get('public_key')
    if public_hex and bytes.fromhex(public_hex) != public_key:
        raise ValueError("public_key does not match secret_key")

    return Identity(public_key, secret_key, name)
