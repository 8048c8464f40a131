"""
Cryptographic utilities using PyNaCl.

Nodes are signed by their owner with Ed25519 and addressed by the BLAKE2b
hash of their signed payload.
"""
import nacl.encoding
import nacl.exceptions
import nacl.hash
import nacl.signing
from typing import Tuple


NODE_ID_SIZE = 32


def generate_keypair() -> Tuple[bytes, bytes]:
    """Generate an Ed25519 keypair. Returns (secret_key, public_key)."""
    signing_key = nacl.signing.SigningKey.generate()
    return bytes(signing_key), bytes(signing_key.verify_key)


def public_key_for(secret_key: bytes) -> bytes:
    """Derive the public key belonging to a secret key."""
    return bytes(nacl.signing.SigningKey(secret_key).verify_key)


def sign(message: bytes, secret_key: bytes) -> bytes:
    """Sign a message with Ed25519."""
    signing_key = nacl.signing.SigningKey(secret_key)
    signed = signing_key.sign(message)
    return signed.signature


def verify(message: bytes, signature: bytes, public_key: bytes) -> bool:
    """Verify an Ed25519 signature."""
    try:
        verify_key = nacl.signing.VerifyKey(public_key)
        verify_key.verify(message, signature)
        return True
    except (nacl.exceptions.BadSignatureError, ValueError):
        return False


def hash(data: bytes, size: int = NODE_ID_SIZE) -> bytes:
    """BLAKE2b hash. Default 32 bytes for node ids."""
    return nacl.hash.blake2b(data, digest_size=size, encoder=nacl.encoding.RawEncoder)
