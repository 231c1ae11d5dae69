# =============================================================================
# Key material for the launcher handshake
# =============================================================================
"""
The launcher handshake is a NaCl "box" exchange:

- the client sends an ephemeral X25519 public key and a random 24-byte nonce
- the launcher answers with its own public key and the session key blob,
  boxed for the client key under that same nonce

All randomness comes from os.urandom. A failing random source raises
RandomSourceError, there is no weaker fallback.
"""

from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from typing import Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import x25519

from ..errors import RandomSourceError


# =============================================================================
# Constants
# =============================================================================

KEY_SIZE = 32    # X25519 keys and the secretbox session key
NONCE_SIZE = 24  # box / secretbox nonce


# =============================================================================
# Encoding
# =============================================================================

def b64_encode(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")


def b64_decode(data: str | bytes) -> bytes:
    """Strict standard-alphabet decode. Raises binascii.Error on bad input."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64decode(data, validate=True)


# =============================================================================
# Random source
# =============================================================================

def random_bytes(n: int) -> bytes:
    try:
        return os.urandom(n)
    except (OSError, NotImplementedError) as e:
        raise RandomSourceError(f"Unable to read {n} random bytes: {e}") from e


def generate_nonce() -> bytes:
    return random_bytes(NONCE_SIZE)


def generate_keypair() -> Tuple[bytes, bytes]:
    """
    Returns (public_key, private_key) as raw 32-byte X25519 keys.

    The private scalar is drawn from random_bytes() so every secret in the
    handshake goes through the same checked source.
    """
    priv = x25519.X25519PrivateKey.from_private_bytes(random_bytes(KEY_SIZE))
    priv_raw = priv.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return public_key_for(priv_raw), priv_raw


def public_key_for(private_key: bytes) -> bytes:
    if len(private_key) != KEY_SIZE:
        raise ValueError("invalid X25519 private key length")
    priv = x25519.X25519PrivateKey.from_private_bytes(private_key)
    return priv.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


# =============================================================================
# Handshake key set
# =============================================================================

@dataclass(frozen=True)
class HandshakeKeys:
    """
    Key pair and nonce for one handshake attempt.

    All three travel together: the launcher boxes its reply with the nonce the
    client sent, so the opening side must use the private key and nonce from
    the very same request.
    """
    public_key: bytes
    private_key: bytes
    nonce: bytes

    def __post_init__(self) -> None:
        if len(self.public_key) != KEY_SIZE:
            raise ValueError("public_key must be 32 bytes")
        if len(self.private_key) != KEY_SIZE:
            raise ValueError("private_key must be 32 bytes")
        if len(self.nonce) != NONCE_SIZE:
            raise ValueError("nonce must be 24 bytes")

    @classmethod
    def generate(cls) -> "HandshakeKeys":
        public_key, private_key = generate_keypair()
        return cls(public_key=public_key, private_key=private_key, nonce=generate_nonce())

    def __repr__(self) -> str:
        return f"HandshakeKeys(public_key={b64_encode(self.public_key)!r}, private_key=<redacted>, nonce=...)"
