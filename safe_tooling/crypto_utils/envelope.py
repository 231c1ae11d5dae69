# =============================================================================
# Session envelopes (NaCl secretbox) and handshake key opening (NaCl box)
# =============================================================================
"""
Envelope format on the wire: base64(secretbox(plaintext, session_nonce, shared_key)).

Known weakness: the launcher protocol uses ONE nonce for every message of a
session. XSalsa20-Poly1305 loses confidentiality across messages encrypted
under a repeated (key, nonce) pair. The launcher expects exactly this, so the
codec keeps it; changing it would break interoperability.
"""

from __future__ import annotations

import binascii
from typing import TYPE_CHECKING

from nacl.exceptions import CryptoError
from nacl.public import Box, PrivateKey, PublicKey
from nacl.secret import SecretBox

from ..errors import DecryptError, SessionDecryptError, SessionNotEstablished
from .keys import KEY_SIZE, NONCE_SIZE, b64_decode, b64_encode

if TYPE_CHECKING:
    from ..gateway_client.session import Session


def open_session_key(
    encrypted_key: bytes,
    *,
    server_public_key: bytes,
    private_key: bytes,
    nonce: bytes,
) -> bytes:
    """
    Open the handshake key blob with box(private_key, server_public_key).

    `nonce` is the one the client put in its own handshake request. Any failure,
    bad key length included, is a SessionDecryptError.
    """
    try:
        box = Box(PrivateKey(bytes(private_key)), PublicKey(bytes(server_public_key)))
        return box.decrypt(bytes(encrypted_key), bytes(nonce))
    except CryptoError as e:
        raise SessionDecryptError("Unable to decrypt auth key") from e


class EnvelopeCodec:
    """
    Symmetric codec bound to one session key and the session's fixed nonce.

    encrypt/decrypt work on raw bytes. seal_text/open_text add the base64
    transport encoding used for request and response bodies.
    """

    def __init__(self, shared_key: bytes, nonce: bytes):
        if len(shared_key) != KEY_SIZE:
            raise ValueError("shared_key must be 32 bytes")
        if len(nonce) < NONCE_SIZE:
            raise ValueError("session nonce must be at least 24 bytes")
        self._box = SecretBox(bytes(shared_key))
        # secretbox takes 24 bytes; the launcher may hand out a longer nonce
        self._nonce = bytes(nonce[:NONCE_SIZE])

    @classmethod
    def for_session(cls, session: "Session") -> "EnvelopeCodec":
        if not session.is_established:
            raise SessionNotEstablished("No session established, authenticate first")
        return cls(session.shared_key, session.nonce)

    def encrypt(self, plaintext: bytes) -> bytes:
        return self._box.encrypt(bytes(plaintext), self._nonce).ciphertext

    def decrypt(self, ciphertext: bytes) -> bytes:
        try:
            return self._box.decrypt(bytes(ciphertext), self._nonce)
        except CryptoError as e:
            raise DecryptError("Failed to decrypt") from e

    def seal_text(self, plaintext: bytes) -> str:
        return b64_encode(self.encrypt(plaintext))

    def open_text(self, text: str | bytes) -> bytes:
        try:
            ciphertext = b64_decode(text)
        except (binascii.Error, ValueError) as e:
            raise DecryptError("envelope is not valid base64") from e
        return self.decrypt(ciphertext)
