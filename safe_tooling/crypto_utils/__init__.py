from .keys import (
    KEY_SIZE,
    NONCE_SIZE,
    HandshakeKeys,
    b64_encode,
    b64_decode,
    random_bytes,
    generate_keypair,
    generate_nonce,
    public_key_for,
    )
from .envelope import (
    EnvelopeCodec,
    open_session_key,
    )
