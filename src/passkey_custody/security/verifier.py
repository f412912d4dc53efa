"""Ed25519 signature verification for custody-produced signatures."""

from __future__ import annotations

import base58
from nacl import signing
from nacl.exceptions import CryptoError

from ..errors import VerificationFailedError

PUBLIC_KEY_BYTES = 32
SIGNATURE_BYTES = 64


def decode_public_key(public_key: str) -> bytes:
    """Decode a base58 (Solana address) public key into its 32 raw bytes."""
    raw = base58.b58decode(public_key)
    if len(raw) != PUBLIC_KEY_BYTES:
        raise ValueError(f"public key must be {PUBLIC_KEY_BYTES} bytes, got {len(raw)}")
    return raw


def encode_public_key(raw: bytes) -> str:
    if len(raw) != PUBLIC_KEY_BYTES:
        raise ValueError(f"public key must be {PUBLIC_KEY_BYTES} bytes, got {len(raw)}")
    return base58.b58encode(raw).decode("ascii")


def verify_signature(payload: bytes, signature: bytes, public_key: bytes | str) -> bool:
    """Return True only if ``signature`` is a valid Ed25519 signature of ``payload``.

    Malformed keys and signatures give ``False`` rather than raising.
    """
    if isinstance(public_key, str):
        try:
            key_bytes = decode_public_key(public_key)
        except ValueError:
            return False
    else:
        key_bytes = bytes(public_key)

    if len(key_bytes) != PUBLIC_KEY_BYTES or len(signature) != SIGNATURE_BYTES:
        return False

    try:
        signing.VerifyKey(key_bytes).verify(bytes(payload), bytes(signature))
    except (CryptoError, ValueError, TypeError):
        return False
    return True


def require_valid_signature(payload: bytes, signature: bytes, public_key: bytes | str) -> bytes:
    """Return ``signature`` if it verifies, otherwise raise VerificationFailedError."""
    if not verify_signature(payload, signature, public_key):
        raise VerificationFailedError("signature invalid")
    return signature
