from __future__ import annotations

import json
from typing import Protocol

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ..config import Settings
from ..security.challenge_token import b64url_encode

STAMP_HEADER = "X-Stamp"
SIGNATURE_SCHEME = "SIGNATURE_SCHEME_TK_API_P256"


class Stamper(Protocol):
    def stamp(self, body: str) -> tuple[str, str]:
        """Return ``(header_name, header_value)`` authenticating ``body``."""
        ...


def generate_api_key_pair() -> tuple[str, str]:
    """Generate a P-256 API key pair as ``(public_key_hex, private_key_hex)``."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    private_hex = format(private_key.private_numbers().private_value, "064x")
    public_hex = (
        private_key.public_key()
        .public_bytes(serialization.Encoding.X962, serialization.PublicFormat.CompressedPoint)
        .hex()
    )
    return public_hex, private_hex


class ApiKeyStamper:
    """Stamp request bodies with a long-lived P-256 API key."""

    def __init__(self, public_key_hex: str, private_key_hex: str) -> None:
        if not public_key_hex or not private_key_hex:
            raise ValueError("API key pair is not configured")
        self.public_key_hex = public_key_hex.lower()
        self._private_key = ec.derive_private_key(int(private_key_hex, 16), ec.SECP256R1())
        derived = (
            self._private_key.public_key()
            .public_bytes(serialization.Encoding.X962, serialization.PublicFormat.CompressedPoint)
            .hex()
        )
        if derived != self.public_key_hex:
            raise ValueError("API public key does not match the private key")

    @classmethod
    def from_settings(cls, settings: Settings) -> ApiKeyStamper:
        return cls(settings.api_public_key, settings.api_private_key)

    def stamp(self, body: str) -> tuple[str, str]:
        signature = self._private_key.sign(body.encode("utf-8"), ec.ECDSA(hashes.SHA256()))
        stamp = {
            "publicKey": self.public_key_hex,
            "scheme": SIGNATURE_SCHEME,
            "signature": signature.hex(),
        }
        return STAMP_HEADER, b64url_encode(json.dumps(stamp).encode("utf-8"))
