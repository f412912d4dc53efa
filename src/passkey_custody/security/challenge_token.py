"""Stateless, encrypted registration challenges.

A challenge is a small JSON record ``{"type", "issuedAtMillis"}`` sealed with
XChaCha20-Poly1305 under a process-wide key. The server keeps no record of
issued challenges: a token is valid exactly when it authenticates under the
key, names the expected stage and is younger than the timeout.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import secrets
import time
from collections.abc import Callable

from nacl.bindings import (
    crypto_aead_xchacha20poly1305_ietf_ABYTES,
    crypto_aead_xchacha20poly1305_ietf_decrypt,
    crypto_aead_xchacha20poly1305_ietf_encrypt,
    crypto_aead_xchacha20poly1305_ietf_KEYBYTES,
    crypto_aead_xchacha20poly1305_ietf_NPUBBYTES,
)
from nacl.exceptions import CryptoError

from ..config import Settings
from ..errors import ChallengeExpiredError, ForgedOrCorruptError, WrongStageError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 60 * 1000
_AAD = b"passkey-custody-challenge-v1"
_NONCE_BYTES = crypto_aead_xchacha20poly1305_ietf_NPUBBYTES
_MIN_TOKEN_BYTES = _NONCE_BYTES + crypto_aead_xchacha20poly1305_ietf_ABYTES


def _now_ms() -> int:
    return int(time.time() * 1000)


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    """Strict base64url decode; rejects non-alphabet and non-canonical input."""
    raw = value.encode("ascii")
    padded = raw + b"=" * (-len(raw) % 4)
    data = base64.b64decode(padded, altchars=b"-_", validate=True)
    if b64url_encode(data) != value:
        raise ValueError("non-canonical base64url")
    return data


class ChallengeToken:
    """Issue and verify authenticated, time-boxed challenge tokens."""

    def __init__(
        self,
        key: bytes,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        if len(key) != crypto_aead_xchacha20poly1305_ietf_KEYBYTES:
            raise ValueError("challenge key must be 32 bytes")
        if timeout_ms <= 0:
            raise ValueError("challenge timeout must be positive")
        self._key = key
        self.timeout_ms = timeout_ms
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], int] = _now_ms) -> ChallengeToken:
        key = settings.challenge_key_bytes
        if key is None:
            # Tokens issued before a restart stop verifying, which the timeout allows for.
            logger.warning("ENCRYPTION_PRIVATE_KEY not set, using a per-process challenge key")
            key = secrets.token_bytes(crypto_aead_xchacha20poly1305_ietf_KEYBYTES)
        return cls(key, timeout_ms=settings.challenge_timeout_ms, clock=clock)

    def issue(self, challenge_type: str) -> str:
        """Encrypt a challenge with a nonce and MAC, so it can't be forged by the client."""
        record = {"type": challenge_type, "issuedAtMillis": self._clock()}
        plaintext = json.dumps(record, separators=(",", ":")).encode("utf-8")
        nonce = secrets.token_bytes(_NONCE_BYTES)
        ciphertext = crypto_aead_xchacha20poly1305_ietf_encrypt(plaintext, _AAD, nonce, self._key)
        return b64url_encode(nonce + ciphertext)

    def verify(self, expected_type: str, token: str) -> None:
        """Decrypt a challenge and check its type and timestamp."""
        record = self._open(token)

        challenge_type = record.get("type")
        if challenge_type != expected_type:
            raise WrongStageError(expected_type, str(challenge_type))

        issued_at = record["issuedAtMillis"]
        if self._clock() > issued_at + self.timeout_ms:
            raise ChallengeExpiredError(issued_at, self.timeout_ms)

    def _open(self, token: str) -> dict:
        try:
            data = b64url_decode(token)
            if len(data) < _MIN_TOKEN_BYTES:
                raise ValueError("token too short")
            nonce, ciphertext = data[:_NONCE_BYTES], data[_NONCE_BYTES:]
            plaintext = crypto_aead_xchacha20poly1305_ietf_decrypt(
                ciphertext, _AAD, nonce, self._key
            )
            record = json.loads(plaintext.decode("utf-8"))
        except (
            AttributeError,
            UnicodeError,
            ValueError,
            binascii.Error,
            CryptoError,
        ) as err:
            raise ForgedOrCorruptError() from err

        if not isinstance(record, dict):
            raise ForgedOrCorruptError()
        issued_at = record.get("issuedAtMillis")
        if not isinstance(issued_at, int) or isinstance(issued_at, bool):
            raise ForgedOrCorruptError()
        return record
