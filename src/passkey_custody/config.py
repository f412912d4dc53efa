"""Configuration settings for the passkey custody service."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass
class Settings:
    """Explicit configuration threaded into every client and orchestrator.

    Nothing in the package reads the environment on its own; build a
    ``Settings`` once (usually with :meth:`from_env`) and pass it down.
    """

    custody_base_url: str = "https://api.turnkey.com"
    organization_id: str = ""
    api_public_key: str = ""  # compressed P-256 public key, hex
    api_private_key: str = ""  # P-256 private scalar, hex
    challenge_key: str | None = None  # 32-byte XChaCha20-Poly1305 key, hex
    challenge_timeout_ms: int = 60_000
    poll_interval: float = 0.25
    poll_timeout: float = 60.0
    request_timeout: float = 30.0
    rp_id: str = "localhost"
    expected_origin: str = "http://localhost:3000"
    owner_user_name: str = "Passkey"
    helper_user_name: str = "Helper"
    sub_organization_prefix: str = "Passkey Wallet"
    private_key_name: str = "Solana Key"
    ledger_url: str | None = None
    log_level: str = "INFO"
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 10000

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            custody_base_url=os.getenv("TURNKEY_API_BASE_URL", defaults.custody_base_url).rstrip(
                "/"
            ),
            organization_id=os.getenv("TURNKEY_ORGANIZATION_ID", ""),
            api_public_key=os.getenv("TURNKEY_API_PUBLIC_KEY", ""),
            api_private_key=os.getenv("TURNKEY_API_PRIVATE_KEY", ""),
            challenge_key=os.getenv("ENCRYPTION_PRIVATE_KEY") or None,
            challenge_timeout_ms=int(
                os.getenv("CHALLENGE_TIMEOUT_MS", str(defaults.challenge_timeout_ms))
            ),
            poll_interval=_env_float("CUSTODY_POLL_INTERVAL", defaults.poll_interval),
            poll_timeout=_env_float("CUSTODY_POLL_TIMEOUT", defaults.poll_timeout),
            request_timeout=_env_float("CUSTODY_REQUEST_TIMEOUT", defaults.request_timeout),
            rp_id=os.getenv("WEBAUTHN_RP_ID", defaults.rp_id),
            expected_origin=os.getenv("WEBAUTHN_ORIGIN", defaults.expected_origin),
            ledger_url=os.getenv("ORPHAN_LEDGER_URL") or None,
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            host=os.getenv("SDK_HOST", defaults.host),
            port=int(os.getenv("SDK_PORT", str(defaults.port))),
        )

    @property
    def challenge_key_bytes(self) -> bytes | None:
        if not self.challenge_key:
            return None
        key = bytes.fromhex(self.challenge_key)
        if len(key) != 32:
            raise ValueError("ENCRYPTION_PRIVATE_KEY must be 32 bytes of hex")
        return key
