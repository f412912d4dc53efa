"""Tests for environment-driven settings."""

import pytest

from passkey_custody.config import Settings


class TestSettingsFromEnv:
    def test_defaults(self, monkeypatch):
        for name in (
            "TURNKEY_API_BASE_URL",
            "TURNKEY_ORGANIZATION_ID",
            "ENCRYPTION_PRIVATE_KEY",
            "CHALLENGE_TIMEOUT_MS",
            "CUSTODY_POLL_TIMEOUT",
            "ORPHAN_LEDGER_URL",
            "SDK_PORT",
        ):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()
        assert settings.custody_base_url == "https://api.turnkey.com"
        assert settings.challenge_key is None
        assert settings.challenge_key_bytes is None
        assert settings.challenge_timeout_ms == 60_000
        assert settings.poll_timeout == 60.0
        assert settings.ledger_url is None
        assert settings.port == 10000

    def test_overrides(self, monkeypatch):
        key = "ab" * 32
        monkeypatch.setenv("TURNKEY_API_BASE_URL", "https://custody.example/")
        monkeypatch.setenv("TURNKEY_ORGANIZATION_ID", "org-1")
        monkeypatch.setenv("ENCRYPTION_PRIVATE_KEY", key)
        monkeypatch.setenv("CHALLENGE_TIMEOUT_MS", "1500")
        monkeypatch.setenv("CUSTODY_POLL_INTERVAL", "0.5")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = Settings.from_env()
        assert settings.custody_base_url == "https://custody.example"
        assert settings.organization_id == "org-1"
        assert settings.challenge_key_bytes == bytes.fromhex(key)
        assert settings.challenge_timeout_ms == 1500
        assert settings.poll_interval == 0.5
        assert settings.log_level == "DEBUG"

    def test_blank_float_uses_default(self, monkeypatch):
        monkeypatch.setenv("CUSTODY_REQUEST_TIMEOUT", "  ")
        assert Settings.from_env().request_timeout == 30.0

    @pytest.mark.parametrize("key", ["ab" * 16, "zz" * 32])
    def test_bad_challenge_key(self, key):
        with pytest.raises(ValueError):
            Settings(challenge_key=key).challenge_key_bytes
