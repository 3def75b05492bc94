"""Unit tests for core/config.py -- Settings and the signing-key policy.

Covers:
  - Missing keys are generated (with a warning), never left empty
  - Raw and "hex:" keys decode to the expected bytes
  - Short keys and bad hex fail validation at startup
  - ALLOWED_USERS accepts comma strings (env) and lists
  - TTLs must be positive
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import MIN_KEY_BYTES, Settings, generate_key, get_settings, key_to_bytes


class TestKeys:
    def test_missing_keys_are_generated_with_warning(self, caplog, make_settings):
        with caplog.at_level("WARNING", logger="tokengate.config"):
            settings = make_settings(state_key="", session_key="")
        assert settings.state_key.startswith("hex:")
        assert len(settings.state_key_bytes()) == MIN_KEY_BYTES
        assert settings.state_key != settings.session_key
        assert "STATE_KEY" in caplog.text and "SESSION_KEY" in caplog.text

    def test_raw_key_is_utf8_bytes(self, make_settings):
        settings = make_settings(state_key="x" * 40)
        assert settings.state_key_bytes() == b"x" * 40

    def test_hex_key(self, make_settings):
        settings = make_settings(session_key="hex:" + "ab" * 32)
        assert settings.session_key_bytes() == b"\xab" * 32

    @pytest.mark.parametrize("key", ["short", "x" * 31, "hex:" + "ab" * 31])
    def test_short_key_rejected(self, key, make_settings):
        with pytest.raises(ValidationError):
            make_settings(state_key=key)

    def test_bad_hex_rejected(self, make_settings):
        with pytest.raises(ValidationError):
            make_settings(session_key="hex:" + "zz" * 32)

    def test_generate_key_round_trips(self, make_settings):
        key = generate_key()
        assert key != generate_key()
        assert len(key_to_bytes(key)) == MIN_KEY_BYTES
        assert make_settings(state_key=key).state_key == key


class TestAllowedUsers:
    def test_comma_string(self, make_settings):
        settings = make_settings(allowed_users="alice, bob,,")
        assert settings.allowed_users == frozenset({"alice", "bob"})

    def test_list(self, make_settings):
        assert make_settings(allowed_users=["alice", " bob "]).allowed_users == frozenset({"alice", "bob"})

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_USERS", "alice,carol")
        monkeypatch.setenv("SESSION_COOKIE_NAME", "sid")
        settings = Settings(_env_file=None, state_key="s" * 32, session_key="k" * 32)
        assert settings.allowed_users == frozenset({"alice", "carol"})
        assert settings.session_cookie_name == "sid"

    def test_default_is_empty(self):
        assert Settings(_env_file=None, state_key="s" * 32, session_key="k" * 32).allowed_users == frozenset()


class TestPolicy:
    def test_defaults(self, make_settings):
        settings = make_settings()
        assert settings.state_ttl_seconds == 180
        assert settings.session_ttl_seconds == 7 * 24 * 3600
        assert settings.session_cookie_name == "session"
        assert settings.secure_cookies is False

    @pytest.mark.parametrize("field", ["state_ttl_seconds", "session_ttl_seconds"])
    def test_ttl_must_be_positive(self, field, make_settings):
        with pytest.raises(ValidationError):
            make_settings(**{field: 0})

    def test_github_configured(self, make_settings):
        assert make_settings().github_configured
        assert not make_settings(github_client_secret="").github_configured

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
