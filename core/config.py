"""
core/config.py -- tokengate settings, read from the environment by pydantic-settings.

Nothing else in the project reads os.environ; everything goes through
get_settings(), which builds one Settings object per process (lru_cache).
Each field maps to an upper-case env var of the same name (state_key ->
STATE_KEY) and may also come from a .env file in the working directory.

Signing keys:
  STATE_KEY signs the short-lived sign-in state tokens, SESSION_KEY signs the
  session cookies. A key is either plain text (its UTF-8 bytes are the key)
  or "hex:<hex digits>" for arbitrary bytes. `python main.py keygen` prints
  a fresh one.

  [K1] Decoded keys must be at least 32 bytes; shorter ones fail startup.
  [K2] An unset key is replaced by 32 random bytes with a warning. Tokens
       signed before a restart then stop verifying, so production deployments
       set both keys.

Layer rule: core/ imports nothing from api/, web/, or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger("tokengate.config")

MIN_KEY_BYTES = 32
_HEX_PREFIX = "hex:"
_DEFAULT_SITE_DIR = Path(__file__).resolve().parent.parent / "web" / "static"


def generate_key() -> str:
    """Return a fresh random 32-byte key in the "hex:" config form."""
    return _HEX_PREFIX + secrets.token_hex(MIN_KEY_BYTES)


def key_to_bytes(value: str) -> bytes:
    """Decode a configured key string into raw key bytes.

    Raises ValueError when a "hex:" key is not valid hex.
    """
    if value.startswith(_HEX_PREFIX):
        return bytes.fromhex(value[len(_HEX_PREFIX) :])
    return value.encode("utf-8")


class Settings(BaseSettings):
    """Every tunable of the gate. All fields default, so tests can build one
    with only the overrides they care about.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below replaces it with a random key, so callers never see "".
    state_key: str = ""
    session_key: str = ""

    # ------------------------------------------------------------------
    # Access policy
    # ------------------------------------------------------------------

    allowed_users: Annotated[frozenset[str], NoDecode] = frozenset()
    state_ttl_seconds: int = 180
    session_ttl_seconds: int = 7 * 24 * 60 * 60

    # ------------------------------------------------------------------
    # Cookies
    # ------------------------------------------------------------------

    session_cookie_name: str = "session"
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # GitHub sign-in (empty string means the provider is not configured)
    # ------------------------------------------------------------------

    github_client_id: str = ""
    github_client_secret: str = ""

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    callback_rate_limit: str = "10/minute"
    site_dir: Path = _DEFAULT_SITE_DIR

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("allowed_users", mode="before")
    @classmethod
    def split_allowed_users(cls, value):
        """Accept ALLOWED_USERS as "alice,bob" or as a list of names."""
        if isinstance(value, str):
            value = value.split(",")
        return frozenset(name.strip() for name in value if name and name.strip())

    @model_validator(mode="after")
    def validate_keys(self) -> "Settings":
        """Fill in missing keys, reject malformed or short ones, require positive TTLs."""
        for field in ("state_key", "session_key"):
            value = getattr(self, field)
            if not value:
                setattr(self, field, generate_key())
                logger.warning(
                    "%s is not set; using a random key. Tokens will not survive a restart.", field.upper()
                )
                continue
            try:
                raw = key_to_bytes(value)
            except ValueError:
                raise ValueError(f"{field.upper()} has a 'hex:' prefix but is not valid hex.") from None
            if len(raw) < MIN_KEY_BYTES:
                raise ValueError(f"{field.upper()} must be at least {MIN_KEY_BYTES} bytes.")
        if self.state_ttl_seconds <= 0 or self.session_ttl_seconds <= 0:
            raise ValueError("Token TTLs must be positive.")
        return self

    def state_key_bytes(self) -> bytes:
        return key_to_bytes(self.state_key)

    def session_key_bytes(self) -> bytes:
        return key_to_bytes(self.session_key)

    @property
    def github_configured(self) -> bool:
        return bool(self.github_client_id and self.github_client_secret)


@lru_cache
def get_settings() -> Settings:
    """Settings for this process, built on first call.

    Tests that change the environment must call get_settings.cache_clear().
    """
    return Settings()
