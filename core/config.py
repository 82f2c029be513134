"""
core/config.py -- Centralized client configuration via pydantic-settings.

All environment variable reads for the payslip client happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. credential_key -> CREDENTIAL_KEY). Type coercion and validation are
      built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Used for the DEBUG-conditional CREDENTIAL_KEY logic: dev
      mode generates a key with a warning, production mode refuses to start
      without one.

Security notes:
  The bearer token is encrypted at rest with CREDENTIAL_KEY (Fernet). A key
  generated in dev mode is not persisted, so a stored token becomes unreadable
  after restart and the client falls back to the logged-out state.

Layer rule: core/ is the kernel. This module may not import from auth/,
notifications/ or receipts/.
"""

import logging
from functools import lru_cache

from cryptography.fernet import Fernet
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("payslip.config")


class Settings(BaseSettings):
    """Client settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces the
    credential key policy at startup.
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

    # ------------------------------------------------------------------
    # Backend
    # ------------------------------------------------------------------

    api_base_url: str = "https://juventudbc.com.mx"
    request_timeout: float = 15.0

    # ------------------------------------------------------------------
    # Device storage
    # ------------------------------------------------------------------

    device_db_url: str = "sqlite:///payslip_device.db"
    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev key or raises, so callers never see "".
    credential_key: str = ""

    # bcrypt hash of the device PIN used by the console biometric prompt.
    # Empty means biometrics are unavailable on this device.
    device_pin_hash: str = ""

    # ------------------------------------------------------------------
    # Notifications / receipts
    # ------------------------------------------------------------------

    # Device push token, normally delivered by the platform messaging SDK.
    push_token: str = ""
    download_dir: str = "."

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_credential_key(self) -> "Settings":
        """Enforce the CREDENTIAL_KEY policy.

        Dev mode (DEBUG=true): auto-generate a Fernet key with a warning.
            Stored tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            CREDENTIAL_KEY is missing.

        Both modes: reject values that are not valid Fernet keys.
        """
        if not self.credential_key:
            if self.debug:
                self.credential_key = Fernet.generate_key().decode("ascii")
                logger.warning(
                    "WARNING: Using auto-generated CREDENTIAL_KEY. " "Stored sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "CREDENTIAL_KEY is required in production mode. "
                    "Set CREDENTIAL_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        try:
            Fernet(self.credential_key.encode("ascii"))
        except (ValueError, UnicodeEncodeError) as e:
            raise ValueError("CREDENTIAL_KEY must be a url-safe base64 encoded 32-byte key.") from e
        if self.request_timeout <= 0:
            raise ValueError("REQUEST_TIMEOUT must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the client Settings singleton.

    All modules should call get_settings() rather than constructing Settings()
    directly. In tests: call get_settings.cache_clear() between test cases if
    you need to inject different environment variables.
    """
    return Settings()
