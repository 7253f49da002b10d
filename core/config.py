"""
core/config.py -- Centralized client configuration via pydantic-settings.

All environment variable reads for the Nexus client happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. site_url -> SITE_URL). Type coercion and validation are built in.

  @model_validator(mode="after"): Normalizes the site URL and endpoint paths
      once, so every caller can join them with a single "/".

Security notes:
  The credential is persisted in a local SQLite file that any process running
  as the same user can read. Set PERSIST_CREDENTIAL=false to keep it in memory
  only; the session then ends with the process.

Layer rule: core/ is the kernel. This module may not import from auth/,
gateway/, or storage/.
"""

import logging
from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("nexus.config")

_DEFAULT_STORAGE_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'storage' / 'nexus_client.db'}"
_LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


class Settings(BaseSettings):
    """Client settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Remote service
    # ------------------------------------------------------------------

    site_url: str = "http://localhost:10003"
    api_namespace: str = "wp-json/nexus/v1"
    identity_path: str = "wp-json/wp/v2/users/me"
    login_path: str = "wp-json/jwt-auth/v1/token"
    request_timeout: float = 10.0

    # ------------------------------------------------------------------
    # Durable client storage
    # ------------------------------------------------------------------

    storage_url: str = _DEFAULT_STORAGE_URL
    credential_key: str = "wp_jwt_token"
    persist_credential: bool = True

    debug: bool = False

    # ------------------------------------------------------------------
    # Derived endpoints
    # ------------------------------------------------------------------

    @property
    def api_root(self) -> str:
        return f"{self.site_url}/{self.api_namespace}"

    @property
    def identity_url(self) -> str:
        return f"{self.site_url}/{self.identity_path}"

    @property
    def login_url(self) -> str:
        return f"{self.site_url}/{self.login_path}"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def normalize_endpoints(self) -> "Settings":
        """Validate the site URL and strip stray slashes from every path.

        Plain-http persistence against a remote host is allowed but logged:
        the bearer credential would travel and rest unprotected.
        """
        parsed = urlparse(self.site_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"SITE_URL must be an absolute http(s) URL, got {self.site_url!r}.")
        if self.request_timeout <= 0:
            raise ValueError("REQUEST_TIMEOUT must be greater than zero.")

        self.site_url = self.site_url.rstrip("/")
        self.api_namespace = self.api_namespace.strip("/")
        self.identity_path = self.identity_path.strip("/")
        self.login_path = self.login_path.strip("/")

        if parsed.scheme == "http" and parsed.hostname not in _LOCAL_HOSTS and self.persist_credential:
            logger.warning("SITE_URL uses plain http for a remote host; bearer credentials are sent unencrypted.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the client Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
