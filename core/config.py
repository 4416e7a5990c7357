"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the Degenius API happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Loading:
  Settings is a pydantic-settings BaseSettings. Each field is filled from the
      environment variable of the same name in upper case (smtp_host ->
      SMTP_HOST), then from .env, then from the default below.
  get_settings() is wrapped in lru_cache, so the first caller builds the
      object and every later caller shares it.
  validate_secret_key() runs once loading is done and refuses to build a
      Settings without a signing key outside DEBUG mode.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. Session and client
  tokens are HS256 JWTs, so the key's entropy is the whole security margin.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, accounts/, mail/, or outreach/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("degenius.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'degenius.db'}"


class Settings(BaseSettings):
    """Runtime configuration for the API, the CLI and the mail transport.

    Only SECRET_KEY lacks a usable default, and DEBUG=true covers it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    app_name: str = "Degenius FX Academy"
    debug: bool = False
    # Empty string is the sentinel for "not configured".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL
    # Links in verification and reset emails point at the frontend, which
    # calls back into the API with the userId/token pair.
    frontend_url: str = "http://localhost:5173"
    cors_origins: list[str] = ["https://degeniusfxacademy.netlify.app", "http://localhost:5173"]

    # ------------------------------------------------------------------
    # Sessions and cookies
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    # "none" lets the frontend read the cookie when embedded cross-site.
    # Browsers only honour SameSite=None together with Secure.
    cookie_samesite: str = "none"
    session_expire_seconds: int = 15 * 24 * 60 * 60

    # ------------------------------------------------------------------
    # Action tokens (email verification / password reset)
    # ------------------------------------------------------------------

    action_token_ttl_seconds: int = 1800
    token_purge_interval_seconds: int = 600

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 10
    default_page_size: int = 10

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "20/hour"
    email_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Mail transport (SMTP)
    # ------------------------------------------------------------------

    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_use_ssl: bool = False
    smtp_timeout_seconds: int = 30
    mail_sender: str = "no-reply@degeniusfxacademy.com"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        DEBUG=true with no key: a random one is generated and a warning is
            logged. Every restart invalidates outstanding sessions.
        DEBUG unset or false with no key: startup fails.
        Any key under 32 characters fails, as does an unknown SameSite mode.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("SECRET_KEY not set; generated a throwaway key for this DEBUG run")
            else:
                raise ValueError("SECRET_KEY must be set (environment or .env) unless DEBUG=true.")
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if self.cookie_samesite not in ("lax", "strict", "none"):
            raise ValueError("COOKIE_SAMESITE must be one of: lax, strict, none.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Tests that need different values patch a model_copy() of it in place of
    this function rather than mutating the environment.
    """
    return Settings()
