"""
Runtime configuration.

All values come from the environment; a `.env` file next to this module is
loaded first so local development does not need exported variables.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
- JWT_SECRET: Secret used to sign session tokens
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


def _require(name: str, hint: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing environment variable: {name}. {hint}")
    return value


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}")


@dataclass(frozen=True, slots=True)
class Settings:
    """Startup configuration for the sales ledger service."""

    supabase_url: str
    supabase_key: str
    jwt_secret: str

    allowed_origin: str = "http://localhost:5500"
    public_base_url: str = "http://localhost:5500"

    # Mercado Pago
    mp_access_token: str = ""
    mp_webhook_secret: str = ""
    webhook_tolerance_seconds: int = 600
    currency_id: str = "BRL"

    store_timeout_seconds: int = 10
    gateway_timeout_seconds: int = 10
    catalog_cache_ttl_seconds: int = 0

    auth_rate_limit: int = 10
    auth_rate_window_seconds: int = 15 * 60
    api_rate_limit: int = 60
    api_rate_window_seconds: int = 60

    session_ttl_seconds: int = 2 * 60 * 60

    log_level: str = "INFO"
    port: int = 3000

    @property
    def gateway_enabled(self) -> bool:
        return bool(self.mp_access_token)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Build settings from the environment.

    Raises:
        RuntimeError: If a required variable is missing or malformed
    """

    return Settings(
        supabase_url=_require("SUPABASE_URL", "Set SUPABASE_URL to your Supabase project URL."),
        supabase_key=_require("SUPABASE_KEY", "Set SUPABASE_KEY to your Supabase API key."),
        jwt_secret=_require("JWT_SECRET", "Set JWT_SECRET to a long random string."),
        allowed_origin=os.getenv("ALLOWED_ORIGIN", "http://localhost:5500"),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:5500").rstrip("/"),
        mp_access_token=os.getenv("MP_ACCESS_TOKEN", ""),
        mp_webhook_secret=os.getenv("MP_WEBHOOK_SECRET", ""),
        webhook_tolerance_seconds=_int("WEBHOOK_TOLERANCE_SECONDS", 600),
        currency_id=os.getenv("CURRENCY_ID", "BRL"),
        store_timeout_seconds=_int("STORE_TIMEOUT_SECONDS", 10),
        gateway_timeout_seconds=_int("GATEWAY_TIMEOUT_SECONDS", 10),
        catalog_cache_ttl_seconds=_int("CATALOG_CACHE_TTL_SECONDS", 0),
        auth_rate_limit=_int("AUTH_RATE_LIMIT", 10),
        auth_rate_window_seconds=_int("AUTH_RATE_WINDOW_SECONDS", 15 * 60),
        api_rate_limit=_int("API_RATE_LIMIT", 60),
        api_rate_window_seconds=_int("API_RATE_WINDOW_SECONDS", 60),
        session_ttl_seconds=_int("SESSION_TTL_SECONDS", 2 * 60 * 60),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        port=_int("PORT", 3000),
    )


__all__ = ["Settings", "get_settings"]
