"""Configuration helpers for environment variables."""

from __future__ import annotations

import os
import logging

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


_DEFAULT_RECENT_WINDOW_DAYS = 7
_DEFAULT_TRANSACTIONS_TABLE = "transactions"
_DEFAULT_CACHE_MAX_USERS = 256


def _should_load_dotenv() -> bool:
    """Return whether local dotenv loading should run."""
    app_env = os.getenv("APP_ENV", "dev").strip().lower()
    return app_env in {"dev", "local"}


if _should_load_dotenv():
    load_dotenv()


def get_env(name: str, default: str | None = None) -> str | None:
    """Return a raw environment value or default."""
    return os.getenv(name, default)


def app_env() -> str:
    """Return the current application environment."""
    return (get_env("APP_ENV", "dev") or "dev").strip() or "dev"


def cors_allow_origins() -> list[str]:
    """Return CORS allowed origins from env with safe environment defaults."""
    raw_origins = get_env("CORS_ALLOW_ORIGINS", "") or ""
    parsed_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]

    if parsed_origins:
        return parsed_origins

    if app_env().strip().lower() in {"dev", "local"}:
        return ["http://localhost:5173", "http://127.0.0.1:5173"]

    ui_origin = (get_env("UI_ORIGIN", "") or "").strip()
    if ui_origin:
        return [ui_origin]

    logger.warning(
        "cors_allow_origins_empty_in_prod app_env=%s; define CORS_ALLOW_ORIGINS or UI_ORIGIN",
        app_env(),
    )

    return []


def _positive_int_env(name: str, default: int) -> int:
    raw_value = (get_env(name, "") or "").strip()
    if not raw_value:
        return default

    try:
        value = int(raw_value)
    except ValueError:
        value = 0

    if value <= 0:
        logger.warning(
            "config_value_invalid name=%s raw_value=%s; falling back to %s",
            name,
            raw_value,
            default,
        )
        return default
    return value


def recent_window_days() -> int:
    """Return the trailing window, in days, used for recent transactions."""
    return _positive_int_env("RECENT_WINDOW_DAYS", _DEFAULT_RECENT_WINDOW_DAYS)


def cache_max_users() -> int:
    """Return how many per-user transaction caches one process keeps."""
    return _positive_int_env("TRANSACTION_CACHE_MAX_USERS", _DEFAULT_CACHE_MAX_USERS)


def transactions_table() -> str:
    """Return the Supabase table holding user transactions."""
    return (get_env("TRANSACTIONS_TABLE", "") or "").strip() or _DEFAULT_TRANSACTIONS_TABLE


def supabase_url() -> str | None:
    """Return Supabase URL when configured."""
    return get_env("SUPABASE_URL")


def supabase_service_role_key() -> str | None:
    """Return Supabase service role key when configured."""
    return get_env("SUPABASE_SERVICE_ROLE_KEY")


def supabase_anon_key() -> str | None:
    """Return Supabase anon key when configured."""
    return get_env("SUPABASE_ANON_KEY")
