"""Environment-driven settings for the Adventure Check-in API."""

from __future__ import annotations

import os


def _env_flag(name: str, default: bool) -> bool:
    """Parse truthy feature-toggle values from the environment."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        print(f"⚠️ Invalid {name} value: {raw!r}. Using default {default}.")
        return default


def _env_str(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip() or default


def _database_url() -> str:
    url = _env_str("DATABASE_URL", "sqlite:///adventure.db")
    # Heroku-style URLs still use the legacy scheme name.
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


class Config:
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    JSON_SORT_KEYS = False

    LOG_LEVEL = _env_str("LOG_LEVEL", "INFO")

    # ====== Identity provider (Shopify customers) ======
    SHOPIFY_STORE_DOMAIN = _env_str("SHOPIFY_STORE_DOMAIN")
    SHOPIFY_ACCESS_TOKEN = _env_str("SHOPIFY_ACCESS_TOKEN")
    SHOPIFY_API_VERSION = _env_str("SHOPIFY_API_VERSION", "2023-10")
    IDENTITY_TIMEOUT_SECONDS = _env_int("IDENTITY_TIMEOUT_SECONDS", 10, minimum=1)

    # ====== Photo storage (Supabase Storage) ======
    USE_SUPABASE = _env_flag("USE_SUPABASE", True)
    SUPABASE_URL = _env_str("SUPABASE_URL")
    SUPABASE_KEY = _env_str("SUPABASE_KEY")
    PHOTOS_BUCKET = _env_str("PHOTOS_BUCKET", "photos")
    PHOTO_POINTS = _env_int("PHOTO_POINTS", 5, minimum=0)

    # ====== Gameplay rules ======
    NEARBY_DEFAULT_RADIUS_M = _env_int("NEARBY_DEFAULT_RADIUS_M", 50_000, minimum=1)
    CHECKIN_FIRST_VISIT_ONLY = _env_flag("CHECKIN_FIRST_VISIT_ONLY", True)
    QUEST_ENFORCE_STEP_ORDER = _env_flag("QUEST_ENFORCE_STEP_ORDER", False)
