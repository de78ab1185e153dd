from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    return float(raw) if raw else None


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here. Missing cache
    credentials are not an error: the server simply runs without caching.
    """

    app_env: str = os.getenv("APP_ENV", "development")

    # Generation backend
    gemini_api_key: Optional[str] = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    max_output_tokens: int = int(os.getenv("MODEL_MAX_OUTPUT_TOKENS", "8192"))
    generation_timeout: Optional[float] = _env_optional_float("GENERATION_TIMEOUT")

    # Persona selection
    persona: str = os.getenv("DRONA_PERSONA", "auto")
    honor_query_type: bool = _env_flag("HONOR_QUERY_TYPE")

    # Remote cache store (Firebase Realtime Database REST)
    firebase_database_url: Optional[str] = os.getenv("FIREBASE_DATABASE_URL")
    firebase_auth_token: Optional[str] = os.getenv("FIREBASE_AUTH_TOKEN")
    chat_cache_namespace: str = os.getenv("CHAT_CACHE_NAMESPACE", "drona_chat_cache")
    trending_cache_namespace: str = os.getenv("TRENDING_CACHE_NAMESPACE", "drona_trending_cache")
    cache_ttl_ms: int = int(os.getenv("CACHE_TTL_MS", "604800000"))
    trending_ttl_ms: int = int(os.getenv("TRENDING_TTL_MS", "21600000"))
    cache_store_timeout: float = float(os.getenv("CACHE_STORE_TIMEOUT", "10.0"))

    # Topic suggestions
    google_search_api_key: Optional[str] = os.getenv("GOOGLE_SEARCH_API_KEY")
    google_cx_id: Optional[str] = os.getenv("GOOGLE_CX_ID")
    search_api_url: str = os.getenv(
        "SEARCH_API_URL", "https://www.googleapis.com/customsearch/v1"
    )

    # HTTP surface
    static_dir: str = os.getenv("STATIC_DIR", "public")
    port: int = int(os.getenv("PORT", "3000"))

    @property
    def cache_enabled(self) -> bool:
        return bool(self.firebase_database_url)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
