import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    session_ttl_days: int
    session_update_age_hours: int

    groq_api_key: str
    groq_model: str
    groq_base_url: str

    google_client_id: str
    google_client_secret: str
    google_redirect_uri: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///fintrack.db"),
        session_ttl_days=_getenv_int("SESSION_TTL_DAYS", 7),
        session_update_age_hours=_getenv_int("SESSION_UPDATE_AGE_HOURS", 24),
        groq_api_key=_getenv("GROQ_API_KEY", ""),
        groq_model=_getenv("GROQ_MODEL", "openai/gpt-oss-20b"),
        groq_base_url=_getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1"),
        google_client_id=_getenv("GOOGLE_CLIENT_ID", ""),
        google_client_secret=_getenv("GOOGLE_CLIENT_SECRET", ""),
        google_redirect_uri=_getenv("GOOGLE_REDIRECT_URI", ""),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "SESSION_TTL_DAYS": s.session_ttl_days,
        "SESSION_UPDATE_AGE_HOURS": s.session_update_age_hours,
        "GROQ_API_KEY": s.groq_api_key,
        "GROQ_MODEL": s.groq_model,
        "GROQ_BASE_URL": s.groq_base_url,
        "GOOGLE_CLIENT_ID": s.google_client_id,
        "GOOGLE_CLIENT_SECRET": s.google_client_secret,
        "GOOGLE_REDIRECT_URI": s.google_redirect_uri,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # JSON API: bodies are small
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
