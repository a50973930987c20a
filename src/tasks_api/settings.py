from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional
from urllib.parse import quote_plus

from .errors import ConfigurationError

DEV_AUTH_SECRET = "development-secret-change-me"


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - APP_ENV: 'development' (default) or 'production' (NODE_ENV is accepted as fallback)
    - HOST / PORT: listen address for the bundled server (default 0.0.0.0:3000)
    - LOG_LEVEL: logging level name (default 'info')
    - LOG_FORMAT: 'json' or 'text' (default json in production, text otherwise)
    - PERSISTENCE_BACKEND: 'database' (default) or 'memory'
    - DATABASE_URL: SQLAlchemy async URL; when unset, DATABASE_HOST/PORT/USER/PASSWORD/NAME/SSL
      assemble a PostgreSQL URL, otherwise a local SQLite file is used
    - AUTH_SECRET: secret used to sign session cookies (BETTER_AUTH_SECRET accepted as fallback)
    - AUTH_URL: public base URL of the auth endpoints (BETTER_AUTH_URL accepted as fallback)
    - CORS_ALLOW_ORIGINS: comma-separated list of origins allowed on the auth endpoints
    """

    env: str
    host: str
    port: int
    log_level: str
    log_format: str
    persistence_backend: str
    database_url: str
    auth_secret: str
    auth_url: str
    auth_prefix: str
    cors_allow_origins: List[str]

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def _get_env(name: str, default: str, *fallbacks: str) -> str:
    for key in (name, *fallbacks):
        value = os.getenv(key)
        if value is not None and value != "":
            return value
    return default


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip().rstrip("/") for o in value.split(",") if o.strip()]


def _normalize_database_url(url: str) -> str:
    """Hosting providers hand out postgresql:// URLs; the async engine needs the asyncpg driver."""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def _database_url() -> str:
    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return _normalize_database_url(explicit.strip())

    host: Optional[str] = os.getenv("DATABASE_HOST")
    if not host:
        return "sqlite+aiosqlite:///./data/tasks.db"

    port = _parse_int(_get_env("DATABASE_PORT", "5432"), 5432)
    user = quote_plus(_get_env("DATABASE_USER", "postgres"))
    password = quote_plus(_get_env("DATABASE_PASSWORD", ""))
    name = _get_env("DATABASE_NAME", "tasks")
    credentials = f"{user}:{password}" if password else user
    url = f"postgresql+asyncpg://{credentials}@{host}:{port}/{name}"
    if _parse_bool(_get_env("DATABASE_SSL", "false")):
        url += "?ssl=require"
    return url


# PUBLIC_INTERFACE
def load_settings() -> Settings:
    """Build settings from the current environment without caching."""
    env = _get_env("APP_ENV", "development", "NODE_ENV").strip().lower()
    if env not in {"development", "production", "test"}:
        env = "development"

    backend = _get_env("PERSISTENCE_BACKEND", "database").strip().lower()
    if backend not in {"database", "memory"}:
        backend = "database"

    log_format = _get_env("LOG_FORMAT", "json" if env == "production" else "text").strip().lower()
    if log_format not in {"json", "text"}:
        log_format = "text"

    auth_secret = _get_env("AUTH_SECRET", "", "BETTER_AUTH_SECRET")
    if not auth_secret:
        if env == "production":
            raise ConfigurationError("AUTH_SECRET must be set in production")
        auth_secret = DEV_AUTH_SECRET

    return Settings(
        env=env,
        host=_get_env("HOST", "0.0.0.0"),
        port=_parse_int(_get_env("PORT", "3000"), 3000),
        log_level=_get_env("LOG_LEVEL", "info").strip().lower(),
        log_format=log_format,
        persistence_backend=backend,
        database_url=_database_url(),
        auth_secret=auth_secret,
        auth_url=_get_env("AUTH_URL", "http://localhost:3000", "BETTER_AUTH_URL").rstrip("/"),
        auth_prefix="/api/auth",
        cors_allow_origins=_parse_origins(
            _get_env("CORS_ALLOW_ORIGINS", "http://localhost:3000,http://localhost:3001")
        ),
    )


# PUBLIC_INTERFACE
@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once from environment variables."""
    return load_settings()
