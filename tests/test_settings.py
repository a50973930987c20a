import pytest

from tasks_api.errors import ConfigurationError
from tasks_api.settings import DEV_AUTH_SECRET, load_settings

ENV_VARS = [
    "APP_ENV", "NODE_ENV", "HOST", "PORT", "LOG_LEVEL", "LOG_FORMAT", "PERSISTENCE_BACKEND",
    "DATABASE_URL", "DATABASE_HOST", "DATABASE_PORT", "DATABASE_USER", "DATABASE_PASSWORD",
    "DATABASE_NAME", "DATABASE_SSL", "AUTH_SECRET", "BETTER_AUTH_SECRET", "AUTH_URL",
    "BETTER_AUTH_URL", "CORS_ALLOW_ORIGINS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    s = load_settings()
    assert s.env == "development"
    assert s.port == 3000
    assert s.persistence_backend == "database"
    assert s.database_url == "sqlite+aiosqlite:///./data/tasks.db"
    assert s.auth_secret == DEV_AUTH_SECRET
    assert s.auth_prefix == "/api/auth"
    assert s.cors_allow_origins == ["http://localhost:3000", "http://localhost:3001"]
    assert s.log_format == "text"
    assert not s.is_production


def test_production_requires_secret(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    with pytest.raises(ConfigurationError):
        load_settings()

    monkeypatch.setenv("AUTH_SECRET", "s3cret")
    s = load_settings()
    assert s.is_production
    assert s.log_format == "json"


def test_node_env_and_better_auth_fallbacks(monkeypatch):
    monkeypatch.setenv("NODE_ENV", "production")
    monkeypatch.setenv("BETTER_AUTH_SECRET", "legacy")
    monkeypatch.setenv("BETTER_AUTH_URL", "https://api.example.com/")
    s = load_settings()
    assert s.env == "production"
    assert s.auth_secret == "legacy"
    assert s.auth_url == "https://api.example.com"


def test_database_url_from_parts(monkeypatch):
    monkeypatch.setenv("DATABASE_HOST", "db")
    monkeypatch.setenv("DATABASE_USER", "app")
    monkeypatch.setenv("DATABASE_PASSWORD", "p@ss")
    monkeypatch.setenv("DATABASE_NAME", "work")
    monkeypatch.setenv("DATABASE_SSL", "true")
    assert load_settings().database_url == "postgresql+asyncpg://app:p%40ss@db:5432/work?ssl=require"


def test_database_url_driver_rewrite(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@host/db")
    assert load_settings().database_url == "postgresql+asyncpg://u:p@host/db"


def test_invalid_values_fall_back(monkeypatch):
    monkeypatch.setenv("PORT", "not-a-port")
    monkeypatch.setenv("PERSISTENCE_BACKEND", "redis")
    monkeypatch.setenv("APP_ENV", "staging")
    s = load_settings()
    assert s.port == 3000
    assert s.persistence_backend == "database"
    assert s.env == "development"


def test_cors_origins(monkeypatch):
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example/, https://b.example")
    assert load_settings().cors_allow_origins == ["https://a.example", "https://b.example"]
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "*")
    assert load_settings().cors_allow_origins == ["*"]
