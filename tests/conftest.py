import dataclasses

import pytest
from fastapi.testclient import TestClient

from tasks_api.main import create_app
from tasks_api.settings import load_settings


def make_settings(**overrides):
    base = load_settings()
    defaults = {
        "env": "test",
        "log_format": "text",
        "persistence_backend": "memory",
        "auth_secret": "test-secret",
        "auth_url": "http://localhost:3000",
        "cors_allow_origins": ["http://localhost:3000", "http://localhost:3001"],
    }
    defaults.update(overrides)
    return dataclasses.replace(base, **defaults)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture(params=["memory", "database"])
def any_client(request, tmp_path):
    """A client per persistence backend; the database one uses a throwaway SQLite file."""
    overrides = {"persistence_backend": request.param}
    if request.param == "database":
        overrides["database_url"] = f"sqlite+aiosqlite:///{tmp_path / 'tasks.db'}"
    with TestClient(create_app(make_settings(**overrides))) as c:
        yield c
