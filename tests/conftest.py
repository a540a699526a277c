from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from blog_api.config import Settings
from blog_api.database import Database
from blog_api.main import create_app
from blog_api.sessions import SessionStore


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    # Cheap argon2 parameters: the work factor is not what these tests measure
    return Settings(
        _env_file=None,
        session_secret_key="test-secret",
        database_url=f"sqlite:///{tmp_path / 'blog.db'}",
        debug=False,
        log_level="WARNING",
        hash_time_cost=1,
        hash_memory_cost=1024,
        hash_parallelism=1,
    )


@pytest.fixture()
def database(settings: Settings):
    db = Database(settings)
    db.init_schema()
    yield db
    db.dispose()


@pytest.fixture()
def store(database: Database, settings: Settings) -> SessionStore:
    return SessionStore(database, timedelta(seconds=settings.session_idle_seconds))


@pytest.fixture()
def app(settings: Settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    # Entering the client runs the lifespan, which builds app.state
    with TestClient(app) as c:
        yield c


def signup(client: TestClient, username: str = "alice", password: str = "s3cret"):
    return client.post("/user/signup", json={"username": username, "password": password})


def login(client: TestClient, username: str = "alice", password: str = "s3cret"):
    return client.post("/user/login", json={"username": username, "password": password})


@pytest.fixture()
def logged_in(client: TestClient) -> TestClient:
    assert signup(client).status_code == 201
    assert login(client).status_code == 200
    return client


def session_id_of(client: TestClient) -> str:
    """Unsigned session id behind the client's current cookie."""
    app = client.app
    raw = client.cookies.get(app.state.settings.session_cookie_name)
    assert raw, "client holds no session cookie"
    session_id = app.state.cookie_signer.unsign(raw)
    assert session_id
    return session_id
