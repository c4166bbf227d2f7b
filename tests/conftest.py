import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fastapi.testclient import TestClient

from core.config import Settings
from core.limiter import limiter
from main import create_app

SECRET = "test-secret-key"


@pytest.fixture(autouse=True)
def reset_limiter():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret=SECRET,
        database_path=tmp_path / "test.db",
        environment="development",
        log_file=None,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def db(app):
    return app.state.db


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def register(client, name="Alice", email="alice@example.com", password="secret123"):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})


def login(client, email="alice@example.com", password="secret123"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


@pytest.fixture
def user(client):
    """A registered, logged-in user; the client carries the session cookie."""
    res = register(client)
    assert res.status_code == 201
    res = login(client)
    assert res.status_code == 200
    return res.json()["user"]


@pytest.fixture
def recipe(client, user):
    res = client.post(
        "/api/recipes",
        json={"name": "Tomato Omelette", "ingredients": "Egg, Tomato, salt", "steps": "Whisk and fry"},
    )
    assert res.status_code == 201
    return res.json()["recipe"]
