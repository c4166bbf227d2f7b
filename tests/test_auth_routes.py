import time

from fastapi.testclient import TestClient
from jose import jwt

import core.database
from conftest import SECRET, login, register
from core.config import Settings
from main import create_app


def test_register_returns_public_fields_only(client):
    res = register(client)
    assert res.status_code == 201
    user = res.json()["user"]
    assert set(user) == {"id", "name", "email"}
    assert user["email"] == "alice@example.com"


def test_register_failures_share_one_message(client):
    assert register(client).status_code == 201

    taken = register(client, name="Other")
    bad_email = register(client, email="not-an-email")
    short_password = register(client, email="bob@example.com", password="123")
    missing_name = register(client, name="", email="carol@example.com")

    for res in (taken, bad_email, short_password, missing_name):
        assert res.status_code == 400
        assert res.json() == {"message": "Invalid registration details"}


def test_password_is_stored_hashed(client, db):
    register(client)
    stored = db.get_user_by_email("alice@example.com")
    assert stored.hashed_password != "secret123"
    assert stored.hashed_password.startswith("$2b$12$")


def test_login_sets_httponly_cookie_and_hides_token(client):
    register(client)
    res = login(client)
    assert res.status_code == 200
    body = res.json()
    assert "token" not in body
    assert body["user"]["role"] == "user"

    set_cookie = res.headers["set-cookie"].lower()
    assert set_cookie.startswith("token=")
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie
    assert "secure" not in set_cookie


def test_login_token_identity_matches_created_user(client):
    created = register(client).json()["user"]
    login(client)
    claims = jwt.decode(client.cookies.get("token"), SECRET, algorithms=["HS256"])
    assert claims["id"] == created["id"]
    assert claims["email"] == created["email"]
    assert claims["exp"] - claims["iat"] == 24 * 3600


def test_unknown_email_and_wrong_password_look_the_same(client):
    register(client)
    unknown = login(client, email="nobody@example.com")
    wrong = login(client, password="wrong-password")
    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json() == wrong.json() == {"message": "Invalid email or password"}


def test_unknown_email_still_spends_hashing_time(client, monkeypatch):
    calls = []
    original = core.database.dummy_verify

    def spy():
        calls.append(1)
        original()

    monkeypatch.setattr(core.database, "dummy_verify", spy)
    register(client)
    login(client, password="wrong-password")  # warm up

    start = time.perf_counter()
    login(client, password="wrong-password")
    wrong_elapsed = time.perf_counter() - start

    start = time.perf_counter()
    login(client, email="nobody@example.com")
    unknown_elapsed = time.perf_counter() - start

    assert calls == [1]
    # both paths run a cost-12 bcrypt check, so neither can be near-instant
    assert unknown_elapsed > wrong_elapsed * 0.25


def test_login_with_missing_fields(client, monkeypatch):
    calls = []
    original = core.database.dummy_verify

    def spy():
        calls.append(1)
        original()

    monkeypatch.setattr(core.database, "dummy_verify", spy)
    for body in ({"email": "alice@example.com"}, {"password": "secret123"}, {}):
        res = client.post("/api/auth/login", json=body)
        assert res.status_code == 401
        assert res.json() == {"message": "Invalid email or password"}
    assert len(calls) == 3


def test_taken_email_still_spends_hashing_time(client, monkeypatch):
    hashed = []
    original = core.database.get_password_hash

    def spy(password):
        hashed.append(password)
        return original(password)

    monkeypatch.setattr(core.database, "get_password_hash", spy)
    assert register(client).status_code == 201
    taken = register(client, name="Someone Else", password="another1")
    assert taken.status_code == 400
    assert hashed == ["secret123", "another1"]


def test_me_with_cookie(client, user):
    res = client.get("/api/auth/me")
    assert res.status_code == 200
    assert res.json()["user"] == {"id": user["id"], "email": "alice@example.com", "name": "Alice", "role": "user"}


def test_me_with_bearer_header(client, app, user):
    token = client.cookies.get("token")
    with TestClient(app) as other:
        res = other.get("/api/auth/me", headers={"authorization": f"bearer {token}"})
    assert res.status_code == 200
    assert res.json()["user"]["id"] == user["id"]


def test_cookie_wins_over_header(client, user):
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 200


def test_me_without_token(client):
    res = client.get("/api/auth/me")
    assert res.status_code == 401
    assert res.json() == {"message": "No token provided"}


def test_me_with_invalid_token(client):
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert res.status_code == 401
    assert res.json() == {"message": "Invalid or expired token"}


def test_me_with_token_lacking_id(client):
    token = jwt.encode({"email": "x@y.io"}, SECRET, algorithm="HS256")
    res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401
    assert res.json() == {"message": "Invalid token payload"}


def test_logout_clears_cookie_with_same_attributes(client, user):
    res = client.post("/api/auth/logout")
    assert res.status_code == 200
    set_cookie = res.headers["set-cookie"].lower()
    assert set_cookie.startswith("token=")
    assert "max-age=0" in set_cookie
    assert "path=/" in set_cookie
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie
    assert client.get("/api/auth/me").status_code == 401


def test_production_cookie_is_secure_and_cross_site(tmp_path):
    settings = Settings(
        jwt_secret=SECRET,
        database_path=tmp_path / "prod.db",
        environment="production",
        log_file=None,
    )
    with TestClient(create_app(settings), base_url="https://testserver") as c:
        register(c)
        set_cookie = login(c).headers["set-cookie"].lower()
        cleared = c.post("/api/auth/logout").headers["set-cookie"].lower()
    for header in (set_cookie, cleared):
        assert "secure" in header
        assert "samesite=none" in header
        assert "httponly" in header
