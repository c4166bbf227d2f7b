import pytest
from pydantic import ValidationError as PydanticValidationError

import core.config
from core.config import DEFAULT_ORIGINS, Settings, load_settings
from core.errors import ConfigError
from main import SECURITY_HEADERS, create_app

ENV_VARS = ("JWT_SECRET", "JWT_ALGORITHM", "APP_ENV", "DATABASE_PATH", "FRONTEND_URL", "CORS_ORIGINS", "LOG_LEVEL", "LOG_FILE")


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(core.config, "load_dotenv", lambda *args, **kwargs: False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.mark.parametrize("secret", [None, "", "   "])
def test_missing_secret_refuses_to_start(clean_env, secret):
    if secret is not None:
        clean_env.setenv("JWT_SECRET", secret)
    with pytest.raises(ConfigError):
        load_settings()
    with pytest.raises(ConfigError):
        create_app()


def test_defaults(clean_env):
    clean_env.setenv("JWT_SECRET", "s3cret")
    settings = load_settings()
    assert settings.jwt_secret == "s3cret"
    assert settings.jwt_algorithm == "HS256"
    assert settings.token_ttl_hours == 24
    assert settings.allowed_origins == DEFAULT_ORIGINS
    assert not settings.is_production
    assert settings.log_file == "app.log"


def test_origins_and_environment_from_env(clean_env):
    clean_env.setenv("JWT_SECRET", "s3cret")
    clean_env.setenv("APP_ENV", "Production")
    clean_env.setenv("FRONTEND_URL", "https://cook.example.com")
    clean_env.setenv("CORS_ORIGINS", "https://a.example.com, http://localhost:3000 ,https://cook.example.com")
    clean_env.setenv("LOG_FILE", "")
    settings = load_settings()
    assert settings.allowed_origins == [
        "http://localhost:3000",
        "https://cook.example.com",
        "https://a.example.com",
    ]
    assert settings.is_production
    assert settings.log_file is None


def test_settings_are_immutable(settings):
    with pytest.raises(PydanticValidationError):
        settings.jwt_secret = "changed"


def test_security_headers_on_every_response(client):
    for res in (client.get("/health"), client.get("/api/recipes/999")):
        for header, value in SECURITY_HEADERS.items():
            assert res.headers[header] == value


def test_index_and_health(client):
    index = client.get("/")
    assert index.status_code == 200
    assert index.headers["content-type"].startswith("text/plain")
    assert client.get("/health").json() == {"status": "healthy"}


def test_cors_allows_configured_origin_with_credentials(client):
    res = client.get("/health", headers={"Origin": "http://localhost:3000"})
    assert res.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert res.headers["access-control-allow-credentials"] == "true"

    other = client.get("/health", headers={"Origin": "https://evil.example.com"})
    assert "access-control-allow-origin" not in other.headers


def test_unknown_route_uses_message_shape(client):
    res = client.get("/api/nowhere")
    assert res.status_code == 404
    assert res.json() == {"message": "Not Found"}


def test_malformed_json_body(client):
    res = client.post(
        "/api/auth/register",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )
    assert res.status_code == 400
    assert res.json() == {"message": "Invalid request body"}
