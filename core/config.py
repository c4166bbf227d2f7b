import os
import sys
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Request
from pydantic import BaseModel, ConfigDict, Field

from core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = ["http://localhost:3000"]
TOKEN_TTL_HOURS = 24


class Settings(BaseModel):
    """Process-wide configuration, built once at startup and never mutated."""

    model_config = ConfigDict(frozen=True)

    jwt_secret: str = Field(..., min_length=1)
    jwt_algorithm: str = "HS256"
    token_ttl_hours: int = TOKEN_TTL_HOURS
    environment: str = "development"
    database_path: Path = Path("recipes.db")
    allowed_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_ORIGINS))
    cookie_name: str = "token"
    log_level: str = "INFO"
    log_file: Optional[str] = "app.log"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def _split_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [o.strip() for o in raw.split(",") if o.strip()]


def load_settings() -> Settings:
    """Read .env and the environment into a Settings value.

    A missing JWT_SECRET is fatal: the service must not sign tokens with an
    empty or default key.
    """
    load_dotenv()

    secret = (os.getenv("JWT_SECRET") or "").strip()
    if not secret:
        raise ConfigError("JWT_SECRET is not set")

    origins = list(DEFAULT_ORIGINS)
    for origin in _split_origins(os.getenv("FRONTEND_URL")) + _split_origins(os.getenv("CORS_ORIGINS")):
        if origin not in origins:
            origins.append(origin)

    log_file = os.getenv("LOG_FILE", "app.log")

    return Settings(
        jwt_secret=secret,
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        environment=os.getenv("APP_ENV", "development"),
        database_path=Path(os.getenv("DATABASE_PATH", "recipes.db")),
        allowed_origins=origins,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_file=log_file or None,
    )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# --- Logging Configuration ---
def setup_logging(settings: Settings):
    """
    Configures the root logger for the application.
    - Clears existing handlers to prevent duplicate logs on reload.
    - Adds a stream handler for console output.
    - Adds a rotating file handler when a log file is configured.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)

    # Clear existing handlers to prevent duplicates during reloads
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    log_formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(log_formatter)
    root_logger.addHandler(stream_handler)

    if settings.log_file:
        file_handler = RotatingFileHandler(settings.log_file, maxBytes=10*1024*1024, backupCount=3)
        file_handler.setFormatter(log_formatter)
        root_logger.addHandler(file_handler)

    # Reduce noisy third-party loggers
    logging.getLogger("passlib").setLevel(logging.ERROR)

    logger.info(f"Logging configured (env={settings.environment}, level={settings.log_level})")
