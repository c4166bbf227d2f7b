from fastapi import Depends, Request, Response
from jose import ExpiredSignatureError, JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from pydantic import ValidationError as PydanticValidationError
from core.config import Settings, get_settings
from core.errors import InvalidToken, Unauthorized
from models.types import Identity
import logging

logger = logging.getLogger(__name__)

# Older tokens carried the subject as "userId"
ID_CLAIMS = ("id", "userId")


# --- Token issuing ---
def create_access_token(identity: Identity, settings: Settings, now: Optional[datetime] = None) -> str:
    issued_at = now or datetime.now(timezone.utc)
    expire = issued_at + timedelta(hours=settings.token_ttl_hours)
    claims = {
        "id": identity.id,
        "email": identity.email,
        "name": identity.name,
        "role": identity.role,
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


# --- Token verification ---
def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    """Returns the raw claims, or raises InvalidToken for bad signature, expiry or garbage."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        logger.info("Rejected expired token")
        raise InvalidToken()
    except JWTError as e:
        logger.warning(f"Rejected invalid token: {e}")
        raise InvalidToken()


def identity_from_claims(claims: Dict[str, Any]) -> Identity:
    """
    Resolves the one canonical identity from decoded claims. This is the only
    place that knows about the historical claim names.
    """
    raw_id = None
    for key in ID_CLAIMS:
        if claims.get(key) not in (None, ""):
            raw_id = claims[key]
            break
    if raw_id is None:
        raise InvalidToken("Invalid token payload")
    try:
        return Identity(
            id=raw_id,
            email=claims.get("email"),
            name=claims.get("name"),
            role=claims.get("role") or "user",
        )
    except PydanticValidationError:
        raise InvalidToken("Invalid token payload")


def verify_access_token(token: str, settings: Settings) -> Identity:
    return identity_from_claims(decode_access_token(token, settings))


# --- Request authentication gate ---
def extract_token(request: Request, cookie_name: str = "token") -> Optional[str]:
    """Cookie first, then an `Authorization: Bearer <token>` header."""
    token = request.cookies.get(cookie_name)
    if token:
        return token
    header = request.headers.get("authorization")
    if not header:
        return None
    scheme, _, credentials = header.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credentials.strip() or None


async def get_current_user(request: Request, settings: Settings = Depends(get_settings)) -> Identity:
    """
    Central dependency for protected routes.
    - Reads the token from the session cookie or the bearer header.
    - Verifies it and resolves the canonical identity.
    - Attaches the identity to request.state.user.
    Raises Unauthorized before the route body runs.
    """
    token = extract_token(request, settings.cookie_name)
    if not token:
        raise Unauthorized("No token provided")

    identity = verify_access_token(token, settings)
    request.state.user = identity
    return identity


# --- Session cookie ---
def _cookie_params(settings: Settings) -> dict:
    # set_cookie and delete_cookie must agree on every attribute or browsers keep the cookie
    return {
        "key": settings.cookie_name,
        "path": "/",
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "none" if settings.is_production else "lax",
    }


def set_session_cookie(response: Response, token: str, settings: Settings):
    response.set_cookie(
        value=token,
        max_age=settings.token_ttl_hours * 3600,
        **_cookie_params(settings),
    )


def clear_session_cookie(response: Response, settings: Settings):
    response.delete_cookie(**_cookie_params(settings))
