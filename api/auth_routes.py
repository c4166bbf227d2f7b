from fastapi import APIRouter, HTTPException, Depends, status, Response, Request
from models.types import UserCreate, UserLogin, Identity
from core.config import Settings, get_settings
from core.database import DatabaseManager, get_db
from core.auth import create_access_token, get_current_user, set_session_cookie, clear_session_cookie
from core.errors import AppError, InvalidCredentials
from core.limiter import limiter, AUTH_LIMIT, AUTH_SCOPE
from logic.validation import validate_registration
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.shared_limit(AUTH_LIMIT, scope=AUTH_SCOPE)
async def register_user(request: Request, payload: UserCreate, db: DatabaseManager = Depends(get_db)):
    """Create an account. Every failure, including a taken email, looks the same to the caller."""
    try:
        name, email, password = validate_registration(payload.name, payload.email, payload.password)
        user = db.create_user(name, email, password)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Registration failed: {e}")
        raise HTTPException(status_code=500, detail="Server error")

    logger.info(f"New user registered: id={user.id}")
    return {
        "message": "Registration successful",
        "user": {"id": user.id, "name": user.name, "email": user.email},
    }


@router.post("/login")
@limiter.shared_limit(AUTH_LIMIT, scope=AUTH_SCOPE)
async def login_user(
    request: Request,
    payload: UserLogin,
    response: Response,
    db: DatabaseManager = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Verify credentials and hand out the session as an httpOnly cookie (never in the body)."""
    # missing fields take the unknown-account path
    try:
        user = db.authenticate_user((payload.email or "").strip(), payload.password or "")
    except Exception as e:
        logger.error(f"Login failed unexpectedly: {e}")
        raise HTTPException(status_code=500, detail="Server error")
    if not user:
        raise InvalidCredentials()

    identity = Identity(id=user.id, email=user.email, name=user.name, role=user.role)
    access_token = create_access_token(identity, settings)
    set_session_cookie(response, access_token, settings)

    logger.info(f"User logged in: id={user.id}")
    return {"message": "Login successful", "user": identity.model_dump()}


@router.post("/logout")
@limiter.shared_limit(AUTH_LIMIT, scope=AUTH_SCOPE)
async def logout(request: Request, response: Response, settings: Settings = Depends(get_settings)):
    """Logs out the user by clearing the session cookie."""
    clear_session_cookie(response, settings)
    logger.info("User logged out.")
    return {"message": "Logged out"}


@router.get("/me")
@limiter.shared_limit(AUTH_LIMIT, scope=AUTH_SCOPE)
async def get_current_user_info(request: Request, current_user: Identity = Depends(get_current_user)):
    return {"user": current_user.model_dump()}
