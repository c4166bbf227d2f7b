import logging
from fastapi import APIRouter, HTTPException, Depends
from models.types import Identity
from core.auth import get_current_user
from core.database import DatabaseManager, get_db
from core.errors import NotFound

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", tags=["Profile"])
async def protected_ping(current_user: Identity = Depends(get_current_user)):
    """Echoes the identity carried by the caller's token."""
    return {"message": "Protected route", "user": current_user.model_dump()}


@router.get("/me", tags=["Profile"])
async def get_my_profile(current_user: Identity = Depends(get_current_user), db: DatabaseManager = Depends(get_db)):
    try:
        profile = db.get_user_profile(current_user.id)
    except Exception as e:
        logger.error(f"Failed to load profile for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Server error")
    if profile is None:
        # token still valid but the account row is gone
        raise NotFound("User not found")
    return {"user": profile.model_dump()}
