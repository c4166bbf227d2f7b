import logging
from fastapi import APIRouter, HTTPException, Depends, Request
from models.types import Identity, SaveRecipeRequest
from core.auth import get_current_user
from core.database import DatabaseManager, get_db
from core.errors import AppError, ValidationError
from core.limiter import limiter, SAVED_LIMIT
from logic.validation import parse_id

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", tags=["Saved recipes"])
@limiter.limit(SAVED_LIMIT)
async def save_recipe(
    request: Request,
    payload: SaveRecipeRequest,
    current_user: Identity = Depends(get_current_user),
    db: DatabaseManager = Depends(get_db),
):
    """Bookmark a recipe. Saving the same recipe again returns the existing bookmark."""
    if payload.recipe_id in (None, ""):
        raise ValidationError("recipeId is required")
    rid = parse_id(payload.recipe_id, "recipe id")
    try:
        saved_id = db.save_recipe(current_user.id, rid)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to save recipe {rid} for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Server error")
    return {"message": "Recipe saved", "savedId": saved_id}


@router.post("/{recipe_id}/toggle", tags=["Saved recipes"])
@limiter.limit(SAVED_LIMIT)
async def toggle_saved_recipe(
    recipe_id: str,
    request: Request,
    current_user: Identity = Depends(get_current_user),
    db: DatabaseManager = Depends(get_db),
):
    rid = parse_id(recipe_id, "recipe id")
    try:
        result = db.toggle_saved(current_user.id, rid)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to toggle saved recipe {rid} for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Server error")
    if result.saved:
        return {"message": "Recipe saved", "saved": True, "savedId": result.saved_id}
    return {"message": "Removed from saved recipes", "saved": False}


@router.get("", tags=["Saved recipes"])
async def list_saved_recipes(current_user: Identity = Depends(get_current_user), db: DatabaseManager = Depends(get_db)):
    try:
        recipes = db.list_saved_recipes(current_user.id)
    except Exception as e:
        logger.error(f"Failed to list saved recipes for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Server error")
    return {
        "count": len(recipes),
        "recipes": [r.model_dump(by_alias=True, mode="json") for r in recipes],
    }


@router.delete("/{saved_id}", tags=["Saved recipes"])
@limiter.limit(SAVED_LIMIT)
async def delete_saved_recipe(
    saved_id: str,
    request: Request,
    current_user: Identity = Depends(get_current_user),
    db: DatabaseManager = Depends(get_db),
):
    sid = parse_id(saved_id, "saved recipe id")
    try:
        db.delete_saved(current_user.id, sid)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to delete saved recipe {sid} for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Server error")
    return {"message": "Removed from saved recipes"}
