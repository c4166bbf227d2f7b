import logging
from typing import List
from fastapi import APIRouter, HTTPException, Depends, Request, status
from models.types import (
    CommentCreate,
    Feedback,
    Identity,
    RateRequest,
    Recipe,
    RecipeCreate,
    RecipeSearchRequest,
    RecipeSearchResult,
)
from core.auth import get_current_user
from core.database import DatabaseManager, get_db
from core.errors import AppError, ValidationError
from core.limiter import limiter, COMMENT_LIMIT, RATING_LIMIT, RECIPE_CREATE_LIMIT
from logic.validation import clean_comment_text, parse_id, require_ingredients, validate_rating

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED, tags=["Recipes"])
@limiter.limit(RECIPE_CREATE_LIMIT)
async def create_recipe(
    request: Request,
    payload: RecipeCreate,
    current_user: Identity = Depends(get_current_user),
    db: DatabaseManager = Depends(get_db),
):
    name = (payload.name or "").strip()
    if not name:
        raise ValidationError("Name and ingredients are required")
    try:
        ingredients = require_ingredients(payload.ingredients, payload.ingredients_text)
        recipe = db.create_recipe(
            owner_id=current_user.id,
            name=name,
            ingredients=ingredients,
            description=payload.description,
            steps=payload.steps,
            cooking_time=payload.cooking_time,
            image_url=payload.image_url,
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to create recipe for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Server error")
    logger.info(f"Recipe {recipe.id} created by user {current_user.id}")
    return {"message": "Recipe created", "recipe": recipe.model_dump(by_alias=True, mode="json")}


@router.get("/my", response_model=List[Recipe], tags=["Recipes"])
async def list_my_recipes(current_user: Identity = Depends(get_current_user), db: DatabaseManager = Depends(get_db)):
    try:
        return db.list_user_recipes(current_user.id)
    except Exception as e:
        logger.error(f"Failed to list recipes for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Server error")


@router.post("/search", response_model=RecipeSearchResult, tags=["Recipes"])
async def search_recipes(payload: RecipeSearchRequest, db: DatabaseManager = Depends(get_db)):
    """Find recipes by ingredients. matchMode 'all' needs every ingredient, 'any' (default) just one."""
    selected = require_ingredients(payload.ingredients, payload.ingredients_text)
    match_mode = "all" if (payload.match_mode or "").strip().lower() == "all" else "any"
    try:
        recipes = db.search_recipes(selected, match_mode)
    except Exception as e:
        logger.error(f"Recipe search failed: {e}")
        raise HTTPException(status_code=500, detail="Server error")
    return RecipeSearchResult(matched_count=len(recipes), recipes=recipes)


@router.get("/{recipe_id}", response_model=Recipe, tags=["Recipes"])
async def get_recipe(recipe_id: str, db: DatabaseManager = Depends(get_db)):
    rid = parse_id(recipe_id, "recipe id")
    try:
        return db.get_recipe(rid)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to get recipe {rid}: {e}")
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/{recipe_id}/feedback", response_model=Feedback, tags=["Feedback"])
async def get_feedback(recipe_id: str, db: DatabaseManager = Depends(get_db)):
    rid = parse_id(recipe_id, "recipe id")
    try:
        return db.get_feedback(rid)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to get feedback for recipe {rid}: {e}")
        raise HTTPException(status_code=500, detail="Server error")


@router.post("/{recipe_id}/rate", tags=["Feedback"])
@limiter.limit(RATING_LIMIT)
async def rate_recipe(
    recipe_id: str,
    request: Request,
    payload: RateRequest,
    current_user: Identity = Depends(get_current_user),
    db: DatabaseManager = Depends(get_db),
):
    rid = parse_id(recipe_id, "recipe id")
    value = validate_rating(payload.rating)
    try:
        summary = db.upsert_rating(rid, current_user.id, value)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to set rating for recipe {rid}: {e}")
        raise HTTPException(status_code=500, detail="Server error")
    return {"message": "Rating saved", **summary.model_dump(by_alias=True)}


@router.post("/{recipe_id}/comments", status_code=status.HTTP_201_CREATED, tags=["Feedback"])
@limiter.limit(COMMENT_LIMIT)
async def create_recipe_comment(
    recipe_id: str,
    request: Request,
    payload: CommentCreate,
    current_user: Identity = Depends(get_current_user),
    db: DatabaseManager = Depends(get_db),
):
    rid = parse_id(recipe_id, "recipe id")
    text = clean_comment_text(payload.text)
    author = current_user.name or current_user.email or "User"
    try:
        comment = db.create_comment(rid, current_user.id, author, text)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to create comment for recipe {rid}: {e}")
        raise HTTPException(status_code=500, detail="Server error")
    return {"message": "Comment added", "comment": comment.model_dump(by_alias=True, mode="json")}
