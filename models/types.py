from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional, Union
from datetime import datetime

PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/600x400?text=No+Image"
DEFAULT_BIO = "Home cook who loves experimenting with new recipes!"
DEFAULT_AVATAR_URL = "https://images.unsplash.com/photo-1500648767791-00dcc994a43e?w=200&h=200&fit=crop"


class CamelModel(BaseModel):
    """Accepts and emits camelCase field names (imageUrl, cookingTime, ...)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Identity ---
class Identity(BaseModel):
    """The authenticated caller, as resolved by the authentication gate."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Canonical user id")
    email: Optional[str] = Field(None, description="User's email address")
    name: Optional[str] = Field(None, description="User's display name")
    role: str = Field("user", description="User role")


# --- User Authentication Models ---
class UserCreate(BaseModel):
    name: Optional[str] = Field(None, description="User's display name")
    email: Optional[str] = Field(None, description="User's email address")
    password: Optional[str] = Field(None, description="User's password (minimum 6 characters)")


class UserLogin(BaseModel):
    email: Optional[str] = Field(None, description="User's email address")
    password: Optional[str] = Field(None, description="User's password")


class UserPublic(BaseModel):
    id: int
    name: str
    email: str
    role: str = "user"


class UserInDB(UserPublic):
    hashed_password: str = Field(..., description="Hashed password stored in database")
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None


class UserProfile(BaseModel):
    """Public profile of the signed-in user; bio and avatar fall back to defaults."""
    id: int
    name: str
    email: str
    bio: str = DEFAULT_BIO
    avatar: str = DEFAULT_AVATAR_URL


# --- Recipes ---
class Rating(CamelModel):
    user: Optional[int] = Field(None, description="Rating author id")
    value: int = Field(..., ge=1, le=5)


class Comment(CamelModel):
    user: Optional[int] = Field(None, description="Comment author id")
    user_name: str = Field(..., description="Author display name at the time of writing")
    text: str = Field(..., description="HTML-escaped comment text")
    created_at: datetime


class Recipe(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    image_url: str = PLACEHOLDER_IMAGE_URL
    ingredients: List[str] = Field(default_factory=list)
    steps: Optional[str] = None
    cooking_time: Optional[float] = None
    created_by: Optional[int] = None
    ratings: List[Rating] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RecipeCreate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    ingredients: Optional[Union[List[str], str]] = None
    ingredients_text: Optional[str] = None
    steps: Optional[str] = None
    cooking_time: Optional[float] = Field(None, ge=0)
    image_url: Optional[str] = None


class RecipeSearchRequest(CamelModel):
    ingredients: Optional[Union[List[str], str]] = None
    ingredients_text: Optional[str] = None
    match_mode: str = Field("any", description="'any' (at least one) or 'all' (every ingredient)")


class RecipeSearchResult(CamelModel):
    matched_count: int
    recipes: List[Recipe]


class Feedback(CamelModel):
    avg_rating: float = 0
    rating_count: int = 0
    comments: List[Comment] = Field(default_factory=list)


class RateRequest(BaseModel):
    rating: Optional[float] = Field(None, description="Star rating 1-5")


class RatingSummary(CamelModel):
    my_rating: int
    avg_rating: float
    rating_count: int


class CommentCreate(BaseModel):
    text: Optional[str] = None


# --- Saved recipes ---
class SaveRecipeRequest(CamelModel):
    recipe_id: Optional[Union[int, str]] = None


class ToggleResult(CamelModel):
    saved: bool
    saved_id: Optional[int] = None
