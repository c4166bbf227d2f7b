import html
import re
from typing import List, Optional, Union

from email_validator import validate_email, EmailNotValidError

from core.errors import ValidationError
from logic.ingredients import MAX_INGREDIENTS, normalize_ingredients

INVALID_REGISTRATION_MSG = "Invalid registration details"
MIN_PASSWORD_LENGTH = 6
MAX_COMMENT_LENGTH = 2000

_ID_RE = re.compile(r"^[1-9][0-9]{0,18}$")
# sqlite INTEGER is a signed 64-bit value
MAX_ID = 2 ** 63 - 1


def parse_id(raw: Union[int, str, None], what: str = "id") -> int:
    """
    Converts a path or body id into a store id. Anything that is not a
    positive integer the store can hold can never resolve, so it is a
    validation error rather than a miss.
    """
    if isinstance(raw, bool):
        raise ValidationError(f"Invalid {what}")
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw or "").strip()
        if not _ID_RE.match(text):
            raise ValidationError(f"Invalid {what}")
        value = int(text)
    if value < 1 or value > MAX_ID:
        raise ValidationError(f"Invalid {what}")
    return value


def validate_registration(name: Optional[str], email: Optional[str], password: Optional[str]) -> tuple:
    """Returns (name, email, password) cleaned up, or raises one generic error."""
    name = (name or "").strip()
    email = (email or "").strip()
    password = password or ""
    if not name or not email or not password:
        raise ValidationError(INVALID_REGISTRATION_MSG)
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(INVALID_REGISTRATION_MSG)
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError(INVALID_REGISTRATION_MSG)
    return name, email, password


def require_ingredients(ingredients=None, ingredients_text: Optional[str] = None) -> List[str]:
    items = normalize_ingredients(ingredients, ingredients_text)
    if not items:
        raise ValidationError("No ingredients provided")
    if len(items) > MAX_INGREDIENTS:
        raise ValidationError(f"At most {MAX_INGREDIENTS} ingredients are allowed")
    return items


def validate_rating(value: Optional[float]) -> int:
    if value is None or not float(value).is_integer():
        raise ValidationError("Rating must be 1-5")
    value = int(value)
    if value < 1 or value > 5:
        raise ValidationError("Rating must be 1-5")
    return value


def clean_comment_text(text: Optional[str]) -> str:
    """Trims and HTML-escapes comment text so stored markup is inert."""
    text = (text or "").strip()
    if not text:
        raise ValidationError("Comment text is required")
    if len(text) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"Comment must be at most {MAX_COMMENT_LENGTH} characters")
    return html.escape(text, quote=True)
