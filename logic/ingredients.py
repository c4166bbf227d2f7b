from typing import Iterable, List, Optional, Union

MAX_INGREDIENTS = 30
DELIMITER = ","


def normalize_ingredient(text) -> str:
    if text is None:
        return ""
    return str(text).strip().lower()


def _split(raw: Union[str, Iterable, None]) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return raw.split(DELIMITER)
    return list(raw)


def normalize_ingredients(
    ingredients: Union[List[str], str, None] = None,
    ingredients_text: Optional[str] = None,
) -> List[str]:
    """Turn an ingredient array or a comma separated string into clean tokens.

    Tokens are trimmed and lowercased, empty ones dropped and duplicates
    removed while keeping first-seen order. The array form wins when both
    are given and the array is non-empty.
    """
    source = ingredients if ingredients else ingredients_text
    seen = set()
    result = []
    for item in _split(source):
        token = normalize_ingredient(item)
        if not token or token in seen:
            continue
        seen.add(token)
        result.append(token)
    return result
