from typing import List, Optional

NOT_AVAILABLE = "N/A"


def normalize_ingredients(ingredients_text: Optional[str]) -> List[str]:
    """
    Split a free-text ingredient string into ingredient names.

    Pieces are comma separated, trimmed, and empty pieces are dropped. Order
    and duplicates are preserved. Missing text or the "N/A" marker gives an
    empty list, which callers treat as nothing to enrich.
    """
    if not ingredients_text:
        return []
    text = ingredients_text.strip()
    if not text or text.upper() == NOT_AVAILABLE:
        return []
    return [piece.strip() for piece in text.split(",") if piece.strip()]
