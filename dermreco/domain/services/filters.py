import re
from typing import Iterable, List, Optional

from dermreco.domain.models.product import ProductRow

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WS_RE = re.compile(r"\s+")


def normalize_ingredient(ingredient: str) -> str:
    """
    Normalize an ingredient for comparison:
    lowercase, drop anything that is not a-z / 0-9 / whitespace, collapse whitespace.
      "Fragrance (Parfum)" -> "fragrance parfum"
    """
    s = _NON_ALNUM_RE.sub("", ingredient.lower().strip())
    return _WS_RE.sub(" ", s)


def _has_avoided(product: ProductRow, avoid: List[str]) -> bool:
    for active in product.active_ingredients:
        norm = normalize_ingredient(active)
        if any(a in norm for a in avoid):
            return True
    if product.all_ingredients:
        norm_all = normalize_ingredient(product.all_ingredients)
        if any(a in norm_all for a in avoid):
            return True
    return False


def filter_allergies(products: List[ProductRow], ingredients_to_avoid: Optional[Iterable[str]]) -> List[ProductRow]:
    """
    Drop every product whose actives or full ingredient text contains an avoided term.

    Matching is substring on normalized text, so "oil" also drops "Jojoba Oil"
    and anything else containing "oil".
    """
    if not ingredients_to_avoid:
        return products
    avoid = [normalize_ingredient(a) for a in ingredients_to_avoid]
    if not avoid:
        return products
    return [p for p in products if not _has_avoided(p, avoid)]
