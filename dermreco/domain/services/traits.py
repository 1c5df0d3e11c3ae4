import re
from typing import Dict, Iterable, List

from dermreco.domain.models.product import SkinTrait

# Evidence-based actives per detected trait id
TRAIT_ACTIVE_MAP: Dict[str, List[str]] = {
    "acne": ["Salicylic Acid", "Benzoyl Peroxide", "Niacinamide", "Azelaic Acid"],
    "oiliness": ["Niacinamide", "Zinc PCA", "Salicylic Acid"],
    "dryness": ["Hyaluronic Acid", "Glycerin", "Ceramides", "Squalane"],
    "sensitivity": ["Centella Asiatica", "Allantoin", "Panthenol", "Bisabolol", "Niacinamide"],
    "redness": ["Centella Asiatica", "Allantoin", "Panthenol", "Bisabolol", "Niacinamide"],
    "hyperpigmentation": ["Niacinamide", "Vitamin C", "Azelaic Acid", "Kojic Acid", "Arbutin"],
    "fine-lines": ["Retinol", "Peptides", "Bakuchiol", "Hyaluronic Acid"],
    "large-pores": ["Niacinamide", "Salicylic Acid", "Retinol"],
}

# Onboarding goal phrases -> trait id (exact match, case-insensitive)
GOAL_TRAIT_MAP: Dict[str, str] = {
    "clear skin": "acne",
    "even tone": "hyperpigmentation",
    "hydration": "dryness",
    "anti-aging": "fine-lines",
    "oil control": "oiliness",
    "calming": "sensitivity",
}

SEVERITY_RANK = {"high": 3, "moderate": 2, "low": 1}

_CONCERN_SEP_RE = re.compile(r"[_\s]+")


def map_traits_to_actives(traits: Iterable[SkinTrait], goals: Iterable[str]) -> List[str]:
    """
    Map detected traits + stated goals to a deduplicated list of target actives.
    Higher-severity traits contribute first; goal-derived actives come last.
    Unknown trait ids or goal phrases contribute nothing.
    """
    actives: Dict[str, None] = {}  # insertion-ordered set

    # sorted() is stable: equal severities keep their detection order
    for trait in sorted(traits, key=lambda t: SEVERITY_RANK.get(t.severity, 0), reverse=True):
        for active in TRAIT_ACTIVE_MAP.get(trait.id, []):
            actives.setdefault(active, None)

    for goal in goals:
        trait_id = GOAL_TRAIT_MAP.get(goal.lower())
        if trait_id:
            for active in TRAIT_ACTIVE_MAP.get(trait_id, []):
                actives.setdefault(active, None)

    return list(actives)


def normalize_concern(value: str) -> str:
    """'Fine lines' / 'fine_lines' -> 'fine-lines' (the trait id format)."""
    return _CONCERN_SEP_RE.sub("-", value.lower())


def concerns_treated_by(active_ingredients: Iterable[str], concerns: Iterable[str]) -> List[str]:
    """
    Keep only the concerns that at least one of the given actives is documented to treat.
    Matching is case-insensitive substring (e.g. "2% Salicylic Acid" treats acne).
    """
    product_actives = [a.lower() for a in active_ingredients]
    treated: List[str] = []
    for concern in concerns:
        treating = [t.lower() for t in TRAIT_ACTIVE_MAP.get(concern, [])]
        if any(t in pa for pa in product_actives for t in treating):
            treated.append(concern)
    return treated
