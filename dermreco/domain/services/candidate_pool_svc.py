import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from dermreco.core.errors import ErrorCodes, NotFoundError
from dermreco.domain.models.product import CandidateProduct, ProductRow, SkinAnalysis, SkinTrait, UserProfile
from dermreco.domain.services.constants import (
    MAX_PER_TYPE,
    MAX_TOTAL_CANDIDATES,
    ROUTINE_PRODUCT_TYPES,
    ROUTINE_STEP_BONUS,
)
from dermreco.domain.services.filters import filter_allergies
from dermreco.domain.services.traits import map_traits_to_actives

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidatePool:
    candidates: List[CandidateProduct]
    user_profile: UserProfile
    traits: List[SkinTrait]


def score_product(product: ProductRow, target_actives: Sequence[str]) -> float:
    """
    +1 per active ingredient matching any target active (case-insensitive substring),
    +0.5 when the product is one of the canonical routine steps.
    """
    targets = [t.lower() for t in target_actives]
    score = 0.0
    for active in product.active_ingredients:
        a = active.lower()
        if any(t in a for t in targets):
            score += 1
    if product.product_type in ROUTINE_PRODUCT_TYPES:
        score += ROUTINE_STEP_BONUS
    return score


def score_products(products: List[ProductRow], target_actives: Sequence[str]) -> List[Tuple[ProductRow, float]]:
    """Score and sort descending; the sort is stable so ties keep the incoming (price) order."""
    scored = [(p, score_product(p, target_actives)) for p in products]
    scored.sort(key=lambda x: x[1], reverse=True)
    return scored


def diversify(
    products: List[ProductRow],
    max_per_type: int = MAX_PER_TYPE,
    max_total: int = MAX_TOTAL_CANDIDATES,
) -> List[ProductRow]:
    """Walk in order, admitting at most `max_per_type` per product_type and `max_total` overall."""
    type_count: Dict[str, int] = {}
    kept: List[ProductRow] = []
    for p in products:
        if len(kept) >= max_total:
            break
        current = type_count.get(p.product_type, 0)
        if current < max_per_type:
            kept.append(p)
            type_count[p.product_type] = current + 1
    logger.debug(f"Diversified to {len(kept)} candidates across types: {type_count}")
    return kept


async def load_user_inputs(
    user_id: str,
    analysis_id: Optional[str] = None,
    *,
    onboarding_repo,
    analysis_repo,
) -> Tuple[SkinAnalysis, UserProfile]:
    """Completed skin analysis (given id, or latest) and onboarding answers; NotFoundError when either is missing."""
    analysis = await analysis_repo.get_completed(user_id, analysis_id)
    if analysis is None:
        if analysis_id:
            logger.warning(f"Analysis not found: analysis_id={analysis_id} user_id={user_id}")
            raise NotFoundError(f"Analysis not found: {analysis_id}", ErrorCodes.ANALYSIS_MISSING)
        logger.warning(f"No completed analysis for user_id={user_id}")
        raise NotFoundError("No completed skin analysis found for user", ErrorCodes.ANALYSIS_MISSING)

    if not analysis.detected_traits:
        logger.warning(f"Analysis {analysis.id} has no detected traits")

    profile = await onboarding_repo.get_profile(user_id)
    if profile is None:
        logger.warning(f"No onboarding data for user_id={user_id}")
        raise NotFoundError("User onboarding data not found", ErrorCodes.ONBOARDING_MISSING)

    return analysis, profile


async def build_pool_for(analysis: SkinAnalysis, profile: UserProfile, *, product_repo) -> CandidatePool:
    """
    Filter / score / diversify the catalog for an already-loaded analysis and profile.

    High-level flow:
      1) Map traits + goals to target actives.
      2) Query active products within budget, cheapest first.
      3) Drop allergy conflicts.
      4) Score by target-active overlap (+ routine-step bonus), sort descending.
      5) Diversify (per-type cap + total cap) and project to CandidateProduct.
    """
    traits = list(analysis.detected_traits)

    # ---- 1) Target actives ---------------------------------------------------
    target_actives = map_traits_to_actives(traits, profile.skin_goals)
    logger.info(f"Target actives: {target_actives[:5]}{' ...' if len(target_actives) > 5 else ''}")

    # ---- 2) Budget-bounded catalog query -------------------------------------
    products = await product_repo.list_active_in_budget(profile.budget_min_usd, profile.budget_max_usd)
    logger.info(f"Fetched {len(products)} products within budget [{profile.budget_min_usd}, {profile.budget_max_usd}]")

    # ---- 3) Allergies ---------------------------------------------------------
    products = filter_allergies(products, profile.ingredients_to_avoid)
    logger.info(f"{len(products)} products after allergy filtering")

    # ---- 4) + 5) Score, diversify, project -----------------------------------
    ranked = [p for p, _ in score_products(products, target_actives)]
    diversified = diversify(ranked)
    candidates = [CandidateProduct.from_row(p) for p in diversified]
    logger.info(f"Candidate pool size={len(candidates)}")

    return CandidatePool(candidates=candidates, user_profile=profile, traits=traits)


async def build_candidate_pool(
    user_id: str,
    analysis_id: Optional[str] = None,
    *,
    product_repo,
    onboarding_repo,
    analysis_repo,
) -> CandidatePool:
    """Load the user's analysis and onboarding answers, then build the pool sent to the LLM."""
    analysis, profile = await load_user_inputs(
        user_id, analysis_id, onboarding_repo=onboarding_repo, analysis_repo=analysis_repo
    )
    return await build_pool_for(analysis, profile, product_repo=product_repo)
