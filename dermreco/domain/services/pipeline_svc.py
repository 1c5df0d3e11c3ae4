import logging
from typing import List, Optional

from dermreco.core.config import get_settings
from dermreco.domain.models.llm import LLMRankInput, RankInstructions, RankTrait, RankUserProfile
from dermreco.domain.models.product import Recommendation
from dermreco.domain.repositories.reco_cache_repo import RecommendationCacheRepo
from dermreco.domain.services.assembler_svc import to_recommendations
from dermreco.domain.services.candidate_pool_svc import CandidatePool, build_pool_for, load_user_inputs
from dermreco.domain.services.constants import RETURN_COUNT_MAX, RETURN_COUNT_MIN, ROUTINE_PRODUCT_TYPES

logger = logging.getLogger(__name__)


def build_rank_input(pool: CandidatePool) -> LLMRankInput:
    profile = pool.user_profile
    return LLMRankInput(
        user_profile=RankUserProfile(
            skin_concerns=profile.skin_concerns,
            skin_goals=profile.skin_goals,
            ingredients_to_avoid=profile.ingredients_to_avoid,
            budget_min_usd=profile.budget_min_usd,
            budget_max_usd=profile.budget_max_usd,
        ),
        detected_traits=[RankTrait(name=t.name, severity=t.severity) for t in pool.traits],
        candidate_products=pool.candidates,
        instructions=RankInstructions(
            return_count_min=RETURN_COUNT_MIN,
            return_count_max=RETURN_COUNT_MAX,
            required_steps=list(ROUTINE_PRODUCT_TYPES),
        ),
    )


async def generate_recommendations(
    user_id: str,
    analysis_id: Optional[str] = None,
    *,
    product_repo,
    onboarding_repo,
    analysis_repo,
    llm,
    cache: Optional[RecommendationCacheRepo] = None,
) -> List[Recommendation]:
    """
    End-to-end recommendation pipeline for one user.

    High-level flow (strictly sequential, one request = one task):
      1) Load the completed analysis (given id, or latest) and the onboarding answers.
      2) Optional final-list cache lookup (Redis), keyed on the resolved analysis id
         and the profile fields the pool reads, so profile edits and new analyses miss.
      3) Build the candidate pool (catalog filtered and diversified).
         An empty pool returns [] without calling the LLM.
      4) Rerank with the LLM (retries on 429/5xx only).
      5) Re-fetch full rows for exactly the candidate ids.
      6) Assemble Recommendation objects (dupe-group retail price, concern tags, vendor, url).

    Notes:
      - Every collaborator is injected so tests can pass fakes.
      - Empty results are never cached.
    """
    settings = get_settings()
    logger.info(f"Starting recommendation pipeline: user_id={user_id}, analysis_id={analysis_id}")

    # ---- 1) Analysis + onboarding ------------------------------------------
    analysis, profile = await load_user_inputs(
        user_id, analysis_id, onboarding_repo=onboarding_repo, analysis_repo=analysis_repo
    )

    # ---- 2) Final-list cache (fast path) -----------------------------------
    cache_key = None
    if cache is not None:
        cache_key = cache.key(user_id, analysis.id, getattr(llm, "rerank_model", ""), profile)
        try:
            if cached := await cache.get(cache_key):
                logger.info(f"Cache hit for user_id={user_id}, items={len(cached)}")
                return cached
        except Exception as e:
            logger.warning(f"Recommendation cache read failed (ignored): {e}")

    # ---- 3) Candidate pool -------------------------------------------------
    pool = await build_pool_for(analysis, profile, product_repo=product_repo)
    if not pool.candidates:
        logger.warning(f"No candidates for user_id={user_id}, returning empty recommendations")
        return []

    # ---- 4) LLM rerank -----------------------------------------------------
    logger.info(f"Sending {len(pool.candidates)} candidates to the LLM for reranking")
    ranked = await llm.rerank_products(build_rank_input(pool))

    # ---- 5) Full rows for the candidate ids --------------------------------
    rows = await product_repo.get_many_by_ids([c.id for c in pool.candidates])
    products_by_id = {r.id: r for r in rows}

    # ---- 6) Assemble ---------------------------------------------------------
    recommendations = await to_recommendations(
        ranked,
        products_by_id,
        pool.traits,
        pool.user_profile,
        product_repo=product_repo,
    )
    logger.info(f"Generated {len(recommendations)} recommendations for user_id={user_id}")

    if cache is not None and cache_key and recommendations:
        try:
            await cache.set(cache_key, recommendations, ttl=settings.recommendation_cache_ttl)
        except Exception as e:
            logger.warning(f"Recommendation cache write failed (ignored): {e}")

    return recommendations
