# dermreco/api/v1/routers/recommendations.py
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends

from dermreco.api.deps import (
    current_user_id,
    get_analysis_repo,
    get_llm_service,
    get_onboarding_repo,
    get_product_repo,
    get_reco_cache,
)
from dermreco.api.v1.schemas.reco import RecommendationsRequest, RecommendationsResponse
from dermreco.core.errors import HttpError, InternalServerError, UnauthorizedError
from dermreco.core.handlers import ok
from dermreco.domain.services.llm_svc import LLMError
from dermreco.domain.services.pipeline_svc import generate_recommendations

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recommendations"])


@router.post("/recommendations", response_model=RecommendationsResponse)
async def post_recommendations(
    body: Optional[RecommendationsRequest] = Body(default=None),
    user_id: str = Depends(current_user_id),
    product_repo=Depends(get_product_repo),
    onboarding_repo=Depends(get_onboarding_repo),
    analysis_repo=Depends(get_analysis_repo),
    llm=Depends(get_llm_service),
    cache=Depends(get_reco_cache),
):
    """
    Personalized product recommendations from the latest (or given) skin analysis,
    the onboarding profile, and LLM reranking.
    """
    body = body or RecommendationsRequest()
    target_user_id = body.user_id or user_id
    if target_user_id != user_id:
        raise UnauthorizedError("Cannot access recommendations for another user")

    try:
        recommendations = await generate_recommendations(
            target_user_id,
            body.analysis_id,
            product_repo=product_repo,
            onboarding_repo=onboarding_repo,
            analysis_repo=analysis_repo,
            llm=llm,
            cache=cache,
        )
    except (HttpError, LLMError):
        raise
    except Exception as e:
        logger.exception(f"/recommendations failed for user_id={target_user_id}: {e}")
        raise InternalServerError("Failed to generate recommendations") from e

    logger.info(f"Returning {len(recommendations)} recommendations for user_id={target_user_id}")
    return ok({"recommendations": [r.model_dump() for r in recommendations]})
