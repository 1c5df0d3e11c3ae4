# dermreco/api/deps.py
from typing import Optional
from fastapi import Depends, Header, Request
from dermreco.core.config import get_settings
from dermreco.core.errors import UnauthorizedError
from dermreco.db.mongo import get_db
from dermreco.db.redis import get_redis
from dermreco.domain.repositories.product_repo import ProductRepo
from dermreco.domain.repositories.profile_repo import AnalysisRepo, OnboardingRepo
from dermreco.domain.repositories.reco_cache_repo import RecommendationCacheRepo
from dermreco.domain.services.llm_svc import OpenAIService

# Dependency for injecting the MongoDB database into endpoints/services
async def mongo_db():
    return get_db()

# Dependency for injecting the Redis client (None when not configured)
def redis_dep():
    return get_redis()


async def current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    Caller identity as established by the upstream session layer
    (the auth gateway forwards the authenticated user id in X-User-Id).
    """
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError("Authentication required")
    return x_user_id.strip()


def get_product_repo(db=Depends(mongo_db)) -> ProductRepo:
    return ProductRepo(db)

def get_onboarding_repo(db=Depends(mongo_db)) -> OnboardingRepo:
    return OnboardingRepo(db)

def get_analysis_repo(db=Depends(mongo_db)) -> AnalysisRepo:
    return AnalysisRepo(db)

def get_reco_cache(redis=Depends(redis_dep)) -> Optional[RecommendationCacheRepo]:
    if redis is None:
        return None
    return RecommendationCacheRepo(redis, key_prefix=get_settings().recommendation_cache_prefix)

def get_llm_service(request: Request) -> OpenAIService:
    settings = get_settings()
    return OpenAIService(
        request.app.state.openai,
        rerank_model=settings.OPENAI_RERANK_MODEL,
        vision_model=settings.OPENAI_VISION_MODEL,
        timeout_s=settings.openai_timeout_s,
        rerank_max_tokens=settings.rerank_max_tokens,
        vision_max_tokens=settings.vision_max_tokens,
    )
