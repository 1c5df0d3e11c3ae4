import hashlib
import json
import logging
from typing import Iterable, Optional

from pydantic import ValidationError

from dermreco.domain.models.product import Recommendation, UserProfile

logger = logging.getLogger(__name__)


def _h(analysis_id: str, model: str, profile: UserProfile) -> str:
    """
    Short hash of everything besides the user that shapes the final list:
    the resolved analysis, the rerank model, and the onboarding fields the pool reads.
    """
    s = json.dumps(
        {
            "a": analysis_id,
            "m": model,
            "c": profile.skin_concerns,
            "g": profile.skin_goals,
            "x": profile.ingredients_to_avoid,
            "b": [profile.budget_min_usd, profile.budget_max_usd],
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha1(s.encode()).hexdigest()[:16]


class RecommendationCacheRepo:
    """
    Adapter for caching final recommendation lists in Redis.
    No business logic here, just cache access (get/set/invalidate).
    """
    def __init__(self, redis, key_prefix: str = "reco"):
        self.cache = redis
        self.prefix = key_prefix

    def key(self, user_id: str, analysis_id: str, model: str, profile: UserProfile) -> str:
        return f"{self.prefix}:{user_id}:{_h(analysis_id, model, profile)}"

    async def get(self, key: str) -> Optional[list[Recommendation]]:
        raw = await self.cache.get(key)
        if not raw:
            return None
        try:
            return [Recommendation.model_validate(x) for x in json.loads(raw)]
        except (ValueError, TypeError, ValidationError) as e:
            # unreadable entry (e.g. written by an older schema): drop it and recompute
            logger.warning(f"Dropping unreadable cache entry {key}: {e}")
            await self.invalidate(key)
            return None

    async def set(self, key: str, items: Iterable[Recommendation], ttl: int) -> None:
        payload = [i.model_dump() for i in items]
        await self.cache.set(key, json.dumps(payload), ex=ttl)

    async def invalidate(self, key: str) -> int:
        return await self.cache.delete(key)
