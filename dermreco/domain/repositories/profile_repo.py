# dermreco/domain/repositories/profile_repo.py

from __future__ import annotations
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from dermreco.domain.models.product import SkinAnalysis, UserProfile


def _as_list(value) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


class OnboardingRepo:
    """Onboarding answers ('onboarding_data'): concerns, goals, allergies, budget."""

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "onboarding_data"):
        self.col = db[collection_name]

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        doc = await self.col.find_one(
            {"user_id": user_id},
            {
                "_id": 0,
                "skin_concerns": 1,
                "skin_goals": 1,
                "ingredients_to_avoid": 1,
                "budget_min_usd": 1,
                "budget_max_usd": 1,
            },
        )
        if not doc:
            return None
        return UserProfile(
            skin_concerns=_as_list(doc.get("skin_concerns")),
            skin_goals=_as_list(doc.get("skin_goals")),
            ingredients_to_avoid=_as_list(doc.get("ingredients_to_avoid")),
            budget_min_usd=float(doc.get("budget_min_usd")),
            budget_max_usd=float(doc.get("budget_max_usd")),
        )


class AnalysisRepo:
    """Skin analyses ('skin_analyses'), produced by the vision step."""

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "skin_analyses"):
        self.col = db[collection_name]

    async def get_completed(self, user_id: str, analysis_id: Optional[str] = None) -> Optional[SkinAnalysis]:
        """
        Completed analysis for the user: the given one (scoped to the user),
        or the most recently completed one when analysis_id is None.
        """
        query = {"user_id": user_id, "status": "complete"}
        if analysis_id:
            doc = await self.col.find_one({**query, "id": analysis_id}, {"_id": 0})
        else:
            cursor = self.col.find(query, {"_id": 0}).sort("completed_at", -1).limit(1)
            docs = await cursor.to_list(length=1)
            doc = docs[0] if docs else None
        return SkinAnalysis.model_validate(doc) if doc else None
