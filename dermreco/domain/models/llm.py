from pydantic import BaseModel, Field
from typing import List, Literal

from dermreco.domain.models.product import CandidateProduct, Severity, SkinTrait


# =============================================================================
#                               RERANK INPUT
# =============================================================================

class RankUserProfile(BaseModel):
    skin_concerns: List[str]
    skin_goals: List[str]
    ingredients_to_avoid: List[str]
    budget_min_usd: float
    budget_max_usd: float


class RankTrait(BaseModel):
    name: str
    severity: Severity


class RankInstructions(BaseModel):
    return_count_min: int = 8
    return_count_max: int = 12
    required_steps: List[str] = Field(default_factory=lambda: ["Cleanser", "Treatment", "Moisturizer", "Sunscreen"])


class LLMRankInput(BaseModel):
    user_profile: RankUserProfile
    detected_traits: List[RankTrait]
    candidate_products: List[CandidateProduct]
    instructions: RankInstructions = Field(default_factory=RankInstructions)


# =============================================================================
#                               RERANK OUTPUT
# =============================================================================

class LLMRankedItem(BaseModel):
    """
    One ranked product as returned by the LLM:
      {"product_id": "...", "score": 0.95, "reason": "...", "step": "Cleanser", "selected_vendor": "Amazon"}
    """
    product_id: str = Field(..., min_length=1)
    score: float = Field(..., ge=0.0, le=1.0)
    reason: str = Field(..., max_length=200)
    step: str
    selected_vendor: str


class LLMRankOutput(BaseModel):
    items: List[LLMRankedItem] = Field(..., min_length=8, max_length=12)
    confidence: float = Field(..., ge=0, le=100)


# =============================================================================
#                               VISION OUTPUT
# =============================================================================

class VisionAnalysis(BaseModel):
    skinType: Literal["Dry", "Oily", "Combination", "Normal", "Sensitive"]
    confidence: float = Field(..., ge=0, le=100)
    primaryConcern: str = Field(..., min_length=1)
    traits: List[SkinTrait] = Field(..., min_length=1)
    notes: List[str] = []
    modelVersion: str = Field(..., min_length=1)
