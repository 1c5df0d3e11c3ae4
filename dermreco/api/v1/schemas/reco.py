# dermreco/api/v1/schemas/reco.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional

from dermreco.domain.models.product import Recommendation, SkinAnalysis


class RecommendationsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    user_id: Optional[str] = Field(default=None, alias="userId", min_length=1,
                                   description="User ID (optional, inferred from session)")
    analysis_id: Optional[str] = Field(default=None, alias="analysisId", min_length=1,
                                       description="Analysis ID (optional, latest completed if omitted)")


class RecommendationsData(BaseModel):
    recommendations: List[Recommendation]


class RecommendationsResponse(BaseModel):
    success: Literal[True] = True
    data: RecommendationsData


class AnalysisData(BaseModel):
    analysis: SkinAnalysis


class AnalysisResponse(BaseModel):
    success: Literal[True] = True
    data: AnalysisData
