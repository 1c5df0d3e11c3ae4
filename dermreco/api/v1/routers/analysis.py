# dermreco/api/v1/routers/analysis.py
from fastapi import APIRouter, Depends

from dermreco.api.deps import current_user_id, get_analysis_repo
from dermreco.api.v1.schemas.reco import AnalysisResponse
from dermreco.core.errors import ErrorCodes, NotFoundError
from dermreco.core.handlers import ok

router = APIRouter(tags=["analysis"])


@router.get("/analysis/latest", response_model=AnalysisResponse)
async def latest_analysis(
    user_id: str = Depends(current_user_id),
    analysis_repo=Depends(get_analysis_repo),
):
    """Most recently completed skin analysis of the caller."""
    analysis = await analysis_repo.get_completed(user_id)
    if analysis is None:
        raise NotFoundError("No completed skin analysis found for user", ErrorCodes.ANALYSIS_MISSING)
    return ok({"analysis": analysis.model_dump(mode="json")})
