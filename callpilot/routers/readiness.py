# callpilot/routers/readiness.py
from fastapi import APIRouter

from callpilot.schemas.call import CallDraft, ReadinessResponse
from callpilot.services.readiness_service import compute_readiness_score, readiness_insight

router = APIRouter(prefix="/api", tags=["readiness"])


@router.post("/readiness", response_model=ReadinessResponse)
def readiness(draft: CallDraft) -> ReadinessResponse:
    """Score the in-progress form. The page calls this on every edit."""
    score = compute_readiness_score(draft)
    return ReadinessResponse(
        score=score,
        insight=readiness_insight(score, bool(draft.script.strip())),
    )
