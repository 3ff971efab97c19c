from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from shelfmate.core.auth import RequestContext, require_role
from shelfmate.database import get_db
from shelfmate.schemas.recommendation import ReaderProfile, RecommendationsResponse
from shelfmate.services import recommendation_engine
from shelfmate.services.catalog_store import SqlCatalogStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recommendations"])


@router.post("/recommendations", response_model=RecommendationsResponse)
def get_recommendations(
    profile: ReaderProfile,
    ctx: RequestContext = Depends(require_role("readonly")),
    db: Session = Depends(get_db),
):
    """
    Rank the organization's library for a reader profile.
    Returns at most RECOMMENDATION_LIMIT books, each with genres and a match reason.
    """
    logger.info("Fetching recommendations for student %s (org=%s)", profile.student_id, ctx.organization_id)

    try:
        return recommendation_engine.get_library_recommendations(
            store=SqlCatalogStore(db),
            organization_id=ctx.organization_id,
            profile=profile,
        )
    except Exception as e:
        error_type = type(e).__name__
        logger.exception(
            "[POST /api/recommendations ERROR] "
            f"student_id={profile.student_id}, "
            f"org_id={ctx.organization_id}, "
            f"error_type={error_type}"
        )
        raise HTTPException(
            status_code=500,
            detail={"detail": "internal_error", "error_type": error_type},
        )
