from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from adcvd_tracker.api.deps import get_investigation_feed
from adcvd_tracker.models.interfaces import InvestigationFeed
from adcvd_tracker.normalize.investigations import normalize_investigations
from adcvd_tracker.services.errors import UpstreamError
from adcvd_tracker.services.logger import logger

router = APIRouter(prefix="/api/investigations", tags=["investigations"])


@router.get("")
async def list_investigations(
    hts8: str = Query(""),
    year: str = Query(""),
    feed: InvestigationFeed = Depends(get_investigation_feed),
):
    """Normalized AD/CVD investigation tags for one HTS8 code and year."""
    if not hts8 or not year:
        raise HTTPException(status_code=400, detail="Missing hts8 or year parameter")
    try:
        records = await feed.fetch_investigations(hts8, year)
    except UpstreamError as exc:
        logger.warning(f"Investigation feed failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})
    return [tag.to_dict() for tag in normalize_investigations(records)]
