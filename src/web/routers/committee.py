"""Committee router: approval tracking runs and summary."""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel

from src.web.dependencies import get_current_username, get_pipeline
from src.web.responses import accepted
from src.core.schemas import StandardResponse
from src.workflow import Pipeline

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/committee",
    tags=["Committee"],
    dependencies=[Depends(get_current_username)],
)


class TrackRequest(BaseModel):
    city: Optional[str] = None
    limit: Optional[int] = None
    stale_only: bool = True


@router.post("/track", summary="Track All Stale Complexes")
async def track_all(
    request: TrackRequest,
    background_tasks: BackgroundTasks,
    pipeline: Pipeline = Depends(get_pipeline),
):
    async def run_tracking():
        try:
            await pipeline.committee.track_all(request.city, request.limit, request.stale_only)
        except Exception as e:
            logger.error(f"Committee tracking run failed: {e}", exc_info=True)

    background_tasks.add_task(run_tracking)
    return accepted("Committee tracking started")


@router.post("/track/{complex_id}", response_model=StandardResponse[dict], summary="Track One Complex")
async def track_complex(complex_id: int, pipeline: Pipeline = Depends(get_pipeline)):
    """Poll one complex synchronously and return what changed."""
    result = await pipeline.committee.track_complex(complex_id)
    if result["status"] == "error" and result.get("error") == "Complex not found":
        raise HTTPException(status_code=404, detail="Complex not found")
    return StandardResponse(data=result)


@router.get("/summary", response_model=StandardResponse[dict], summary="Committee Summary")
async def committee_summary(pipeline: Pipeline = Depends(get_pipeline)):
    return StandardResponse(data=await pipeline.committee.committee_summary())
