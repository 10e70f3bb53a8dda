"""Opportunities router: ranked complexes, details, re-scoring and listing prices."""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select, func

from src.complexes.database import ComplexModel
from src.complexes.service import get_complex
from src.core.models import ScoreTier
from src.core.schemas import StandardResponse
from src.web.dependencies import get_current_username, get_pipeline
from src.web.responses import accepted, paginated
from src.workflow import Pipeline

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/opportunities",
    tags=["Opportunities"],
    dependencies=[Depends(get_current_username)],
)


class PriceUpdate(BaseModel):
    asking_price: float


@router.get("/", summary="Ranked Opportunities")
async def get_opportunities(
    limit: int = 50,
    offset: int = 0,
    tier: Optional[str] = None,
    city: Optional[str] = None,
    pipeline: Pipeline = Depends(get_pipeline),
):
    if tier is not None and tier not in {t.value for t in ScoreTier}:
        raise HTTPException(status_code=400, detail=f"Unknown tier: {tier}")

    data = await pipeline.scoring.rank_opportunities(limit=limit, tier=tier, city=city, offset=offset)
    async with pipeline.session_factory() as session:
        stmt = select(func.count(ComplexModel.id))
        if tier:
            stmt = stmt.where(ComplexModel.tier == tier)
        if city:
            stmt = stmt.where(ComplexModel.city == city)
        total = (await session.execute(stmt)).scalar_one()
    return paginated(data, total, limit, offset)


@router.get("/{complex_id}", summary="Complex Detail")
async def get_opportunity(complex_id: int, pipeline: Pipeline = Depends(get_pipeline)):
    async with pipeline.session_factory() as session:
        complex_ = await get_complex(session, complex_id, with_listings=True)
        if complex_ is None:
            raise HTTPException(status_code=404, detail="Complex not found")
        detail = complex_.to_dict()
        detail["listings"] = [l.to_dict() for l in complex_.listings]
    return detail


@router.post("/{complex_id}/rescore", response_model=StandardResponse[dict], summary="Re-score Complex")
async def rescore(complex_id: int, pipeline: Pipeline = Depends(get_pipeline)):
    summary = await pipeline.scoring.rescore_complex(complex_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Complex not found")
    return StandardResponse(data=summary)


@router.post("/rescore", summary="Re-score All")
async def rescore_all(background_tasks: BackgroundTasks, pipeline: Pipeline = Depends(get_pipeline)):
    async def run_rescore():
        try:
            await pipeline.scoring.rescore_all()
        except Exception as e:
            logger.error(f"Re-score run failed: {e}", exc_info=True)

    background_tasks.add_task(run_rescore)
    return accepted("Re-score started")


@router.post("/listings/{listing_id}/price", response_model=StandardResponse[dict], summary="Record Listing Price")
async def record_price(listing_id: int, update: PriceUpdate, pipeline: Pipeline = Depends(get_pipeline)):
    try:
        result = await pipeline.scoring.record_listing_price(listing_id, update.asking_price)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    return StandardResponse(data=result)
