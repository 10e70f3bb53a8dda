"""Enrichment router: batch and single-complex enrichment jobs."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from src.complexes.service import get_complex
from src.core.models import EnrichmentMode, ScoreTier
from src.core.schemas import JobStatusResponse, StandardResponse
from src.enrichment.orchestrator import BatchSelection
from src.web.dependencies import get_current_username, get_pipeline
from src.web.responses import accepted, collection, success
from src.workflow import Pipeline

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/enrichment",
    tags=["Enrichment"],
    dependencies=[Depends(get_current_username)],
)


class BatchRequest(BaseModel):
    complex_ids: Optional[List[int]] = None
    stale_days: Optional[int] = None
    min_attractiveness: Optional[int] = None
    city: Optional[str] = None
    tier: Optional[str] = None
    status: Optional[str] = None
    limit: Optional[int] = None
    mode: str = "standard"


class SingleRequest(BaseModel):
    mode: str = "standard"


def _mode(value: str) -> EnrichmentMode:
    try:
        return EnrichmentMode.normalize(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/jobs", summary="Start Batch Enrichment")
async def start_batch(request: BatchRequest, pipeline: Pipeline = Depends(get_pipeline)):
    mode = _mode(request.mode)
    if request.tier is not None and request.tier not in {t.value for t in ScoreTier}:
        raise HTTPException(status_code=400, detail=f"Unknown tier: {request.tier}")

    selection = BatchSelection(
        complex_ids=request.complex_ids,
        stale_days=request.stale_days,
        min_attractiveness=request.min_attractiveness,
        city=request.city,
        tier=request.tier,
        status=request.status,
        limit=request.limit,
    )
    job_id = await pipeline.orchestrator.start_batch(selection, mode)
    job = await pipeline.orchestrator.get_status(job_id)
    return accepted(f"Enrichment of {job['total']} complexes started", job_id=job_id, total=job["total"])


@router.post("/complexes/{complex_id}", summary="Enrich One Complex")
async def start_single(
    complex_id: int,
    request: SingleRequest = SingleRequest(),
    pipeline: Pipeline = Depends(get_pipeline),
):
    mode = _mode(request.mode)
    async with pipeline.session_factory() as session:
        if await get_complex(session, complex_id) is None:
            raise HTTPException(status_code=404, detail="Complex not found")
    job_id = await pipeline.orchestrator.start_single(complex_id, mode)
    return accepted(f"Enrichment of complex {complex_id} started", job_id=job_id)


@router.get("/jobs", summary="List Enrichment Jobs")
async def list_jobs(limit: int = 50, pipeline: Pipeline = Depends(get_pipeline)):
    return collection(await pipeline.orchestrator.list_jobs(limit))


@router.get("/jobs/{job_id}", response_model=StandardResponse[JobStatusResponse], summary="Job Status")
async def job_status(job_id: str, pipeline: Pipeline = Depends(get_pipeline)):
    job = await pipeline.orchestrator.get_status(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return StandardResponse(data=JobStatusResponse(**job))


@router.post("/jobs/{job_id}/cancel", summary="Cancel Job")
async def cancel_job(job_id: str, pipeline: Pipeline = Depends(get_pipeline)):
    if await pipeline.orchestrator.get_status(job_id) is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if not await pipeline.orchestrator.cancel(job_id):
        raise HTTPException(status_code=409, detail="Job already finished")
    return success("Cancellation requested", job_id=job_id)
