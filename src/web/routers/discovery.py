"""Discovery router: trigger locality scans for new complexes."""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel

from src.core.config import settings
from src.discovery.localities import TARGET_REGIONS, localities_for_day, localities_for_region
from src.web.dependencies import get_current_username, get_pipeline
from src.web.responses import accepted, collection
from src.workflow import Pipeline

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/discovery",
    tags=["Discovery"],
    dependencies=[Depends(get_current_username)],
)


class DiscoveryRequest(BaseModel):
    localities: Optional[List[str]] = None
    region: Optional[str] = None


@router.get("/regions", summary="Target Regions")
async def get_regions():
    return collection([{"region": region, "localities": cities} for region, cities in TARGET_REGIONS.items()])


@router.post("/run", summary="Trigger Discovery")
async def trigger_discovery(
    request: DiscoveryRequest,
    background_tasks: BackgroundTasks,
    pipeline: Pipeline = Depends(get_pipeline),
):
    """Scan the given localities, a region, or today's rotation. Runs in the background."""
    if request.localities:
        localities = request.localities
    elif request.region:
        try:
            localities = localities_for_region(request.region)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    else:
        localities = localities_for_day(date.today().timetuple().tm_yday, settings.localities_per_run)

    async def run_discovery():
        try:
            await pipeline.discovery.discover(localities)
        except Exception as e:
            logger.error(f"Discovery run failed: {e}", exc_info=True)

    background_tasks.add_task(run_discovery)
    return accepted(f"Discovery started for {len(localities)} localities", localities=localities)
