"""Alerts router: the alert feed and read state."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from src.core.models import AlertType
from src.core.schemas import StandardResponse
from src.web.dependencies import get_current_username, get_pipeline
from src.web.responses import paginated, success
from src.workflow import Pipeline

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/alerts",
    tags=["Alerts"],
    dependencies=[Depends(get_current_username)],
)


@router.get("/", summary="Get Alerts")
async def get_alerts(
    unread_only: bool = False,
    complex_id: Optional[int] = None,
    alert_type: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    pipeline: Pipeline = Depends(get_pipeline),
):
    if alert_type is not None and alert_type not in {t.value for t in AlertType}:
        raise HTTPException(status_code=400, detail=f"Unknown alert type: {alert_type}")

    alerts = await pipeline.alerts.list_alerts(
        unread_only=unread_only,
        complex_id=complex_id,
        alert_type=alert_type,
        limit=limit,
        offset=offset,
    )
    data = [a.to_dict() for a in alerts]
    return paginated(data, len(data), limit, offset)


@router.patch("/{alert_id}/read", response_model=StandardResponse[dict], summary="Mark Alert Read")
async def mark_alert_read(alert_id: int, pipeline: Pipeline = Depends(get_pipeline)):
    if not await pipeline.alerts.mark_read(alert_id):
        raise HTTPException(status_code=404, detail="Alert not found")
    return StandardResponse(data={"status": "success", "alert_id": alert_id})


@router.post("/read-all", summary="Mark All Read")
async def mark_all_read(complex_id: Optional[int] = None, pipeline: Pipeline = Depends(get_pipeline)):
    count = await pipeline.alerts.mark_all_read(complex_id)
    return success(f"{count} alerts marked read", count=count)
