"""
Database model for persisted enrichment batch jobs (SqlJobStore).
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Integer, String, Boolean, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database import Base
from src.core.utils import utcnow


class BatchJobRecord(Base):
    __tablename__ = "batch_jobs"

    job_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), default="batch")
    status: Mapped[str] = mapped_column(String(20), default="queued", index=True)
    mode: Mapped[str] = mapped_column(String(20), default="standard")

    complex_ids: Mapped[Any] = mapped_column(JSON, default=list)
    selection: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    processed: Mapped[int] = mapped_column(Integer, default=0)
    succeeded: Mapped[int] = mapped_column(Integer, default=0)
    failed: Mapped[int] = mapped_column(Integer, default=0)
    fields_updated: Mapped[int] = mapped_column(Integer, default=0)
    current_item: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    errors: Mapped[Any] = mapped_column(JSON, default=list)
    details: Mapped[Any] = mapped_column(JSON, default=list)
    cancel_requested: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def __repr__(self):
        return f"<BatchJob(job_id='{self.job_id}', status='{self.status}', {self.processed}/{len(self.complex_ids or [])})>"
