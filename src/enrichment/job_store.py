"""
Batch job state and where it is kept.

A BatchJob is mutated only by the worker task that owns it; the store holds
snapshots that any number of status readers may fetch. InMemoryJobStore is
the default, SqlJobStore survives restarts. The orchestrator only sees the
JobStore protocol.
"""
import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.core.models import EnrichmentMode, JobStatus
from src.core.utils import utcnow
from src.enrichment.database import BatchJobRecord

logger = logging.getLogger(__name__)

UNFINISHED = (JobStatus.QUEUED.value, JobStatus.RUNNING.value)


@dataclass
class BatchJob:
    job_id: str
    mode: EnrichmentMode
    complex_ids: List[int]
    kind: str = "batch"  # batch | single
    status: JobStatus = JobStatus.QUEUED
    selection: Optional[Dict[str, Any]] = None
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    fields_updated: int = 0
    current_item: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    details: List[Dict[str, Any]] = field(default_factory=list)
    cancel_requested: bool = False
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def total(self) -> int:
        return len(self.complex_ids)

    def add_error(self, message: str, limit: int):
        """Keep the first `limit` errors and a single truncation marker."""
        if len(self.errors) < limit:
            self.errors.append(message)
        elif len(self.errors) == limit:
            self.errors.append("... further errors truncated")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "kind": self.kind,
            "status": self.status.value,
            "mode": self.mode.value,
            "total": self.total,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "fields_updated": self.fields_updated,
            "current_item": self.current_item,
            "errors": list(self.errors),
            "details": list(self.details),
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }


class JobStore(Protocol):

    async def put(self, job: BatchJob) -> None:
        ...

    async def get(self, job_id: str) -> Optional[BatchJob]:
        ...

    async def list(self, limit: int = 50) -> List[BatchJob]:
        ...

    async def list_unfinished(self) -> List[BatchJob]:
        ...


class InMemoryJobStore:
    """Process-local store; snapshots are copied in and out."""

    def __init__(self):
        self._jobs: Dict[str, BatchJob] = {}

    async def put(self, job: BatchJob) -> None:
        self._jobs[job.job_id] = copy.deepcopy(job)

    async def get(self, job_id: str) -> Optional[BatchJob]:
        job = self._jobs.get(job_id)
        return copy.deepcopy(job) if job else None

    async def list(self, limit: int = 50) -> List[BatchJob]:
        jobs = sorted(self._jobs.values(), key=lambda j: j.created_at, reverse=True)
        return [copy.deepcopy(j) for j in jobs[:limit]]

    async def list_unfinished(self) -> List[BatchJob]:
        jobs = sorted(self._jobs.values(), key=lambda j: j.created_at)
        return [copy.deepcopy(j) for j in jobs if j.status.value in UNFINISHED]


class SqlJobStore:
    """Jobs persisted in the batch_jobs table."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @staticmethod
    def _to_record(job: BatchJob) -> BatchJobRecord:
        return BatchJobRecord(
            job_id=job.job_id,
            kind=job.kind,
            status=job.status.value,
            mode=job.mode.value,
            complex_ids=list(job.complex_ids),
            selection=job.selection,
            processed=job.processed,
            succeeded=job.succeeded,
            failed=job.failed,
            fields_updated=job.fields_updated,
            current_item=job.current_item,
            errors=list(job.errors),
            details=list(job.details),
            cancel_requested=job.cancel_requested,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )

    @staticmethod
    def _from_record(record: BatchJobRecord) -> BatchJob:
        return BatchJob(
            job_id=record.job_id,
            kind=record.kind,
            status=JobStatus(record.status),
            mode=EnrichmentMode(record.mode),
            complex_ids=list(record.complex_ids or []),
            selection=record.selection,
            processed=record.processed or 0,
            succeeded=record.succeeded or 0,
            failed=record.failed or 0,
            fields_updated=record.fields_updated or 0,
            current_item=record.current_item,
            errors=list(record.errors or []),
            details=list(record.details or []),
            cancel_requested=bool(record.cancel_requested),
            created_at=record.created_at,
            started_at=record.started_at,
            completed_at=record.completed_at,
        )

    async def put(self, job: BatchJob) -> None:
        async with self.session_factory() as session:
            await session.merge(self._to_record(job))
            await session.commit()

    async def get(self, job_id: str) -> Optional[BatchJob]:
        async with self.session_factory() as session:
            record = await session.get(BatchJobRecord, job_id)
            return self._from_record(record) if record else None

    async def list(self, limit: int = 50) -> List[BatchJob]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(BatchJobRecord).order_by(BatchJobRecord.created_at.desc()).limit(limit)
            )
            return [self._from_record(r) for r in result.scalars().all()]

    async def list_unfinished(self) -> List[BatchJob]:
        """Jobs still queued or running, oldest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(BatchJobRecord)
                .where(BatchJobRecord.status.in_(UNFINISHED))
                .order_by(BatchJobRecord.created_at)
            )
            return [self._from_record(r) for r in result.scalars().all()]
