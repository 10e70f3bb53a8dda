"""
Batch enrichment orchestrator.

One asyncio task per job. Inside a job, items run sequentially in the order
supplied, with the inter-entity delay between them. Per-item failures are
recorded and the job moves on; an item whose rate-limit retries ran out (see
Enricher) counts as failed; persistence failures end the job as failed.
Cancellation is honoured between items and never rolls back finished items.

A shutdown leaves unfinished jobs running in the store. The next process
resumes them over the items that have no recorded outcome yet.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, asdict
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.complexes.database import ComplexModel
from src.core.ai_client import RateLimitedError
from src.core.config import Settings, settings as default_settings
from src.core.models import EnrichmentMode, JobStatus, ScoreTier
from src.core.utils import utcnow
from src.enrichment.enricher import Enricher
from src.enrichment.job_store import BatchJob, InMemoryJobStore, JobStore

logger = logging.getLogger(__name__)

FATAL_ERRORS = (OperationalError, InterfaceError)


@dataclass
class BatchSelection:
    """Either an explicit id list, or a query over stored complexes."""
    complex_ids: Optional[List[int]] = None
    stale_days: Optional[int] = None
    min_attractiveness: Optional[int] = None
    city: Optional[str] = None
    tier: Optional[str] = None
    status: Optional[str] = None
    limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class BatchOrchestrator:

    def __init__(
        self,
        session_factory: async_sessionmaker,
        enricher: Enricher,
        store: Optional[JobStore] = None,
        config: Settings = default_settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.enricher = enricher
        self.store = store if store is not None else InMemoryJobStore()
        self.config = config
        self.sleep = sleep
        self._tasks: Dict[str, asyncio.Task] = {}
        self._live: Dict[str, BatchJob] = {}
        self._shutting_down = False

    async def resolve_selection(self, selection: BatchSelection) -> List[int]:
        if selection.complex_ids is not None:
            # Keep caller order, drop repeats
            seen = set()
            ids = [i for i in selection.complex_ids if not (i in seen or seen.add(i))]
            return ids[:selection.limit] if selection.limit else ids

        stmt = select(ComplexModel.id)
        if selection.stale_days is not None:
            cutoff = utcnow() - timedelta(days=selection.stale_days)
            stmt = stmt.where(or_(
                ComplexModel.last_enriched_at.is_(None),
                ComplexModel.last_enriched_at < cutoff,
            ))
        if selection.min_attractiveness is not None:
            stmt = stmt.where(ComplexModel.attractiveness_score >= selection.min_attractiveness)
        if selection.city:
            stmt = stmt.where(ComplexModel.city == selection.city)
        if selection.tier:
            stmt = stmt.where(ComplexModel.tier == ScoreTier(selection.tier).value)
        if selection.status:
            stmt = stmt.where(ComplexModel.status == selection.status)
        stmt = stmt.order_by(
            func.coalesce(ComplexModel.priority_score, -1).desc(),
            func.coalesce(ComplexModel.attractiveness_score, -1).desc(),
            ComplexModel.id,
        )
        if selection.limit:
            stmt = stmt.limit(selection.limit)

        async with self.session_factory() as session:
            return [row[0] for row in (await session.execute(stmt)).all()]

    async def _launch(self, job: BatchJob, pending: Optional[List[int]] = None) -> str:
        await self.store.put(job)
        self._live[job.job_id] = job
        task = asyncio.create_task(self._run(job, pending), name=f"enrichment-{job.job_id}")
        self._tasks[job.job_id] = task
        task.add_done_callback(lambda _t, job_id=job.job_id: self._forget(job_id))
        return job.job_id

    def _forget(self, job_id: str):
        self._tasks.pop(job_id, None)
        self._live.pop(job_id, None)

    async def start_batch(self, selection: BatchSelection, mode=EnrichmentMode.STANDARD) -> str:
        mode = EnrichmentMode.normalize(mode.value if isinstance(mode, EnrichmentMode) else mode)
        ids = await self.resolve_selection(selection)
        job = BatchJob(
            job_id=f"batch-{uuid.uuid4().hex[:12]}",
            mode=mode,
            complex_ids=ids,
            kind="batch",
            selection=selection.to_dict(),
        )
        logger.info(f"[BATCH] {job.job_id}: {len(ids)} complexes (mode: {mode.value})")
        return await self._launch(job)

    async def start_single(self, complex_id: int, mode=EnrichmentMode.STANDARD) -> str:
        mode = EnrichmentMode.normalize(mode.value if isinstance(mode, EnrichmentMode) else mode)
        job = BatchJob(
            job_id=f"single-{uuid.uuid4().hex[:12]}",
            mode=mode,
            complex_ids=[complex_id],
            kind="single",
        )
        logger.info(f"[SINGLE] {job.job_id}: complex {complex_id} (mode: {mode.value})")
        return await self._launch(job)

    async def get_status(self, job_id: str) -> Optional[Dict[str, Any]]:
        job = await self.store.get(job_id)
        return job.to_dict() if job else None

    async def list_jobs(self, limit: int = 50) -> List[Dict[str, Any]]:
        jobs = await self.store.list(limit)
        summaries = []
        for job in jobs:
            summary = job.to_dict()
            summary.pop("details")
            summaries.append(summary)
        return summaries

    async def cancel(self, job_id: str) -> bool:
        """Request cancellation; the worker stops before its next item."""
        job = self._live.get(job_id)
        if job is None or job.status.is_terminal:
            return False
        job.cancel_requested = True
        logger.info(f"[BATCH] {job_id}: cancellation requested")
        return True

    async def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        return await self.get_status(job_id)

    async def resume_interrupted(self) -> List[str]:
        """
        Re-launch jobs a previous process left queued or running. Only the ids
        without a recorded outcome run again; the counters carry over.
        """
        resumed = []
        for job in await self.store.list_unfinished():
            if job.job_id in self._live:
                continue
            job.current_item = None
            if job.cancel_requested:
                job.status = JobStatus.CANCELLED
                job.completed_at = utcnow()
                await self.store.put(job)
                continue
            done = {d.get("complex_id") for d in job.details}
            remaining = [i for i in job.complex_ids if i not in done]
            logger.info(f"[BATCH] {job.job_id}: resuming, {len(remaining)}/{job.total} remaining")
            await self._launch(job, remaining)
            resumed.append(job.job_id)
        return resumed

    async def shutdown(self):
        """Stop live workers, leaving their jobs running in the store for the next process to resume."""
        self._shutting_down = True
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, job: BatchJob, pending: Optional[List[int]] = None):
        limit = self.config.job_error_limit
        pending = list(job.complex_ids) if pending is None else pending
        job.status = JobStatus.RUNNING
        job.started_at = job.started_at or utcnow()
        await self.store.put(job)

        try:
            for index, complex_id in enumerate(pending):
                if job.cancel_requested:
                    job.status = JobStatus.CANCELLED
                    logger.info(f"[BATCH] {job.job_id}: cancelled after {job.processed}/{job.total}")
                    break

                job.current_item = str(complex_id)
                await self.store.put(job)

                try:
                    result = await self.enricher.enrich_complex(complex_id, job.mode)
                except FATAL_ERRORS as e:
                    job.add_error(f"{complex_id}: persistence unavailable: {e}", limit)
                    job.status = JobStatus.FAILED
                    logger.error(f"[BATCH] {job.job_id}: persistence failure, aborting: {e}")
                    break
                except RateLimitedError as e:
                    job.failed += 1
                    job.add_error(f"{complex_id}: rate limit retries exhausted: {e}", limit)
                    job.details.append({"complex_id": complex_id, "status": "error", "error": "rate_limited"})
                except Exception as e:
                    job.failed += 1
                    job.add_error(f"{complex_id}: {e}", limit)
                    job.details.append({"complex_id": complex_id, "status": "error", "error": str(e)})
                    logger.warning(f"[BATCH] {job.job_id}: complex {complex_id} failed: {e}")
                else:
                    job.succeeded += 1
                    job.fields_updated += result.fields_updated
                    job.details.append(result.to_dict())

                job.processed += 1
                await self.store.put(job)

                if index < len(pending) - 1:
                    await self.sleep(self.config.delay_between_entities)
            else:
                job.status = JobStatus.COMPLETED
        except asyncio.CancelledError:
            if self._shutting_down:
                # Still running as far as the store knows; the in-flight item reruns on resume
                job.current_item = None
                await self.store.put(job)
                logger.warning(f"[BATCH] {job.job_id}: interrupted by shutdown after {job.processed}/{job.total}")
                raise
            job.status = JobStatus.CANCELLED
            job.completed_at = utcnow()
            job.current_item = None
            await self.store.put(job)
            raise
        except Exception as e:
            job.status = JobStatus.FAILED
            job.add_error(f"job aborted: {e}", limit)
            logger.error(f"[BATCH] {job.job_id}: unexpected failure: {e}", exc_info=True)

        job.completed_at = utcnow()
        job.current_item = None
        await self.store.put(job)
        logger.info(
            f"[BATCH] {job.job_id} {job.status.value}: {job.succeeded}/{job.total} enriched, "
            f"{job.failed} failed, {job.fields_updated} fields"
        )
