"""
Unit tests for the batch job stores.
"""
from src.core.models import EnrichmentMode, JobStatus
from src.enrichment.job_store import BatchJob, InMemoryJobStore, SqlJobStore


def make_job(job_id="batch-1", status=JobStatus.RUNNING):
    return BatchJob(job_id=job_id, mode=EnrichmentMode.STANDARD, complex_ids=[4, 8, 15], status=status)


class TestBatchJob:

    def test_to_dict(self):
        job = make_job()
        job.processed = 1
        data = job.to_dict()
        assert data["total"] == 3
        assert data["status"] == "running"
        assert data["mode"] == "standard"
        assert data["processed"] == 1


class TestInMemoryJobStore:

    async def test_snapshots_are_copies(self):
        store = InMemoryJobStore()
        job = make_job()
        await store.put(job)

        job.processed = 2
        stored = await store.get("batch-1")
        assert stored.processed == 0

        stored.errors.append("mutated")
        assert (await store.get("batch-1")).errors == []

    async def test_list_newest_first(self):
        store = InMemoryJobStore()
        first, second = make_job("batch-1"), make_job("batch-2")
        second.created_at = first.created_at.replace(year=first.created_at.year + 1)
        await store.put(first)
        await store.put(second)

        assert [j.job_id for j in await store.list()] == ["batch-2", "batch-1"]
        assert len(await store.list(limit=1)) == 1
        assert await store.get("nope") is None

    async def test_list_unfinished(self):
        store = InMemoryJobStore()
        await store.put(make_job("batch-1", JobStatus.FAILED))
        await store.put(make_job("batch-2", JobStatus.RUNNING))
        await store.put(make_job("batch-3", JobStatus.QUEUED))

        assert {j.job_id for j in await store.list_unfinished()} == {"batch-2", "batch-3"}


class TestSqlJobStore:

    async def test_round_trip(self, session_factory):
        store = SqlJobStore(session_factory)
        job = make_job()
        job.selection = {"tier": "hot"}
        job.errors.append("8: timeout")
        await store.put(job)

        job.processed = 2
        await store.put(job)

        loaded = await store.get("batch-1")
        assert loaded.processed == 2
        assert loaded.status == JobStatus.RUNNING
        assert loaded.mode == EnrichmentMode.STANDARD
        assert loaded.complex_ids == [4, 8, 15]
        assert loaded.selection == {"tier": "hot"}
        assert loaded.errors == ["8: timeout"]

    async def test_list_unfinished(self, session_factory):
        store = SqlJobStore(session_factory)
        first = make_job("batch-1", JobStatus.RUNNING)
        second = make_job("batch-2", JobStatus.QUEUED)
        second.created_at = first.created_at.replace(year=first.created_at.year + 1)
        await store.put(second)
        await store.put(first)
        await store.put(make_job("batch-3", JobStatus.COMPLETED))
        await store.put(make_job("batch-4", JobStatus.CANCELLED))

        assert [j.job_id for j in await store.list_unfinished()] == ["batch-1", "batch-2"]
