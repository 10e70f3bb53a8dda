"""
Unit tests for the BatchOrchestrator: ordering, per-item isolation,
rate-limit failures, cancellation, persistence failures and resume after restart.
"""
import asyncio
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from src.core.ai_client import RateLimitedError
from src.core.data_types import EnrichmentResult
from src.core.models import EnrichmentMode, JobStatus
from src.core.utils import utcnow
from src.enrichment.job_store import BatchJob, InMemoryJobStore, SqlJobStore
from src.enrichment.orchestrator import BatchOrchestrator, BatchSelection


class FakeEnricher:
    """
    Stands in for Enricher. `outcomes` maps a complex id to a list of
    exceptions to raise, in order, before the call succeeds.
    """

    def __init__(self, outcomes=None, on_call=None):
        self.outcomes = {k: list(v) for k, v in (outcomes or {}).items()}
        self.on_call = on_call
        self.calls = []

    async def enrich_complex(self, complex_id, mode):
        self.calls.append((complex_id, mode.value))
        if self.on_call is not None:
            await self.on_call(complex_id)
        pending = self.outcomes.get(complex_id)
        if pending:
            raise pending.pop(0)
        return EnrichmentResult(complex_id=complex_id, mode=mode.value, updated_fields=["status", "developer"])


@pytest.fixture
def build_orchestrator(session_factory, config, sleep):
    def _build(enricher, store=None):
        return BatchOrchestrator(session_factory, enricher, store=store, config=config, sleep=sleep)
    return _build


class TestBatchRun:

    async def test_items_run_in_order_without_repeats(self, build_orchestrator, sleep):
        enricher = FakeEnricher()
        orchestrator = build_orchestrator(enricher)

        job_id = await orchestrator.start_batch(BatchSelection(complex_ids=[3, 1, 3, 2]), "fast")
        status = await orchestrator.wait(job_id)

        assert [c[0] for c in enricher.calls] == [3, 1, 2]
        assert {c[1] for c in enricher.calls} == {"fast"}
        assert status["status"] == "completed"
        assert status["total"] == 3
        assert status["processed"] == 3
        assert status["succeeded"] == 3
        assert status["fields_updated"] == 6
        assert status["current_item"] is None
        assert status["completed_at"] is not None
        assert [d["complex_id"] for d in status["details"]] == [3, 1, 2]
        # Inter-entity delay between items only
        assert sleep.delays == [0.0, 0.0]

    async def test_failed_item_does_not_stop_the_batch(self, build_orchestrator):
        enricher = FakeEnricher({2: [ValueError("bad answer")]})
        orchestrator = build_orchestrator(enricher)

        job_id = await orchestrator.start_batch(BatchSelection(complex_ids=[1, 2, 3]))
        status = await orchestrator.wait(job_id)

        assert status["status"] == "completed"
        assert status["succeeded"] == 2
        assert status["failed"] == 1
        assert status["errors"] == ["2: bad answer"]
        assert status["details"][1] == {"complex_id": 2, "status": "error", "error": "bad answer"}

    async def test_error_list_is_bounded(self, build_orchestrator, config):
        config.job_error_limit = 2
        ids = [1, 2, 3, 4]
        enricher = FakeEnricher({i: [ValueError(f"e{i}")] for i in ids})
        orchestrator = build_orchestrator(enricher)

        status = await orchestrator.wait(await orchestrator.start_batch(BatchSelection(complex_ids=ids)))
        assert status["failed"] == 4
        assert status["errors"] == ["1: e1", "2: e2", "... further errors truncated"]

    async def test_empty_selection_completes(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeEnricher())
        status = await orchestrator.wait(await orchestrator.start_batch(BatchSelection(complex_ids=[])))
        assert status["status"] == "completed"
        assert status["total"] == 0

    async def test_single_job(self, build_orchestrator):
        enricher = FakeEnricher()
        orchestrator = build_orchestrator(enricher)

        job_id = await orchestrator.start_single(7, "standard")
        assert job_id.startswith("single-")
        status = await orchestrator.wait(job_id)
        assert status["kind"] == "single"
        assert enricher.calls == [(7, "standard")]

    async def test_invalid_mode(self, build_orchestrator):
        with pytest.raises(ValueError):
            await build_orchestrator(FakeEnricher()).start_batch(BatchSelection(complex_ids=[1]), "turbo")


class TestRateLimits:

    async def test_exhausted_rate_limit_fails_only_that_item(self, build_orchestrator, sleep):
        # The enricher already spent its per-call retries; the item is not run again
        enricher = FakeEnricher({1: [RateLimitedError("429")]})
        orchestrator = build_orchestrator(enricher)

        status = await orchestrator.wait(await orchestrator.start_batch(BatchSelection(complex_ids=[1, 2])))
        assert [c[0] for c in enricher.calls] == [1, 2]
        assert sleep.delays == [0.0]
        assert status["status"] == "completed"
        assert status["failed"] == 1
        assert status["succeeded"] == 1
        assert status["details"][0] == {"complex_id": 1, "status": "error", "error": "rate_limited"}


class TestCancellation:

    async def test_cancel_between_items(self, build_orchestrator):
        holder = {}

        async def cancel_on_first(complex_id):
            if complex_id == 1:
                assert await orchestrator.cancel(holder["job_id"])

        enricher = FakeEnricher(on_call=cancel_on_first)
        orchestrator = build_orchestrator(enricher)

        holder["job_id"] = await orchestrator.start_batch(BatchSelection(complex_ids=[1, 2, 3]))
        status = await orchestrator.wait(holder["job_id"])

        assert status["status"] == "cancelled"
        assert status["processed"] == 1
        assert status["succeeded"] == 1
        assert [c[0] for c in enricher.calls] == [1]

    async def test_cancel_unknown_or_finished(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeEnricher())
        assert not await orchestrator.cancel("batch-missing")

        job_id = await orchestrator.start_batch(BatchSelection(complex_ids=[1]))
        await orchestrator.wait(job_id)
        assert not await orchestrator.cancel(job_id)


class TestFatalErrors:

    async def test_persistence_failure_fails_the_job(self, build_orchestrator):
        enricher = FakeEnricher({1: [OperationalError("UPDATE complexes", {}, Exception("db down"))]})
        orchestrator = build_orchestrator(enricher)

        status = await orchestrator.wait(await orchestrator.start_batch(BatchSelection(complex_ids=[1, 2])))
        assert status["status"] == "failed"
        assert status["processed"] == 0
        assert [c[0] for c in enricher.calls] == [1]
        assert "persistence unavailable" in status["errors"][0]


class TestSelection:

    async def test_query_filters_and_order(self, build_orchestrator, make_complex):
        now = utcnow()
        a = await make_complex("Alpha", tier="hot", priority_score=60, attractiveness_score=40)
        b = await make_complex("Beta", tier="hot", priority_score=70, attractiveness_score=10,
                               last_enriched_at=now - timedelta(days=1))
        c = await make_complex("Gamma", tier="active", priority_score=30, attractiveness_score=80,
                               last_enriched_at=now - timedelta(days=10))
        d = await make_complex("Delta", city="Other Town")
        orchestrator = build_orchestrator(FakeEnricher())

        assert await orchestrator.resolve_selection(BatchSelection()) == [b, a, c, d]
        assert await orchestrator.resolve_selection(BatchSelection(tier="hot")) == [b, a]
        assert await orchestrator.resolve_selection(BatchSelection(stale_days=5)) == [a, c, d]
        assert await orchestrator.resolve_selection(BatchSelection(min_attractiveness=30)) == [a, c]
        assert await orchestrator.resolve_selection(BatchSelection(city="Other Town")) == [d]
        assert await orchestrator.resolve_selection(BatchSelection(limit=2)) == [b, a]
        assert await orchestrator.resolve_selection(BatchSelection(complex_ids=[c, a], limit=1)) == [c]

    def test_selection_to_dict_drops_unset(self):
        assert BatchSelection(tier="hot", limit=5).to_dict() == {"tier": "hot", "limit": 5}


class TestJobListing:

    async def test_status_and_listing(self, build_orchestrator):
        orchestrator = build_orchestrator(FakeEnricher())
        job_id = await orchestrator.start_batch(BatchSelection(complex_ids=[1]))
        await orchestrator.wait(job_id)

        assert await orchestrator.get_status("batch-missing") is None
        jobs = await orchestrator.list_jobs()
        assert [j["job_id"] for j in jobs] == [job_id]
        assert "details" not in jobs[0]

    async def test_sql_store_keeps_progress(self, build_orchestrator, session_factory):
        store = SqlJobStore(session_factory)
        orchestrator = build_orchestrator(FakeEnricher({2: [ValueError("bad")]}), store=store)

        job_id = await orchestrator.start_batch(BatchSelection(complex_ids=[1, 2]), "full")
        await orchestrator.wait(job_id)

        # A fresh orchestrator sees the persisted state
        reader = build_orchestrator(FakeEnricher(), store=SqlJobStore(session_factory))
        status = await reader.get_status(job_id)
        assert status["status"] == "completed"
        assert status["mode"] == "full"
        assert status["succeeded"] == 1
        assert status["failed"] == 1
        assert len(status["details"]) == 2


class TestResume:

    async def test_resume_runs_only_remaining_items(self, build_orchestrator):
        store = InMemoryJobStore()
        job = BatchJob(job_id="batch-old", mode=EnrichmentMode.FULL, complex_ids=[1, 2, 3],
                       status=JobStatus.RUNNING, processed=1, succeeded=1, fields_updated=2,
                       current_item="2", started_at=utcnow())
        job.details.append({"complex_id": 1, "status": "success"})
        await store.put(job)
        await store.put(BatchJob(job_id="batch-done", mode=EnrichmentMode.FAST, complex_ids=[9],
                                 status=JobStatus.COMPLETED))
        enricher = FakeEnricher()
        orchestrator = build_orchestrator(enricher, store=store)

        assert await orchestrator.resume_interrupted() == ["batch-old"]
        status = await orchestrator.wait("batch-old")

        assert enricher.calls == [(2, "full"), (3, "full")]
        assert status["status"] == "completed"
        assert status["processed"] == 3
        assert status["succeeded"] == 3
        assert status["fields_updated"] == 6
        assert [d["complex_id"] for d in status["details"]] == [1, 2, 3]

    async def test_cancel_requested_job_is_not_resumed(self, build_orchestrator):
        store = InMemoryJobStore()
        await store.put(BatchJob(job_id="batch-old", mode=EnrichmentMode.STANDARD, complex_ids=[1],
                                 status=JobStatus.RUNNING, cancel_requested=True))
        enricher = FakeEnricher()
        orchestrator = build_orchestrator(enricher, store=store)

        assert await orchestrator.resume_interrupted() == []
        assert enricher.calls == []
        assert (await orchestrator.get_status("batch-old"))["status"] == "cancelled"

    async def test_shutdown_then_resume_in_new_process(self, build_orchestrator, session_factory):
        reached = asyncio.Event()

        async def hang_on_second(complex_id):
            if complex_id == 2:
                reached.set()
                await asyncio.Event().wait()

        orchestrator = build_orchestrator(FakeEnricher(on_call=hang_on_second), store=SqlJobStore(session_factory))
        job_id = await orchestrator.start_batch(BatchSelection(complex_ids=[1, 2, 3]))
        await reached.wait()
        await orchestrator.shutdown()

        stored = await orchestrator.get_status(job_id)
        assert stored["status"] == "running"
        assert stored["processed"] == 1
        assert stored["current_item"] is None

        enricher = FakeEnricher()
        restarted = build_orchestrator(enricher, store=SqlJobStore(session_factory))
        assert await restarted.resume_interrupted() == [job_id]
        status = await restarted.wait(job_id)

        assert [c[0] for c in enricher.calls] == [2, 3]
        assert status["status"] == "completed"
        assert status["succeeded"] == 3
