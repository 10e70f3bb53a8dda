"""
Integration tests for the pipeline API.
Routes run against a real SQLite database; the enrichment orchestrator and
discovery are mocked so no background work outlives a request.
"""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from src.alerts.alert_engine import AlertEngine
from src.alerts.database import AlertModel
from src.committee.tracker import CommitteeTracker
from src.complexes.database import ComplexModel, ListingModel
from src.core.config import settings
from src.core.database import Base, build_session_factory
from src.core.models import EnrichmentMode, JobStatus
from src.enrichment.job_store import BatchJob
from src.scoring.service import ScoringService
from src.web.app import app
from src.workflow import Pipeline

AUTH = (settings.api_username, settings.api_password)

JOB = BatchJob(
    job_id="batch-123", mode=EnrichmentMode.FAST, complex_ids=[1, 2], status=JobStatus.RUNNING, processed=1,
).to_dict()


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "api.db"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    engine.dispose()
    return path


@pytest.fixture
def seed(db_path):
    """Insert ORM rows synchronously and return their ids."""
    engine = create_engine(f"sqlite:///{db_path}")

    def _add(*rows):
        with Session(engine, expire_on_commit=False) as session:
            session.add_all(rows)
            session.commit()
            return [row.id for row in rows]

    yield _add
    engine.dispose()


@pytest.fixture
def pipeline(db_path, config, sleep, fake_client):
    factory = build_session_factory(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    alerts = AlertEngine(factory)
    scoring = ScoringService(factory, alert_engine=alerts)
    committee = CommitteeTracker(factory, fake_client(), scoring, alerts, config=config, sleep=sleep)

    orchestrator = MagicMock()
    orchestrator.start_batch = AsyncMock(return_value="batch-123")
    orchestrator.start_single = AsyncMock(return_value="single-456")
    orchestrator.get_status = AsyncMock(side_effect=lambda job_id: JOB if job_id == "batch-123" else None)
    orchestrator.list_jobs = AsyncMock(return_value=[JOB])
    orchestrator.cancel = AsyncMock(return_value=False)

    discovery = MagicMock()
    discovery.discover = AsyncMock(return_value={"scanned": 1})

    app.state.pipeline = Pipeline(
        session_factory=factory,
        alerts=alerts,
        scoring=scoring,
        enricher=MagicMock(),
        orchestrator=orchestrator,
        committee=committee,
        discovery=discovery,
    )
    yield app.state.pipeline
    app.state.pipeline = None


@pytest.fixture
def client():
    return TestClient(app)


def complex_row(name="Central Block", **fields):
    fields.setdefault("status", "deposited")
    return ComplexModel(name=name, name_key=name.lower(), city=fields.pop("city", "Example City"), **fields)


class TestAuthAndHealth:

    def test_requires_auth(self, client):
        assert client.get("/health").status_code == 401
        assert client.get("/api/opportunities/", auth=("admin", "wrong")).status_code == 401

    def test_health(self, client, pipeline):
        response = client.get("/health", auth=AUTH)
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "pipeline": True}

    def test_unconfigured_pipeline(self, client):
        app.state.pipeline = None
        response = client.get("/api/opportunities/", auth=AUTH)
        assert response.status_code == 503


class TestOpportunities:

    def test_ranked_list(self, client, pipeline, seed):
        low, high, mid = seed(
            complex_row("Quiet Corner", priority_score=20, tier="dormant"),
            complex_row("Central Block", priority_score=66, tier="hot"),
            complex_row("Harbour Towers", priority_score=50, tier="hot"),
        )
        response = client.get("/api/opportunities/?limit=2", auth=AUTH)
        assert response.status_code == 200
        body = response.json()
        assert [c["id"] for c in body["data"]] == [high, mid]
        assert body["total"] == 3
        assert body["limit"] == 2

        hot = client.get("/api/opportunities/?tier=hot", auth=AUTH).json()
        assert hot["total"] == 2

        assert client.get("/api/opportunities/?tier=boiling", auth=AUTH).status_code == 400

    def test_detail(self, client, pipeline, seed):
        [complex_id] = seed(complex_row())
        seed(ListingModel(complex_id=complex_id, asking_price=2_000_000.0))

        body = client.get(f"/api/opportunities/{complex_id}", auth=AUTH).json()
        assert body["name"] == "Central Block"
        assert len(body["listings"]) == 1
        assert client.get("/api/opportunities/999", auth=AUTH).status_code == 404

    def test_rescore(self, client, pipeline, seed):
        [complex_id] = seed(complex_row(actual_premium=10.0))

        response = client.post(f"/api/opportunities/{complex_id}/rescore", auth=AUTH)
        assert response.status_code == 200
        assert response.json()["data"]["attractiveness_score"] == 28
        assert client.post("/api/opportunities/999/rescore", auth=AUTH).status_code == 404

    def test_listing_price(self, client, pipeline, seed):
        [complex_id] = seed(complex_row())
        [listing_id] = seed(ListingModel(complex_id=complex_id, asking_price=2_000_000.0, is_active=True))

        response = client.post(f"/api/opportunities/listings/{listing_id}/price",
                                json={"asking_price": 1_800_000}, auth=AUTH)
        assert response.status_code == 200
        assert response.json()["data"]["dropped"] is True

        drops = client.get("/api/alerts/?alert_type=price_drop", auth=AUTH).json()
        assert len(drops["data"]) == 1

        bad = client.post(f"/api/opportunities/listings/{listing_id}/price", json={"asking_price": 0}, auth=AUTH)
        assert bad.status_code == 400
        missing = client.post("/api/opportunities/listings/999/price", json={"asking_price": 1}, auth=AUTH)
        assert missing.status_code == 404


class TestAlerts:

    def test_feed_and_read_state(self, client, pipeline, seed):
        [complex_id] = seed(complex_row())
        alert_id, _ = seed(
            AlertModel(complex_id=complex_id, alert_type="new_entity", severity="high", title="New", data={}),
            AlertModel(complex_id=complex_id, alert_type="price_drop", severity="medium", title="Drop", data={}),
        )

        assert len(client.get("/api/alerts/", auth=AUTH).json()["data"]) == 2
        assert client.get("/api/alerts/?alert_type=nope", auth=AUTH).status_code == 400

        assert client.patch(f"/api/alerts/{alert_id}/read", auth=AUTH).status_code == 200
        assert client.patch("/api/alerts/999/read", auth=AUTH).status_code == 404

        unread = client.get("/api/alerts/?unread_only=true", auth=AUTH).json()["data"]
        assert [a["title"] for a in unread] == ["Drop"]

        assert client.post("/api/alerts/read-all", auth=AUTH).json()["count"] == 1


class TestCommittee:

    def test_track_one(self, client, pipeline, seed):
        [complex_id] = seed(complex_row(actual_premium=10.0))
        pipeline.committee.research.answers.append(json.dumps({
            "local_committee": {"discussed": True, "decision": "approved", "decision_date": "2025-01-10"},
        }))

        response = client.post(f"/api/committee/track/{complex_id}", auth=AUTH)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["new_approvals"] == ["local"]
        assert data["certainty_factor"] == 1.15

        summary = client.get("/api/committee/summary", auth=AUTH).json()["data"]
        assert summary["local_approved"] == 1

        assert client.post("/api/committee/track/999", auth=AUTH).status_code == 404


class TestDiscovery:

    def test_run_localities(self, client, pipeline):
        response = client.post("/api/discovery/run", json={"localities": ["Example City"]}, auth=AUTH)
        assert response.status_code == 200
        assert response.json()["status"] == "accepted"
        pipeline.discovery.discover.assert_awaited_once_with(["Example City"])

    def test_unknown_region(self, client, pipeline):
        response = client.post("/api/discovery/run", json={"region": "Atlantis"}, auth=AUTH)
        assert response.status_code == 400

    def test_regions(self, client, pipeline):
        body = client.get("/api/discovery/regions", auth=AUTH).json()
        assert body["total"] == len(body["data"])
        assert any(r["region"] == "גוש דן" for r in body["data"])


class TestEnrichment:

    def test_start_batch(self, client, pipeline):
        response = client.post("/api/enrichment/jobs", json={"tier": "hot", "mode": "fast"}, auth=AUTH)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "accepted"
        assert body["job_id"] == "batch-123"
        assert body["total"] == 2

        selection, mode = pipeline.orchestrator.start_batch.await_args.args
        assert selection.tier == "hot"
        assert mode == EnrichmentMode.FAST

    def test_invalid_requests(self, client, pipeline):
        assert client.post("/api/enrichment/jobs", json={"mode": "turbo"}, auth=AUTH).status_code == 400
        assert client.post("/api/enrichment/jobs", json={"tier": "boiling"}, auth=AUTH).status_code == 400
        assert client.post("/api/enrichment/complexes/999", auth=AUTH).status_code == 404

    def test_single(self, client, pipeline, seed):
        [complex_id] = seed(complex_row())
        response = client.post(f"/api/enrichment/complexes/{complex_id}", json={"mode": "full"}, auth=AUTH)
        assert response.json()["job_id"] == "single-456"
        pipeline.orchestrator.start_single.assert_awaited_once_with(complex_id, EnrichmentMode.FULL)

    def test_job_status(self, client, pipeline):
        body = client.get("/api/enrichment/jobs/batch-123", auth=AUTH).json()
        assert body["data"]["status"] == "running"
        assert body["data"]["processed"] == 1
        assert client.get("/api/enrichment/jobs/batch-missing", auth=AUTH).status_code == 404

        listing = client.get("/api/enrichment/jobs", auth=AUTH).json()
        assert listing["total"] == 1

    def test_cancel_finished_job(self, client, pipeline):
        assert client.post("/api/enrichment/jobs/batch-123/cancel", auth=AUTH).status_code == 409
        assert client.post("/api/enrichment/jobs/batch-missing/cancel", auth=AUTH).status_code == 404
