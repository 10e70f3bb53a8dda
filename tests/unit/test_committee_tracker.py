"""
Unit tests for the CommitteeTracker: first-arrival approvals, monotonic
certainty, idempotent re-polls, hearings and batch backoff.
"""
import json
from datetime import date, timedelta

import pytest
from sqlalchemy import select, func

from src.alerts.alert_engine import AlertEngine
from src.committee.database import CommitteeHearingModel
from src.committee.tracker import CommitteeTracker, next_certainty
from src.complexes.database import ComplexModel
from src.core.ai_client import RateLimitedError, ResearchError
from src.core.models import AlertType
from src.core.utils import utcnow
from src.scoring.service import ScoringService


def answer(local=None, district=None, national=None, hearings=None):
    return json.dumps({
        "local_committee": local or {"discussed": False, "decision": None},
        "district_committee": district or {"discussed": False, "decision": None},
        "national_committee": national or {"discussed": False, "decision": None},
        "upcoming_hearings": hearings or [],
        "confidence": "high",
    })


APPROVED_LOCAL = {"discussed": True, "decision": "approved", "decision_date": "2025-01-10"}


@pytest.fixture
def alerts(session_factory):
    return AlertEngine(session_factory)


@pytest.fixture
def build_tracker(session_factory, alerts, config, sleep, fake_client):
    def _build(*answers):
        research = fake_client(list(answers))
        scoring = ScoringService(session_factory, alert_engine=alerts)
        return CommitteeTracker(session_factory, research, scoring, alerts, config=config, sleep=sleep)
    return _build


async def load(session_factory, complex_id):
    async with session_factory() as session:
        return await session.get(ComplexModel, complex_id)


class TestCertainty:

    def test_boost_is_capped_and_monotonic(self):
        assert next_certainty(1.0, 0.15) == 1.15
        assert next_certainty(1.9, 0.35) == 2.0
        assert next_certainty(2.4, 0.15) == 2.4
        assert next_certainty(None, 0.25) == 1.25


class TestApprovals:

    async def test_first_local_approval(self, build_tracker, alerts, session_factory, make_complex):
        complex_id = await make_complex(status="deposited", actual_premium=10.0)
        tracker = build_tracker(answer(local=APPROVED_LOCAL))

        result = await tracker.track_complex(complex_id)
        assert result["status"] == "success"
        assert result["new_approvals"] == ["local"]
        assert result["certainty_factor"] == 1.15
        assert result["certainty_boost"] == 0.15

        stored = await load(session_factory, complex_id)
        assert stored.local_committee_date == date(2025, 1, 10)
        assert stored.certainty_factor == 1.15
        assert stored.last_committee_check_at is not None
        # Re-scored with the new certainty
        assert stored.attractiveness_score == 32

        approvals = await alerts.list_alerts(alert_type=AlertType.COMMITTEE_APPROVAL)
        assert len(approvals) == 1
        assert approvals[0].severity == "high"
        assert approvals[0].data["committee_type"] == "local"

    async def test_repoll_is_idempotent(self, build_tracker, alerts, session_factory, make_complex):
        complex_id = await make_complex(status="deposited")
        tracker = build_tracker(answer(local=APPROVED_LOCAL), answer(local=APPROVED_LOCAL))

        await tracker.track_complex(complex_id)
        second = await tracker.track_complex(complex_id)

        assert second["new_approvals"] == []
        assert second["certainty_boost"] == 0
        assert (await load(session_factory, complex_id)).certainty_factor == 1.15
        assert await alerts.count_alerts(complex_id, AlertType.COMMITTEE_APPROVAL) == 1

    async def test_multiple_levels_in_one_poll(self, build_tracker, alerts, session_factory, make_complex):
        complex_id = await make_complex(status="deposited")
        district = {"discussed": True, "decision": "אושרה", "decision_date": "2025-02-01"}
        tracker = build_tracker(answer(local=APPROVED_LOCAL, district=district))

        result = await tracker.track_complex(complex_id)
        assert result["new_approvals"] == ["local", "district"]
        assert result["certainty_factor"] == 1.4

        stored = await load(session_factory, complex_id)
        assert stored.district_committee_date == date(2025, 2, 1)
        assert await alerts.count_alerts(complex_id, AlertType.COMMITTEE_APPROVAL) == 2

    async def test_late_detected_approval_gets_full_boost(self, build_tracker, session_factory, make_complex):
        complex_id = await make_complex(status="approved", local_committee_date=date(2024, 6, 1))
        national = {"discussed": True, "decision": "approved", "decision_date": "2023-01-01"}
        tracker = build_tracker(answer(local=APPROVED_LOCAL, national=national))

        result = await tracker.track_complex(complex_id)
        # Local was already recorded; only national counts
        assert result["new_approvals"] == ["national"]
        assert result["certainty_factor"] == 1.35

        stored = await load(session_factory, complex_id)
        assert stored.local_committee_date == date(2024, 6, 1)
        assert stored.national_committee_date == date(2023, 1, 1)

    async def test_certainty_is_capped(self, build_tracker, session_factory, make_complex):
        complex_id = await make_complex(status="deposited", certainty_factor=1.9)
        national = {"discussed": True, "decision": "approved", "decision_date": "2025-01-10"}
        tracker = build_tracker(answer(national=national))

        await tracker.track_complex(complex_id)
        assert (await load(session_factory, complex_id)).certainty_factor == 2.0

    async def test_missing_decision_date_uses_poll_date(self, build_tracker, session_factory, make_complex):
        complex_id = await make_complex(status="deposited")
        tracker = build_tracker(answer(local={"discussed": True, "decision": "approved"}))

        await tracker.track_complex(complex_id, poll_date=date(2025, 2, 14))
        assert (await load(session_factory, complex_id)).local_committee_date == date(2025, 2, 14)

    async def test_other_decisions_change_nothing(self, build_tracker, alerts, session_factory, make_complex):
        complex_id = await make_complex(status="deposited")
        tracker = build_tracker(answer(
            local={"discussed": True, "decision": "deferred"},
            district={"discussed": True, "decision": "rejected"},
        ))

        result = await tracker.track_complex(complex_id)
        assert result["status"] == "success"
        assert result["new_approvals"] == []

        stored = await load(session_factory, complex_id)
        assert stored.certainty_factor == 1.0
        assert stored.local_committee_date is None
        assert stored.status == "deposited"
        assert stored.last_committee_check_at is not None
        assert await alerts.count_alerts(complex_id) == 0


class TestFailedPolls:

    async def test_unparseable_answer_commits_nothing(self, build_tracker, session_factory, make_complex):
        complex_id = await make_complex(status="deposited")
        tracker = build_tracker("Sorry, I could not find anything.")

        result = await tracker.track_complex(complex_id)
        assert result["status"] == "no_data"
        assert (await load(session_factory, complex_id)).last_committee_check_at is None

    async def test_research_error(self, build_tracker, session_factory, make_complex):
        complex_id = await make_complex(status="deposited")
        tracker = build_tracker(ResearchError("timeout"))

        result = await tracker.track_complex(complex_id)
        assert result["status"] == "error"
        assert "timeout" in result["error"]
        assert (await load(session_factory, complex_id)).last_committee_check_at is None

    async def test_rate_limited(self, build_tracker, make_complex):
        complex_id = await make_complex(status="deposited")
        tracker = build_tracker(RateLimitedError("429", retry_after=12))

        result = await tracker.track_complex(complex_id)
        assert result["status"] == "rate_limited"
        assert result["retry_after"] == 12

    async def test_missing_complex(self, build_tracker):
        result = await build_tracker().track_complex(404)
        assert result == {"status": "error", "complex_id": 404, "error": "Complex not found"}


class TestHearings:

    async def test_future_hearing_recorded_once(self, build_tracker, alerts, session_factory, make_complex):
        complex_id = await make_complex(status="deposited")
        upcoming = (date.today() + timedelta(days=20)).isoformat()
        past = (date.today() - timedelta(days=20)).isoformat()
        hearings = [
            {"date": upcoming, "committee": "district", "agenda_item": "Deposit discussion"},
            {"date": past, "committee": "local"},
        ]
        tracker = build_tracker(answer(hearings=hearings), answer(hearings=hearings))

        first = await tracker.track_complex(complex_id)
        second = await tracker.track_complex(complex_id)
        assert first["upcoming_hearings"] == 1
        assert second["upcoming_hearings"] == 0

        async with session_factory() as session:
            count = (await session.execute(select(func.count(CommitteeHearingModel.id)))).scalar_one()
        assert count == 1
        assert await alerts.count_alerts(complex_id, AlertType.UPCOMING_HEARING) == 1

        # Hearings are informational only
        assert (await load(session_factory, complex_id)).certainty_factor == 1.0


class TestTrackAll:

    async def test_selection_order_and_staleness(self, build_tracker, make_complex):
        planning = await make_complex("Planning Block", status="planning")
        deposited = await make_complex("Deposited Block", status="deposited")
        await make_complex("Declared Block", status="declared")
        checked = await make_complex(
            "Checked Block", status="deposited", last_committee_check_at=utcnow() - timedelta(hours=2),
        )

        tracker = build_tracker()
        assert await tracker.select_for_tracking() == [deposited, planning]
        assert await tracker.select_for_tracking(stale_only=False) == [deposited, checked, planning]
        assert await tracker.select_for_tracking(limit=1) == [deposited]

    async def test_rate_limit_backoff(self, build_tracker, sleep, make_complex):
        await make_complex("First Block", status="deposited")
        await make_complex("Second Block", status="deposited")
        await make_complex("Third Block", status="deposited")
        tracker = build_tracker(
            RateLimitedError("429"),
            RateLimitedError("429", retry_after=30),
            answer(local=APPROVED_LOCAL),
        )

        summary = await tracker.track_all()
        assert summary["scanned"] == 3
        assert summary["failed"] == 2
        assert summary["succeeded"] == 1
        assert summary["new_approvals"] == 1
        # base 1s, then doubled but raised to the server's retry-after
        assert sleep.delays == [1.0, 30]

    async def test_one_failure_does_not_stop_the_batch(self, build_tracker, sleep, make_complex):
        await make_complex("First Block", status="deposited")
        await make_complex("Second Block", status="deposited")
        tracker = build_tracker(ResearchError("boom"), answer(local=APPROVED_LOCAL))

        summary = await tracker.track_all()
        assert summary["succeeded"] == 1
        assert summary["failed"] == 1
        assert sleep.delays == [0.0]

    async def test_committee_summary(self, build_tracker, make_complex):
        await make_complex("A", status="deposited")
        await make_complex("B", status="deposited", local_committee_date=date(2025, 1, 1))
        await make_complex("C", status="approved", local_committee_date=date(2025, 1, 1),
                           district_committee_date=date(2025, 2, 1))

        summary = await build_tracker().committee_summary()
        assert summary["local_approved"] == 2
        assert summary["district_approved"] == 1
        assert summary["awaiting_local"] == 1
        assert summary["awaiting_district"] == 1
        assert summary["upcoming_hearings"] == 0
