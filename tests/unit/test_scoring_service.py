"""
Unit tests for the ScoringService: persistence, score alerts, ranking and
listing price updates.
"""
import pytest

from src.alerts.alert_engine import AlertEngine
from src.complexes.database import ComplexModel, ListingModel
from src.core.models import AlertType
from src.scoring.service import ScoringService


@pytest.fixture
def alerts(session_factory):
    return AlertEngine(session_factory)


@pytest.fixture
def scoring(session_factory, alerts):
    return ScoringService(session_factory, alert_engine=alerts)


class TestRescore:

    async def test_missing_complex(self, scoring):
        assert await scoring.rescore_complex(999) is None

    async def test_scores_are_persisted(self, scoring, session_factory, make_complex):
        complex_id = await make_complex(status="deposited", actual_premium=10.0)
        summary = await scoring.rescore_complex(complex_id)

        assert summary["attractiveness_score"] == 28
        assert summary["priority_score"] == 53
        assert summary["tier"] == "hot"

        async with session_factory() as session:
            stored = await session.get(ComplexModel, complex_id)
        assert stored.attractiveness_score == 28
        assert stored.priority_score == 53
        assert stored.tier == "hot"
        assert stored.theoretical_premium_min == 35
        assert stored.premium_gap == 32.5
        assert stored.priority_components["velocity"] == 16
        assert stored.scored_at is not None

    async def test_rescore_is_a_pure_recomputation(self, scoring, make_complex):
        complex_id = await make_complex(status="deposited", actual_premium=10.0)
        first = await scoring.rescore_complex(complex_id)
        second = await scoring.rescore_complex(complex_id)
        assert first == second


class TestScoreAlerts:

    async def test_opportunity_threshold_crossing_alerts_once(self, scoring, alerts, make_complex):
        complex_id = await make_complex(
            status="construction", actual_premium=-50.0, certainty_factor=2.0,
            developer="Acme", developer_strength="strong", signature_percent=95, multiplier=4.0,
        )
        summary = await scoring.rescore_complex(complex_id)
        assert summary["attractiveness_score"] == 100

        await scoring.rescore_complex(complex_id)
        assert await alerts.count_alerts(complex_id, AlertType.OPPORTUNITY_THRESHOLD) == 1

    async def test_stressed_seller(self, scoring, alerts, session_factory, make_complex, make_listing):
        complex_id = await make_complex(status="planning")
        listing_id = await make_listing(
            complex_id,
            asking_price=1_600_000.0,
            original_price=2_000_000.0,
            days_on_market=130,
            description_snippet="מכירה דחופה, כונס נכסים",
        )
        summary = await scoring.rescore_complex(complex_id)
        assert summary["stress_max"] == 100

        async with session_factory() as session:
            listing = await session.get(ListingModel, listing_id)
        assert listing.stress_score == 100
        assert listing.is_foreclosure
        assert listing.has_urgent_keywords

        assert await alerts.count_alerts(complex_id, AlertType.STRESSED_SELLER) == 1

    async def test_calm_complex_raises_nothing(self, scoring, alerts, make_complex):
        complex_id = await make_complex(status="planning")
        await scoring.rescore_complex(complex_id)
        assert await alerts.count_alerts(complex_id) == 0


class TestRanking:

    async def test_rank_order_and_tiers(self, scoring, make_complex):
        quiet = await make_complex("Quiet Corner", status="unknown")
        deposited = await make_complex("Central Block", status="deposited", actual_premium=10.0)
        approved = await make_complex("Harbour Towers", status="approved", actual_premium=0.0)

        summary = await scoring.rescore_all()
        assert summary["scored"] == 3
        assert summary["hot"] == 2
        assert summary["dormant"] == 1

        ranked = await scoring.rank_opportunities()
        assert [r["id"] for r in ranked] == [approved, deposited, quiet]
        assert ranked[0]["priority_score"] == 66

        hot = await scoring.rank_opportunities(tier="hot")
        assert {r["id"] for r in hot} == {approved, deposited}

    async def test_unscored_complexes_sort_last(self, scoring, make_complex):
        unscored = await make_complex("Quiet Corner", status="unknown")
        scored = await make_complex("Central Block", status="deposited", actual_premium=10.0)
        await scoring.rescore_complex(scored)

        ranked = await scoring.rank_opportunities()
        assert [r["id"] for r in ranked] == [scored, unscored]

    async def test_city_filter(self, scoring, make_complex):
        await make_complex("Central Block", city="Example City")
        other = await make_complex("Central Block", city="Other Town")
        await scoring.rescore_all(city="Other Town")

        ranked = await scoring.rank_opportunities(city="Other Town")
        assert [r["id"] for r in ranked] == [other]


class TestListingPrice:

    async def test_price_drop(self, scoring, alerts, session_factory, make_complex, make_listing):
        complex_id = await make_complex(status="planning")
        listing_id = await make_listing(complex_id, asking_price=2_000_000.0)

        result = await scoring.record_listing_price(listing_id, 1_800_000.0)
        assert result["changed"]
        assert result["dropped"]
        assert result["drop_percent"] == 10.0
        assert result["stress_score"] == 30

        async with session_factory() as session:
            listing = await session.get(ListingModel, listing_id)
        assert listing.original_price == 2_000_000.0
        assert listing.price_changes == 1

        drops = await alerts.list_alerts(alert_type=AlertType.PRICE_DROP)
        assert len(drops) == 1
        assert drops[0].severity == "high"
        assert drops[0].listing_id == listing_id

    async def test_unchanged_and_increased_price(self, scoring, alerts, session_factory, make_complex, make_listing):
        complex_id = await make_complex(status="planning")
        listing_id = await make_listing(complex_id, asking_price=2_000_000.0)

        unchanged = await scoring.record_listing_price(listing_id, 2_000_000.0)
        assert unchanged["changed"] is False

        raised = await scoring.record_listing_price(listing_id, 2_100_000.0)
        assert raised["dropped"] is False
        assert await alerts.count_alerts(complex_id, AlertType.PRICE_DROP) == 0

        # A rise still counts as a price change; an unchanged price does not
        async with session_factory() as session:
            listing = await session.get(ListingModel, listing_id)
        assert listing.price_changes == 1

    async def test_price_back_above_original_clears_drop(self, scoring, session_factory, make_complex, make_listing):
        complex_id = await make_complex(status="planning")
        listing_id = await make_listing(complex_id, asking_price=2_000_000.0)

        await scoring.record_listing_price(listing_id, 1_800_000.0)
        result = await scoring.record_listing_price(listing_id, 2_100_000.0)

        async with session_factory() as session:
            listing = await session.get(ListingModel, listing_id)
        assert listing.total_price_drop_percent == 0.0
        assert listing.stress_price_score == 0
        # Only the repeated-change indicator remains
        assert listing.stress_indicator_score == 5
        assert result["stress_score"] == listing.stress_score

    async def test_invalid_and_unknown(self, scoring):
        with pytest.raises(ValueError):
            await scoring.record_listing_price(1, 0)
        assert await scoring.record_listing_price(12345, 1_000_000.0) is None
