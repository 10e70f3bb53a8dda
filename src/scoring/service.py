"""
Scoring service: computes and persists Priority, Attractiveness and Stress
for stored complexes, and ranks the opportunity surface.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from src.alerts.alert_engine import AlertEngine
from src.complexes.database import ComplexModel, ListingModel
from src.complexes.service import complex_snapshot, get_complex, listing_snapshot
from src.core.models import AlertType, AlertSeverity, ScoreTier
from src.core.utils import utcnow
from src.scoring.attractiveness import AttractivenessScorer, OPPORTUNITY_THRESHOLD
from src.scoring.priority import PriorityScorer
from src.scoring.stress import StressScorer, HIGH_STRESS

logger = logging.getLogger(__name__)


class ScoringService:

    def __init__(self, session_factory: async_sessionmaker, alert_engine: Optional[AlertEngine] = None):
        self.session_factory = session_factory
        self.alert_engine = alert_engine

    async def rescore_complex(self, complex_id: int) -> Optional[Dict[str, Any]]:
        """
        Recompute all three scores for one complex and persist them.
        Returns the score summary, or None if the complex does not exist.
        """
        async with self.session_factory() as session:
            complex_ = await get_complex(session, complex_id, with_listings=True)
            if complex_ is None:
                logger.warning(f"Cannot score complex {complex_id}: not found")
                return None

            previous_iai = complex_.attractiveness_score

            for listing in complex_.listings:
                if listing.is_active:
                    self._apply_listing_stress(listing)

            snapshot = complex_snapshot(complex_)
            stress = StressScorer.aggregate(snapshot.listings)
            iai = AttractivenessScorer.score(snapshot)
            priority = PriorityScorer.score(snapshot, stress)

            complex_.attractiveness_score = iai.score
            complex_.attractiveness_components = iai.to_dict()
            complex_.theoretical_premium_min = iai.theoretical_premium_min
            complex_.theoretical_premium_max = iai.theoretical_premium_max
            complex_.premium_gap = iai.premium_gap
            complex_.priority_score = priority.total
            complex_.priority_components = priority.to_dict()
            complex_.tier = priority.tier.value
            complex_.stress_max = stress["max"]
            complex_.stress_avg = stress["avg"]
            complex_.scored_at = utcnow()
            name, city = complex_.name, complex_.city
            await session.commit()

        summary = {
            "complex_id": complex_id,
            "priority_score": priority.total,
            "tier": priority.tier.value,
            "priority_components": priority.components,
            "attractiveness_score": iai.score,
            "stress_max": stress["max"],
            "stress_avg": stress["avg"],
        }
        logger.debug(f"Scored {name} ({city}): priority={priority.total} iai={iai.score} ssi_max={stress['max']}")

        await self._raise_score_alerts(complex_id, name, city, previous_iai, iai.score, stress)
        return summary

    @staticmethod
    def _apply_listing_stress(listing: ListingModel):
        breakdown = StressScorer.score(listing_snapshot(listing))
        listing.days_on_market = breakdown.days_on_market
        listing.total_price_drop_percent = round(breakdown.price_drop_percent, 2)
        listing.has_urgent_keywords = breakdown.flags.has_urgent_keywords
        listing.urgent_keywords_found = ", ".join(breakdown.flags.urgent_keywords) or None
        listing.is_foreclosure = bool(listing.is_foreclosure or breakdown.flags.is_foreclosure)
        listing.is_inheritance = bool(listing.is_inheritance or breakdown.flags.is_inheritance)
        listing.stress_score = breakdown.total
        listing.stress_time_score = breakdown.time_score
        listing.stress_price_score = breakdown.price_score
        listing.stress_indicator_score = breakdown.indicator_score
        return breakdown

    async def _raise_score_alerts(
        self,
        complex_id: int,
        name: str,
        city: str,
        previous_iai: Optional[int],
        iai: int,
        stress: Dict[str, Any],
    ):
        if self.alert_engine is None:
            return

        if iai >= OPPORTUNITY_THRESHOLD and (previous_iai is None or previous_iai < OPPORTUNITY_THRESHOLD):
            await self.alert_engine.raise_alert(
                complex_id,
                AlertType.OPPORTUNITY_THRESHOLD,
                title=f"🎯 הזדמנות השקעה: {name} ({city}) IAI={iai}",
                message=f"Attractiveness crossed {OPPORTUNITY_THRESHOLD}: {previous_iai or 0} -> {iai}",
                severity=AlertSeverity.HIGH,
                data={"old_iai": previous_iai, "new_iai": iai},
            )

        if stress["max"] >= HIGH_STRESS:
            await self.alert_engine.raise_alert(
                complex_id,
                AlertType.STRESSED_SELLER,
                title=f"😰 מוכר לחוץ: {name} ({city}) SSI={stress['max']}",
                message=f"{stress['count']} active listings, max stress {stress['max']}, avg {stress['avg']}",
                severity=AlertSeverity.MEDIUM,
                data=stress,
            )

    async def rescore_all(self, city: Optional[str] = None) -> Dict[str, Any]:
        """Re-score every complex. Returns counts per tier."""
        async with self.session_factory() as session:
            stmt = select(ComplexModel.id).order_by(ComplexModel.id)
            if city:
                stmt = stmt.where(ComplexModel.city == city)
            ids = [row[0] for row in (await session.execute(stmt)).all()]

        logger.info(f"Re-scoring {len(ids)} complexes")
        summary = {"total": len(ids), "scored": 0, "failed": 0,
                   ScoreTier.HOT.value: 0, ScoreTier.ACTIVE.value: 0, ScoreTier.DORMANT.value: 0}
        for complex_id in ids:
            try:
                result = await self.rescore_complex(complex_id)
            except Exception as e:
                logger.error(f"Scoring failed for complex {complex_id}: {e}", exc_info=True)
                summary["failed"] += 1
                continue
            if result:
                summary["scored"] += 1
                summary[result["tier"]] += 1

        logger.info(
            f"Re-score complete: {summary['hot']} hot, {summary['active']} active, "
            f"{summary['dormant']} dormant, {summary['failed']} failed"
        )
        return summary

    async def rank_opportunities(
        self,
        limit: int = 50,
        tier: Optional[str] = None,
        city: Optional[str] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Ranked opportunity surface: priority desc, attractiveness desc,
        max stress desc, id asc. Unscored complexes sort last.
        """
        async with self.session_factory() as session:
            stmt = select(ComplexModel)
            if tier:
                stmt = stmt.where(ComplexModel.tier == ScoreTier(tier).value)
            if city:
                stmt = stmt.where(ComplexModel.city == city)
            stmt = stmt.order_by(
                func.coalesce(ComplexModel.priority_score, -1).desc(),
                func.coalesce(ComplexModel.attractiveness_score, -1).desc(),
                func.coalesce(ComplexModel.stress_max, -1).desc(),
                ComplexModel.id.asc(),
            ).limit(limit).offset(offset)
            complexes = (await session.execute(stmt)).scalars().all()

        return [
            {
                "id": c.id,
                "name": c.name,
                "city": c.city,
                "status": c.status,
                "tier": c.tier,
                "priority_score": c.priority_score,
                "attractiveness_score": c.attractiveness_score,
                "stress_max": c.stress_max,
                "certainty_factor": c.certainty_factor,
                "priority_components": c.priority_components or {},
            }
            for c in complexes
        ]

    async def record_listing_price(self, listing_id: int, new_price: float) -> Optional[Dict[str, Any]]:
        """
        Record a new asking price for a listing. Every change increments the
        change counter and recomputes the listing's stress; a drop also raises
        a price_drop alert.
        """
        if new_price is None or new_price <= 0:
            raise ValueError(f"Invalid price: {new_price!r}")

        async with self.session_factory() as session:
            result = await session.execute(
                select(ListingModel).options(selectinload(ListingModel.complex)).where(ListingModel.id == listing_id)
            )
            listing = result.scalar_one_or_none()
            if listing is None:
                return None

            old_price = listing.asking_price
            if old_price == new_price:
                return {"listing_id": listing_id, "changed": False, "stress_score": listing.stress_score}

            if listing.original_price is None:
                listing.original_price = old_price or new_price
            listing.asking_price = new_price
            listing.price_changes = (listing.price_changes or 0) + 1
            listing.last_seen = utcnow().date()
            breakdown = self._apply_listing_stress(listing)
            complex_id = listing.complex_id
            name = listing.complex.name if listing.complex else ""
            await session.commit()

        dropped = old_price is not None and new_price < old_price
        drop_percent = round((old_price - new_price) / old_price * 100, 2) if dropped else 0.0
        if dropped and self.alert_engine is not None:
            await self.alert_engine.raise_alert(
                complex_id,
                AlertType.PRICE_DROP,
                title=f"📉 ירידת מחיר: {name} -{drop_percent}%",
                message=f"Listing {listing_id}: {old_price:,.0f} -> {new_price:,.0f}",
                severity=AlertSeverity.MEDIUM if drop_percent < 10 else AlertSeverity.HIGH,
                data={
                    "old_price": old_price,
                    "new_price": new_price,
                    "drop_percent": drop_percent,
                    "total_drop_percent": round(breakdown.price_drop_percent, 2),
                },
                listing_id=listing_id,
            )

        await self.rescore_complex(complex_id)
        return {
            "listing_id": listing_id,
            "changed": True,
            "dropped": dropped,
            "drop_percent": drop_percent,
            "stress_score": breakdown.total,
        }
