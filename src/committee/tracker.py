"""
Committee Tracker.

Polls research for planning-committee decisions and persists the one
transition that matters: the first arrival at "approved" per committee level.
That transition stamps the approval date, raises the certainty factor,
emits one committee_approval alert per (complex, level) and triggers a
re-score. Everything else (pending, deferred, rejected) is observed only.

A failed or unparseable poll commits nothing; the complex stays stale and is
picked up again on the next cycle.
"""
import asyncio
import logging
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select, case, func, or_
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.alerts.alert_engine import AlertEngine
from src.alerts.database import AlertModel
from src.committee.database import CommitteeHearingModel
from src.committee.parser import CommitteeReport, Hearing, parse_committee_report
from src.committee.prompts import COMMITTEE_SYSTEM_PROMPT, build_committee_prompt
from src.complexes.database import ComplexModel
from src.complexes.service import get_complex
from src.core.ai_client import CompletionClient, RateLimitedError, ResearchError
from src.core.config import Settings, settings as default_settings
from src.core.database import insert_ignore
from src.core.models import AlertType, AlertSeverity, CommitteeLevel, PlanningStatus
from src.core.utils import utcnow
from src.scoring.service import ScoringService

logger = logging.getLogger(__name__)

CERTAINTY_BOOST = {
    CommitteeLevel.LOCAL: 0.15,
    CommitteeLevel.DISTRICT: 0.25,
    CommitteeLevel.NATIONAL: 0.35,
}
MAX_CERTAINTY = 2.0

COMMITTEE_NAMES = {
    CommitteeLevel.LOCAL: "ועדה מקומית",
    CommitteeLevel.DISTRICT: "ועדה מחוזית",
    CommitteeLevel.NATIONAL: "ועדה ארצית",
}
PRICE_IMPACT = {
    CommitteeLevel.LOCAL: "10-20%",
    CommitteeLevel.DISTRICT: "15-25%",
    CommitteeLevel.NATIONAL: "20-30%",
}

# Statuses with live committee activity, most likely to move first
TRACKED_STATUSES = [
    PlanningStatus.DEPOSITED,
    PlanningStatus.PRE_DEPOSIT,
    PlanningStatus.APPROVED,
    PlanningStatus.PLANNING,
]


def next_certainty(current: float, boost: float) -> float:
    """Certainty after a boost: capped at MAX_CERTAINTY, never lower than before."""
    current = current if current is not None else 1.0
    return round(max(current, min(MAX_CERTAINTY, current + boost)), 2)


def approval_dedup_key(complex_id: int, level: CommitteeLevel) -> str:
    return f"committee_approval:{complex_id}:{level.value}"


def hearing_dedup_key(complex_id: int, hearing: Hearing) -> str:
    return f"upcoming_hearing:{complex_id}:{hearing.committee.value}:{hearing.hearing_date.isoformat()}"


class CommitteeTracker:

    def __init__(
        self,
        session_factory: async_sessionmaker,
        research: CompletionClient,
        scoring: ScoringService,
        alert_engine: AlertEngine,
        config: Settings = default_settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.research = research
        self.scoring = scoring
        self.alert_engine = alert_engine
        self.config = config
        self.sleep = sleep

    async def poll(self, complex_: ComplexModel) -> Optional[CommitteeReport]:
        """One research call for a complex. Raises ResearchError; returns None if unparseable."""
        prompt = build_committee_prompt(complex_.name, complex_.city, complex_.plan_number, complex_.addresses)
        text = await self.research.query(prompt, system_prompt=COMMITTEE_SYSTEM_PROMPT)
        report = parse_committee_report(text)
        if report is None:
            logger.warning(f"Unparseable committee answer for {complex_.name} ({complex_.city})")
        return report

    async def track_complex(self, complex_id: int, poll_date: Optional[date] = None) -> Dict[str, Any]:
        async with self.session_factory() as session:
            complex_ = await get_complex(session, complex_id)
        if complex_ is None:
            return {"status": "error", "complex_id": complex_id, "error": "Complex not found"}

        try:
            report = await self.poll(complex_)
        except RateLimitedError as e:
            logger.warning(f"Committee poll rate limited: {complex_.name}")
            return {"status": "rate_limited", "complex_id": complex_id, "name": complex_.name,
                    "error": str(e), "retry_after": e.retry_after}
        except ResearchError as e:
            logger.error(f"Committee poll failed: {complex_.name}: {e}")
            return {"status": "error", "complex_id": complex_id, "name": complex_.name, "error": str(e)}

        if report is None:
            return {"status": "no_data", "complex_id": complex_id, "name": complex_.name}

        return await self.apply_report(complex_id, report, poll_date or utcnow().date())

    async def apply_report(self, complex_id: int, report: CommitteeReport, poll_date: date) -> Dict[str, Any]:
        """
        Persist a parsed report in one transaction: approval dates, certainty,
        approval alerts, hearings and hearing alerts. Re-scores afterwards.
        """
        alerts: List[AlertModel] = []
        async with self.session_factory() as session:
            complex_ = await get_complex(session, complex_id)
            if complex_ is None:
                return {"status": "error", "complex_id": complex_id, "error": "Complex not found"}

            old_certainty = complex_.certainty_factor if complex_.certainty_factor is not None else 1.0
            boost = 0.0
            approvals = []
            for level in CommitteeLevel:
                finding = report.finding(level)
                # An existing date means this level was already counted
                if not finding.is_approved or complex_.committee_date(level.value) is not None:
                    continue
                approved_on = finding.decision_date or poll_date
                setattr(complex_, f"{level.value}_committee_date", approved_on)
                boost += CERTAINTY_BOOST[level]
                approvals.append((level, approved_on))

            new_certainty = next_certainty(old_certainty, boost) if approvals else old_certainty
            complex_.certainty_factor = new_certainty
            complex_.last_committee_check_at = utcnow()

            for level, approved_on in approvals:
                alert = await self.alert_engine.raise_alert(
                    complex_id,
                    AlertType.COMMITTEE_APPROVAL,
                    title=f"🎯 אישור {COMMITTEE_NAMES[level]}: {complex_.name} ({complex_.city})",
                    message=(
                        f"התכנית אושרה ב{COMMITTEE_NAMES[level]} בתאריך {approved_on.isoformat()}. "
                        f"צפי לעליית מחירים של {PRICE_IMPACT[level]}!"
                    ),
                    severity=AlertSeverity.HIGH,
                    data={
                        "committee_type": level.value,
                        "approval_date": approved_on.isoformat(),
                        "expected_price_impact": PRICE_IMPACT[level],
                        "certainty_before": old_certainty,
                        "certainty_after": new_certainty,
                    },
                    dedup_key=approval_dedup_key(complex_id, level),
                    dedup_window=None,
                    session=session,
                )
                if alert is not None:
                    alerts.append(alert)

            new_hearings = 0
            for hearing in report.upcoming_hearings:
                if hearing.hearing_date < poll_date:
                    continue
                stmt = insert_ignore(session, CommitteeHearingModel).values(
                    complex_id=complex_id,
                    committee=hearing.committee.value,
                    hearing_date=hearing.hearing_date,
                    agenda_item=hearing.agenda_item,
                    created_at=utcnow(),
                ).returning(CommitteeHearingModel.id)
                if (await session.execute(stmt)).scalar_one_or_none() is None:
                    continue
                new_hearings += 1
                alert = await self.alert_engine.raise_alert(
                    complex_id,
                    AlertType.UPCOMING_HEARING,
                    title=f"📅 ישיבה קרובה: {complex_.name} ({complex_.city})",
                    message=(
                        f"התכנית מתוכננת לדיון ב{COMMITTEE_NAMES[hearing.committee]} "
                        f"בתאריך {hearing.hearing_date.isoformat()}. {hearing.agenda_item or ''}"
                    ).strip(),
                    severity=AlertSeverity.MEDIUM,
                    data={
                        "committee": hearing.committee.value,
                        "date": hearing.hearing_date.isoformat(),
                        "agenda_item": hearing.agenda_item,
                    },
                    dedup_key=hearing_dedup_key(complex_id, hearing),
                    dedup_window=None,
                    session=session,
                )
                if alert is not None:
                    alerts.append(alert)

            name, city = complex_.name, complex_.city
            await session.commit()

        for alert in alerts:
            await self.alert_engine.deliver(alert)

        if approvals:
            logger.info(
                f"Committee approvals for {name} ({city}): "
                f"{', '.join(level.value for level, _ in approvals)}; certainty {old_certainty} -> {new_certainty}"
            )
            await self.scoring.rescore_complex(complex_id)

        return {
            "status": "success",
            "complex_id": complex_id,
            "name": name,
            "city": city,
            "new_approvals": [level.value for level, _ in approvals],
            "upcoming_hearings": new_hearings,
            "certainty_boost": round(new_certainty - old_certainty, 2),
            "certainty_factor": new_certainty,
            "confidence": report.confidence,
        }

    async def select_for_tracking(
        self,
        city: Optional[str] = None,
        limit: Optional[int] = None,
        stale_only: bool = True,
    ) -> List[int]:
        order = case(
            {status.value: rank for rank, status in enumerate(TRACKED_STATUSES, start=1)},
            value=ComplexModel.status,
            else_=len(TRACKED_STATUSES) + 1,
        )
        stmt = select(ComplexModel.id).where(
            ComplexModel.status.in_([s.value for s in TRACKED_STATUSES])
        )
        if city:
            stmt = stmt.where(ComplexModel.city == city)
        if stale_only:
            cutoff = utcnow() - timedelta(days=self.config.committee_stale_days)
            stmt = stmt.where(or_(
                ComplexModel.last_committee_check_at.is_(None),
                ComplexModel.last_committee_check_at < cutoff,
            ))
        stmt = stmt.order_by(order, ComplexModel.id)
        if limit:
            stmt = stmt.limit(limit)

        async with self.session_factory() as session:
            return [row[0] for row in (await session.execute(stmt)).all()]

    async def track_all(
        self,
        city: Optional[str] = None,
        limit: Optional[int] = None,
        stale_only: bool = True,
    ) -> Dict[str, Any]:
        ids = await self.select_for_tracking(city, limit, stale_only)
        logger.info(f"Committee tracker: scanning {len(ids)} complexes")

        results = {
            "total": len(ids),
            "scanned": 0,
            "succeeded": 0,
            "failed": 0,
            "new_approvals": 0,
            "upcoming_hearings": 0,
            "details": [],
        }
        rate_limit_streak = 0

        for i, complex_id in enumerate(ids):
            try:
                result = await self.track_complex(complex_id)
            except Exception as e:
                logger.error(f"Committee tracking failed: {complex_id}: {e}", exc_info=True)
                result = {"status": "error", "complex_id": complex_id, "error": str(e)}

            results["scanned"] += 1
            results["details"].append(result)
            if result["status"] == "success":
                results["succeeded"] += 1
                results["new_approvals"] += len(result["new_approvals"])
                results["upcoming_hearings"] += result["upcoming_hearings"]
                rate_limit_streak = 0
            else:
                results["failed"] += 1

            if result["status"] == "rate_limited":
                rate_limit_streak += 1
                backoff = self.config.rate_limit_backoff_base * (2 ** (rate_limit_streak - 1))
                backoff = max(backoff, result.get("retry_after") or 0)
                logger.warning(f"Rate limited; backing off {backoff:.1f}s")
                await self.sleep(backoff)
            elif i < len(ids) - 1:
                await self.sleep(self.config.committee_poll_delay)

        logger.info(
            f"Committee tracking complete: {results['new_approvals']} new approvals, "
            f"{results['upcoming_hearings']} upcoming hearings, {results['failed']} failed"
        )
        return results

    async def committee_summary(self) -> Dict[str, int]:
        def count_if(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        stmt = select(
            count_if(ComplexModel.local_committee_date.is_not(None)),
            count_if(ComplexModel.district_committee_date.is_not(None)),
            count_if(ComplexModel.national_committee_date.is_not(None)),
            count_if((ComplexModel.status == PlanningStatus.DEPOSITED.value)
                     & ComplexModel.local_committee_date.is_(None)),
            count_if(ComplexModel.local_committee_date.is_not(None)
                     & ComplexModel.district_committee_date.is_(None)
                     & (ComplexModel.status != PlanningStatus.APPROVED.value)),
        ).where(ComplexModel.status.not_in([PlanningStatus.UNKNOWN.value, PlanningStatus.CONSTRUCTION.value]))

        since = utcnow() - timedelta(days=30)
        hearings_stmt = select(func.count(AlertModel.id)).where(
            AlertModel.alert_type == AlertType.UPCOMING_HEARING.value,
            AlertModel.created_at > since,
            AlertModel.is_read.is_(False),
        )

        async with self.session_factory() as session:
            row = (await session.execute(stmt)).one()
            upcoming = (await session.execute(hearings_stmt)).scalar_one()

        return {
            "local_approved": int(row[0]),
            "district_approved": int(row[1]),
            "national_approved": int(row[2]),
            "awaiting_local": int(row[3]),
            "awaiting_district": int(row[4]),
            "upcoming_hearings": int(upcoming),
        }
