"""Public service interface for the Complexes module.

Other modules should import from here, not from complexes.database directly.
Functions take the caller's session so they compose into one transaction.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.complexes.database import ComplexModel, ListingModel
from src.core.data_types import ComplexSnapshot, ListingSnapshot
from src.core.models import PlanningStatus
from src.discovery.fuzzy_matcher import normalize_locality, normalize_name

logger = logging.getLogger(__name__)

# Columns an enrichment patch may never write. Committee dates and certainty
# belong to the committee tracker; scores belong to the scoring service.
PROTECTED_FIELDS = {
    "id", "name", "name_key", "city", "created_at", "discovery_source",
    "local_committee_date", "district_committee_date", "national_committee_date",
    "certainty_factor", "last_committee_check_at",
    "priority_score", "priority_components", "tier",
    "attractiveness_score", "attractiveness_components",
    "stress_max", "stress_avg", "scored_at",
}


async def existing_names(session: AsyncSession, city: str) -> List[str]:
    """Names of all complexes stored under the canonical locality."""
    result = await session.execute(
        select(ComplexModel.name).where(ComplexModel.city == normalize_locality(city))
    )
    return [row[0] for row in result.all()]


async def get_complex(session: AsyncSession, complex_id: int, with_listings: bool = False) -> Optional[ComplexModel]:
    stmt = select(ComplexModel).where(ComplexModel.id == complex_id)
    if with_listings:
        stmt = stmt.options(selectinload(ComplexModel.listings))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def insert_complex(session: AsyncSession, name: str, city: str, **fields: Any) -> Optional[int]:
    """
    Insert a new complex. Returns its id, or None when (name_key, city)
    already exists; the unique constraint is the final arbiter.
    The session is committed on success and rolled back on a duplicate.
    """
    complex_ = ComplexModel(
        name=name.strip(),
        name_key=normalize_name(name),
        city=normalize_locality(city),
        **fields,
    )
    session.add(complex_)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.debug(f"Complex already exists: {name} in {city}")
        return None
    return complex_.id


def listing_snapshot(listing: ListingModel) -> ListingSnapshot:
    return ListingSnapshot(
        id=listing.id,
        asking_price=listing.asking_price,
        original_price=listing.original_price,
        days_on_market=listing.days_on_market or 0,
        first_seen=listing.first_seen,
        price_changes=listing.price_changes or 0,
        total_price_drop_percent=listing.total_price_drop_percent or 0.0,
        description=listing.description_snippet or "",
        is_foreclosure=bool(listing.is_foreclosure),
        is_inheritance=bool(listing.is_inheritance),
        is_active=bool(listing.is_active),
        stress_score=listing.stress_score,
    )


def complex_snapshot(complex_: ComplexModel) -> ComplexSnapshot:
    """Denormalize a loaded complex (listings must be loaded) for scoring."""
    return ComplexSnapshot(
        id=complex_.id,
        name=complex_.name,
        city=complex_.city,
        status=complex_.status or PlanningStatus.UNKNOWN.value,
        plan_stage=complex_.plan_stage,
        existing_units=complex_.existing_units,
        planned_units=complex_.planned_units,
        multiplier=complex_.multiplier,
        developer=complex_.developer,
        developer_strength=complex_.developer_strength or "unknown",
        developer_risk_level=complex_.developer_risk_level or "unknown",
        news_sentiment=complex_.news_sentiment or "unknown",
        has_negative_news=bool(complex_.has_negative_news),
        signature_percent=complex_.signature_percent,
        actual_premium=complex_.actual_premium,
        certainty_factor=complex_.certainty_factor if complex_.certainty_factor is not None else 1.0,
        transaction_count=complex_.transaction_count or 0,
        has_enforcement_cases=bool(complex_.has_enforcement_cases),
        is_receivership=bool(complex_.is_receivership),
        has_bankruptcy_proceedings=bool(complex_.has_bankruptcy_proceedings),
        listings=[listing_snapshot(l) for l in complex_.listings],
    )


def apply_patch(complex_: ComplexModel, patch: Dict[str, Any]) -> List[str]:
    """
    Write a field patch onto a complex. Protected and unknown columns are
    skipped, None values never overwrite. Returns the names of changed fields.
    """
    columns = set(ComplexModel.__table__.columns.keys())
    changed = []
    for key, value in patch.items():
        if key in PROTECTED_FIELDS or key not in columns or value is None:
            continue
        if getattr(complex_, key) != value:
            setattr(complex_, key, value)
            changed.append(key)
    return changed
