"""
Core lightweight data types for the opportunity pipeline.

These are transfer objects (Dataclasses), NOT database models.
For SQLAlchemy ORM models, see src/<module>/database.py.

The scoring engine works only on snapshots, so it can be exercised without a
database and fed by any caller that can fill these fields.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Dict, Optional, Any

from src.core.utils import utcnow


@dataclass
class ListingSnapshot:
    """A market offer as seen by the scoring engine."""
    id: Optional[int] = None
    asking_price: Optional[float] = None
    original_price: Optional[float] = None
    days_on_market: int = 0
    first_seen: Optional[date] = None
    price_changes: int = 0
    total_price_drop_percent: float = 0.0
    description: str = ""
    is_foreclosure: bool = False
    is_inheritance: bool = False
    is_active: bool = True
    stress_score: Optional[int] = None


@dataclass
class ComplexSnapshot:
    """Denormalized view of a complex and its related records."""
    id: Optional[int] = None
    name: str = ""
    city: str = ""
    status: str = "unknown"
    plan_stage: Optional[str] = None
    existing_units: Optional[int] = None
    planned_units: Optional[int] = None
    multiplier: Optional[float] = None
    developer: Optional[str] = None
    developer_strength: str = "unknown"
    developer_risk_level: str = "unknown"
    news_sentiment: str = "unknown"
    has_negative_news: bool = False
    signature_percent: Optional[float] = None
    actual_premium: Optional[float] = None
    certainty_factor: float = 1.0
    transaction_count: int = 0
    has_enforcement_cases: bool = False
    is_receivership: bool = False
    has_bankruptcy_proceedings: bool = False
    listings: List[ListingSnapshot] = field(default_factory=list)

    @property
    def active_listings(self) -> List[ListingSnapshot]:
        return [l for l in self.listings if l.is_active]

    @property
    def effective_multiplier(self) -> Optional[float]:
        if self.multiplier:
            return self.multiplier
        if self.existing_units and self.planned_units:
            return self.planned_units / self.existing_units
        return None


@dataclass
class DiscoveryCandidate:
    """One complex proposed by a discovery research call, already normalized."""
    name: str
    addresses: Optional[str] = None
    existing_units: Optional[int] = None
    planned_units: Optional[int] = None
    developer: Optional[str] = None
    status: str = "declared"
    plan_number: Optional[str] = None
    declaration_date: Optional[date] = None
    source: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class EnrichmentResult:
    """Outcome of enriching one complex."""
    complex_id: int
    name: str = ""
    city: str = ""
    mode: str = "standard"
    status: str = "success"  # success, partial, no_data, error
    updated_fields: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    duration_ms: int = 0
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def fields_updated(self) -> int:
        return len(self.updated_fields)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "complex_id": self.complex_id,
            "name": self.name,
            "city": self.city,
            "mode": self.mode,
            "status": self.status,
            "fields_updated": self.fields_updated,
            "updated_fields": list(self.updated_fields),
            "sources": list(self.sources),
            "warnings": list(self.warnings),
            "duration_ms": self.duration_ms,
        }
