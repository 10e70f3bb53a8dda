"""
Core enums for the opportunity pipeline.

NOTE: These are NOT database models. For SQLAlchemy ORM models, see each module's database.py:
  - ComplexModel/ListingModel → src/complexes/database.py
  - AlertModel → src/alerts/database.py
  - CommitteeHearingModel → src/committee/database.py
  - BatchJobRecord → src/enrichment/database.py

Research engines answer in free text (English or Hebrew). Every enum that is
filled from such text has a `normalize` classmethod; it is the only way
external values enter the system.
"""
from enum import Enum
from typing import Optional


def _clean(value) -> str:
    if value is None:
        return ""
    return str(value).strip().lower().replace("-", "_")


class PlanningStatus(str, Enum):
    DECLARED = "declared"
    PLANNING = "planning"
    PRE_DEPOSIT = "pre_deposit"
    DEPOSITED = "deposited"
    APPROVED = "approved"
    CONSTRUCTION = "construction"
    PERMIT = "permit"
    UNKNOWN = "unknown"

    @classmethod
    def normalize(cls, value, default: "PlanningStatus" = None) -> "PlanningStatus":
        """Map an English or Hebrew status word onto the enum."""
        default = default or cls.UNKNOWN
        text = _clean(value)
        if not text:
            return default
        for member in cls:
            if member.value == text:
                return member
        return _PLANNING_STATUS_WORDS.get(text, default)


_PLANNING_STATUS_WORDS = {
    "הוכרז": PlanningStatus.DECLARED,
    "הוכרזה": PlanningStatus.DECLARED,
    "בתכנון": PlanningStatus.PLANNING,
    "תכנון": PlanningStatus.PLANNING,
    "להפקדה": PlanningStatus.PRE_DEPOSIT,
    "הופקד": PlanningStatus.DEPOSITED,
    "הופקדה": PlanningStatus.DEPOSITED,
    "אושר": PlanningStatus.APPROVED,
    "אושרה": PlanningStatus.APPROVED,
    "בביצוע": PlanningStatus.CONSTRUCTION,
    "היתר": PlanningStatus.PERMIT,
    "submitted": PlanningStatus.PRE_DEPOSIT,
    "pre deposit": PlanningStatus.PRE_DEPOSIT,
    "in_planning": PlanningStatus.PLANNING,
    "under_construction": PlanningStatus.CONSTRUCTION,
}


class CommitteeLevel(str, Enum):
    LOCAL = "local"
    DISTRICT = "district"
    NATIONAL = "national"


class CommitteeDecision(str, Enum):
    NOT_DISCUSSED = "not_discussed"
    PENDING = "pending"
    DEFERRED = "deferred"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def normalize(cls, value) -> Optional["CommitteeDecision"]:
        """Returns None for missing or unrecognised decisions."""
        text = _clean(value)
        if not text or text == "null":
            return None
        for member in cls:
            if member.value == text:
                return member
        return _DECISION_WORDS.get(text)


_DECISION_WORDS = {
    "אושר": CommitteeDecision.APPROVED,
    "אושרה": CommitteeDecision.APPROVED,
    "נדחה": CommitteeDecision.REJECTED,
    "נדחתה": CommitteeDecision.REJECTED,
    "נדחה להמשך דיון": CommitteeDecision.DEFERRED,
    "הוחזר": CommitteeDecision.DEFERRED,
    "ממתין": CommitteeDecision.PENDING,
    "בדיון": CommitteeDecision.PENDING,
}


class AlertType(str, Enum):
    NEW_ENTITY = "new_entity"
    COMMITTEE_APPROVAL = "committee_approval"
    UPCOMING_HEARING = "upcoming_hearing"
    OPPORTUNITY_THRESHOLD = "opportunity_threshold"
    PRICE_DROP = "price_drop"
    STRESSED_SELLER = "stressed_seller"


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    INFO = "info"


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class EnrichmentMode(str, Enum):
    FAST = "fast"
    STANDARD = "standard"
    FULL = "full"

    @classmethod
    def normalize(cls, value) -> "EnrichmentMode":
        text = _clean(value)
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"Unknown enrichment mode: {value!r}. Use: fast, standard, full")


class ScoreTier(str, Enum):
    HOT = "hot"
    ACTIVE = "active"
    DORMANT = "dormant"


class DeveloperStrength(str, Enum):
    STRONG = "strong"
    MEDIUM = "medium"
    WEAK = "weak"
    UNKNOWN = "unknown"

    @classmethod
    def normalize(cls, value) -> "DeveloperStrength":
        text = _clean(value)
        for member in cls:
            if member.value == text:
                return member
        return {"חזק": cls.STRONG, "בינוני": cls.MEDIUM, "חלש": cls.WEAK}.get(text, cls.UNKNOWN)


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"

    @classmethod
    def normalize(cls, value) -> "RiskLevel":
        text = _clean(value)
        for member in cls:
            if member.value == text:
                return member
        return {"נמוך": cls.LOW, "בינוני": cls.MEDIUM, "גבוה": cls.HIGH}.get(text, cls.UNKNOWN)


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    UNKNOWN = "unknown"

    @classmethod
    def normalize(cls, value) -> "Sentiment":
        text = _clean(value)
        for member in cls:
            if member.value == text:
                return member
        return {"חיובי": cls.POSITIVE, "ניטרלי": cls.NEUTRAL, "שלילי": cls.NEGATIVE}.get(text, cls.UNKNOWN)
