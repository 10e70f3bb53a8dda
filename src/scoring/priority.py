"""
Priority Score.

Five components, each summed from its parts and then capped:

    return_potential  <= 30   premium gap, unit multiplier, market lag
    velocity          <= 25   planning stage, signature collection
    risk_shield       <= 20   developer strength/risk, news sentiment
    stealth           <= 15   few listings and transactions = unnoticed
    distress          <= 10   seller stress, enforcement/receivership/bankruptcy

Total is capped at 100. Tier drives scan frequency: hot >= 45, active >= 25.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from src.core.data_types import ComplexSnapshot
from src.core.models import PlanningStatus, ScoreTier, DeveloperStrength, RiskLevel, Sentiment
from src.core.utils import clamp
from src.scoring.attractiveness import AttractivenessScorer
from src.scoring.stress import StressScorer

CAPS = {
    "return_potential": 30,
    "velocity": 25,
    "risk_shield": 20,
    "stealth": 15,
    "distress": 10,
}

HOT_THRESHOLD = 45
ACTIVE_THRESHOLD = 25


@dataclass
class PriorityBreakdown:
    components: Dict[str, int]
    stage: PlanningStatus

    @property
    def total(self) -> int:
        return int(clamp(sum(self.components.values()), 0, 100))

    @property
    def tier(self) -> ScoreTier:
        return tier_for(self.total)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "tier": self.tier.value,
            "stage": self.stage.value,
            **self.components,
        }


def tier_for(score: int) -> ScoreTier:
    if score >= HOT_THRESHOLD:
        return ScoreTier.HOT
    if score >= ACTIVE_THRESHOLD:
        return ScoreTier.ACTIVE
    return ScoreTier.DORMANT


def _cap(name: str, raw: float) -> int:
    return int(round(clamp(raw, 0, CAPS[name])))


class PriorityScorer:
    """Scores where to look next: upside, speed, safety, obscurity, distress."""

    # Return potential
    GAP_POINTS_MAX = 20
    GAP_FULL_SCALE = 50  # premium gap (%) that earns the full linear points
    MULTIPLIER_STEPS = [(4.0, 8), (3.0, 6), (2.0, 3)]
    LOW_PREMIUM_STEPS = [(10.0, 4), (20.0, 2)]

    # Velocity
    STAGE_POINTS = {
        PlanningStatus.DECLARED: 6,
        PlanningStatus.PLANNING: 8,
        PlanningStatus.PRE_DEPOSIT: 12,
        PlanningStatus.DEPOSITED: 16,
        PlanningStatus.APPROVED: 20,
        PlanningStatus.PERMIT: 18,
        PlanningStatus.CONSTRUCTION: 10,
    }
    UNKNOWN_STAGE_FLOOR = 2
    # Checked in order; more specific phrases first
    STAGE_KEYWORDS: List[Tuple[str, PlanningStatus]] = [
        ("היתר", PlanningStatus.PERMIT),
        ("permit", PlanningStatus.PERMIT),
        ("בביצוע", PlanningStatus.CONSTRUCTION),
        ("בנייה", PlanningStatus.CONSTRUCTION),
        ("construction", PlanningStatus.CONSTRUCTION),
        ("להפקדה", PlanningStatus.PRE_DEPOSIT),
        ("לקראת הפקדה", PlanningStatus.PRE_DEPOSIT),
        ("pre deposit", PlanningStatus.PRE_DEPOSIT),
        ("pre-deposit", PlanningStatus.PRE_DEPOSIT),
        ("submitted", PlanningStatus.PRE_DEPOSIT),
        ("הוגש", PlanningStatus.PRE_DEPOSIT),
        ("הופקד", PlanningStatus.DEPOSITED),
        ("deposit", PlanningStatus.DEPOSITED),
        ("אושר", PlanningStatus.APPROVED),
        ("מאושר", PlanningStatus.APPROVED),
        ("approved", PlanningStatus.APPROVED),
        ("approval", PlanningStatus.APPROVED),
        ("תכנון", PlanningStatus.PLANNING),
        ("planning", PlanningStatus.PLANNING),
        ("הוכרז", PlanningStatus.DECLARED),
        ("declared", PlanningStatus.DECLARED),
        ("declaration", PlanningStatus.DECLARED),
    ]
    SIGNATURE_STEPS = [(90, 5), (80, 3), (67, 1)]

    # Risk shield
    STRENGTH_POINTS = {
        DeveloperStrength.STRONG: 8,
        DeveloperStrength.MEDIUM: 5,
        DeveloperStrength.WEAK: 1,
        DeveloperStrength.UNKNOWN: 3,
    }
    RISK_POINTS = {
        RiskLevel.LOW: 7,
        RiskLevel.MEDIUM: 4,
        RiskLevel.HIGH: 0,
        RiskLevel.UNKNOWN: 2,
    }
    SENTIMENT_POINTS = {
        Sentiment.POSITIVE: 5,
        Sentiment.NEUTRAL: 3,
        Sentiment.NEGATIVE: 0,
        Sentiment.UNKNOWN: 2,
    }
    NEGATIVE_NEWS_PENALTY = 5

    # Stealth: (upper bound inclusive, points)
    LISTING_STEPS = [(0, 8), (2, 6), (5, 4), (10, 2)]
    TRANSACTION_STEPS = [(0, 7), (3, 5), (10, 3)]
    TRANSACTION_FLOOR = 1

    @classmethod
    def resolve_stage(cls, plan_stage: Optional[str], status: Optional[str]) -> PlanningStatus:
        """Exact enum match first, then keyword search in free text, then the status column."""
        exact = PlanningStatus.normalize(plan_stage)
        if exact != PlanningStatus.UNKNOWN:
            return exact
        text = (plan_stage or "").lower()
        for keyword, stage in cls.STAGE_KEYWORDS:
            if keyword in text:
                return stage
        return PlanningStatus.normalize(status)

    @classmethod
    def return_potential(cls, complex_: ComplexSnapshot) -> int:
        low, high = AttractivenessScorer.theoretical_premium(complex_.status)
        gap = max(0.0, (low + high) / 2 - (complex_.actual_premium or 0.0))
        points = min(cls.GAP_POINTS_MAX, gap / cls.GAP_FULL_SCALE * cls.GAP_POINTS_MAX)

        multiplier = complex_.effective_multiplier or 0.0
        for threshold, bonus in cls.MULTIPLIER_STEPS:
            if multiplier >= threshold:
                points += bonus
                break

        if complex_.actual_premium is not None:
            for threshold, bonus in cls.LOW_PREMIUM_STEPS:
                if complex_.actual_premium < threshold:
                    points += bonus
                    break
        return _cap("return_potential", points)

    @classmethod
    def velocity(cls, complex_: ComplexSnapshot, stage: PlanningStatus) -> int:
        points = cls.STAGE_POINTS.get(stage, cls.UNKNOWN_STAGE_FLOOR)
        signatures = complex_.signature_percent or 0
        for threshold, bonus in cls.SIGNATURE_STEPS:
            if signatures >= threshold:
                points += bonus
                break
        return _cap("velocity", points)

    @classmethod
    def risk_shield(cls, complex_: ComplexSnapshot) -> int:
        points = (
            cls.STRENGTH_POINTS[DeveloperStrength.normalize(complex_.developer_strength)]
            + cls.RISK_POINTS[RiskLevel.normalize(complex_.developer_risk_level)]
            + cls.SENTIMENT_POINTS[Sentiment.normalize(complex_.news_sentiment)]
        )
        if complex_.has_negative_news:
            points -= cls.NEGATIVE_NEWS_PENALTY
        return _cap("risk_shield", points)

    @staticmethod
    def _stepped(value: int, steps, floor: int = 0) -> int:
        for bound, points in steps:
            if value <= bound:
                return points
        return floor

    @classmethod
    def stealth(cls, complex_: ComplexSnapshot) -> int:
        points = cls._stepped(len(complex_.active_listings), cls.LISTING_STEPS)
        points += cls._stepped(complex_.transaction_count or 0, cls.TRANSACTION_STEPS, cls.TRANSACTION_FLOOR)
        return _cap("stealth", points)

    @classmethod
    def distress(cls, complex_: ComplexSnapshot, stress: Optional[Dict[str, Any]] = None) -> int:
        stress = stress if stress is not None else StressScorer.aggregate(complex_.listings)
        points = 0
        if stress["max"] >= 70:
            points += 5
        elif stress["max"] >= 50:
            points += 3
        elif stress["max"] >= 30:
            points += 1
        if stress["avg"] >= 50:
            points += 2
        if complex_.has_enforcement_cases:
            points += 2
        if complex_.is_receivership:
            points += 3
        if complex_.has_bankruptcy_proceedings:
            points += 3
        return _cap("distress", points)

    @classmethod
    def score(cls, complex_: ComplexSnapshot, stress: Optional[Dict[str, Any]] = None) -> PriorityBreakdown:
        stage = cls.resolve_stage(complex_.plan_stage, complex_.status)
        components = {
            "return_potential": cls.return_potential(complex_),
            "velocity": cls.velocity(complex_, stage),
            "risk_shield": cls.risk_shield(complex_),
            "stealth": cls.stealth(complex_),
            "distress": cls.distress(complex_, stress),
        }
        return PriorityBreakdown(components=components, stage=stage)
