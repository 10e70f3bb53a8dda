"""
Investment Attractiveness Index (IAI).

    IAI = min(50, theoretical_mid - actual_premium)
          * certainty_factor      (committee approvals, stored on the complex)
          * execution_factor      (developer, signatures, late stage; 0.5-1.5)
          * yield_factor          (unit multiplier)

clamped to 0-100.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Tuple

from src.core.data_types import ComplexSnapshot
from src.core.models import PlanningStatus
from src.core.utils import clamp

GAP_CAP = 50
OPPORTUNITY_THRESHOLD = 70


@dataclass
class AttractivenessBreakdown:
    score: int
    theoretical_premium_min: float
    theoretical_premium_max: float
    actual_premium: float
    premium_gap: float
    gap_points: float
    certainty_factor: float
    execution_factor: float
    yield_factor: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AttractivenessScorer:
    """
    Scores how far the market price lags behind what the planning stage
    justifies, weighted by how likely the project is to actually happen.
    """

    # Expected price premium (%) over comparable old stock, per planning status
    PREMIUM_TABLE: Dict[PlanningStatus, Tuple[float, float]] = {
        PlanningStatus.DECLARED: (5, 15),
        PlanningStatus.PLANNING: (5, 15),
        PlanningStatus.PRE_DEPOSIT: (20, 35),
        PlanningStatus.DEPOSITED: (35, 50),
        PlanningStatus.APPROVED: (50, 70),
        PlanningStatus.PERMIT: (70, 90),
        PlanningStatus.CONSTRUCTION: (90, 100),
        PlanningStatus.UNKNOWN: (0, 0),
    }

    STRONG_DEVELOPERS = [
        'שיכון ובינוי', 'אפריקה ישראל', 'אאורה', 'אלקטרה', 'ב.ס.ר',
        'תדהר', 'קרסו', 'אלמוג', 'ICR',
    ]
    LATE_STAGES = {PlanningStatus.APPROVED, PlanningStatus.PERMIT, PlanningStatus.CONSTRUCTION}

    @classmethod
    def theoretical_premium(cls, status: str) -> Tuple[float, float]:
        return cls.PREMIUM_TABLE[PlanningStatus.normalize(status)]

    @classmethod
    def execution_factor(cls, complex_: ComplexSnapshot) -> float:
        factor = 1.0
        developer = complex_.developer or ""
        if complex_.developer_strength == "strong" or any(d in developer for d in cls.STRONG_DEVELOPERS):
            factor += 0.15
        elif complex_.developer_strength == "weak" or not developer.strip():
            factor -= 0.15

        if complex_.signature_percent:
            if complex_.signature_percent >= 90:
                factor += 0.15
            elif complex_.signature_percent < 67:
                factor -= 0.25

        if PlanningStatus.normalize(complex_.status) in cls.LATE_STAGES:
            factor += 0.2
        return clamp(factor, 0.5, 1.5)

    @staticmethod
    def yield_factor(complex_: ComplexSnapshot) -> float:
        multiplier = complex_.effective_multiplier
        if multiplier and multiplier > 3:
            return 1.2
        return 1.0

    @classmethod
    def score(cls, complex_: ComplexSnapshot) -> AttractivenessBreakdown:
        low, high = cls.theoretical_premium(complex_.status)
        mid = (low + high) / 2
        actual = complex_.actual_premium or 0.0
        gap = max(0.0, mid - actual)
        gap_points = min(GAP_CAP, gap)

        certainty = complex_.certainty_factor or 1.0
        execution = cls.execution_factor(complex_)
        yield_ = cls.yield_factor(complex_)
        raw = gap_points * certainty * execution * yield_

        return AttractivenessBreakdown(
            score=int(round(clamp(raw, 0, 100))),
            theoretical_premium_min=low,
            theoretical_premium_max=high,
            actual_premium=actual,
            premium_gap=round(gap, 2),
            gap_points=round(gap_points, 2),
            certainty_factor=round(certainty, 2),
            execution_factor=round(execution, 2),
            yield_factor=yield_,
        )
