"""
Scoring Module - Priority, Attractiveness (IAI) and Seller Stress (SSI).
"""

from src.scoring.attractiveness import AttractivenessScorer
from src.scoring.priority import PriorityScorer, tier_for
from src.scoring.stress import StressScorer
from src.scoring.service import ScoringService

__all__ = [
    "AttractivenessScorer",
    "PriorityScorer",
    "StressScorer",
    "ScoringService",
    "tier_for",
]
