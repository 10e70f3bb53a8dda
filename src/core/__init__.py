"""
Core Module - Shared Infrastructure.
"""

from src.core.config import settings, Settings
from src.core.database import Base, build_session_factory
from src.core.models import PlanningStatus, AlertType, JobStatus, EnrichmentMode, ScoreTier

__all__ = [
    "settings",
    "Settings",
    "Base",
    "build_session_factory",
    "PlanningStatus",
    "AlertType",
    "JobStatus",
    "EnrichmentMode",
    "ScoreTier",
]
