"""
Committee Module - planning-committee approval tracking.
"""

from src.committee.parser import CommitteeReport, parse_committee_report
from src.committee.tracker import CommitteeTracker

__all__ = [
    "CommitteeReport",
    "CommitteeTracker",
    "parse_committee_report",
]
