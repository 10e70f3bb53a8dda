"""
Parsing of committee-status research answers.

Every decision string passes through CommitteeDecision.normalize; anything
unrecognised becomes None (treated as "no information"), never a raw string.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from src.core.json_extract import extract_json
from src.core.models import CommitteeDecision, CommitteeLevel
from src.core.utils import parse_date

logger = logging.getLogger(__name__)


@dataclass
class CommitteeFinding:
    level: CommitteeLevel
    discussed: bool = False
    decision: Optional[CommitteeDecision] = None
    decision_date: Optional[date] = None
    notes: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.decision == CommitteeDecision.APPROVED


@dataclass
class Hearing:
    committee: CommitteeLevel
    hearing_date: date
    agenda_item: Optional[str] = None


@dataclass
class CommitteeReport:
    findings: Dict[CommitteeLevel, CommitteeFinding]
    upcoming_hearings: List[Hearing] = field(default_factory=list)
    current_status: Optional[str] = None
    sources: List[str] = field(default_factory=list)
    confidence: str = "low"
    last_update_found: Optional[date] = None

    def finding(self, level: CommitteeLevel) -> CommitteeFinding:
        return self.findings.get(level) or CommitteeFinding(level=level)


def _parse_level(value: Any) -> Optional[CommitteeLevel]:
    text = str(value or "").strip().lower()
    aliases = {
        "מקומית": CommitteeLevel.LOCAL,
        "ועדה מקומית": CommitteeLevel.LOCAL,
        "מחוזית": CommitteeLevel.DISTRICT,
        "ועדה מחוזית": CommitteeLevel.DISTRICT,
        "ארצית": CommitteeLevel.NATIONAL,
        "ועדה ארצית": CommitteeLevel.NATIONAL,
    }
    try:
        return CommitteeLevel(text)
    except ValueError:
        return aliases.get(text)


def _parse_finding(level: CommitteeLevel, raw: Any) -> CommitteeFinding:
    if not isinstance(raw, dict):
        return CommitteeFinding(level=level)
    return CommitteeFinding(
        level=level,
        discussed=bool(raw.get("discussed")),
        decision=CommitteeDecision.normalize(raw.get("decision")),
        decision_date=parse_date(raw.get("decision_date")),
        notes=raw.get("notes") or None,
    )


def _parse_hearings(raw: Any) -> List[Hearing]:
    hearings = []
    if not isinstance(raw, list):
        return hearings
    for item in raw:
        if not isinstance(item, dict):
            continue
        level = _parse_level(item.get("committee"))
        when = parse_date(item.get("date"))
        if level is None or when is None:
            logger.debug(f"Skipping hearing without committee/date: {item}")
            continue
        hearings.append(Hearing(committee=level, hearing_date=when, agenda_item=item.get("agenda_item") or None))
    return hearings


def parse_committee_report(text: str) -> Optional[CommitteeReport]:
    """Build a CommitteeReport from free text. Returns None when no JSON object can be recovered."""
    data = extract_json(text)
    if data is None:
        return None

    findings = {
        level: _parse_finding(level, data.get(f"{level.value}_committee"))
        for level in CommitteeLevel
    }
    sources = data.get("sources") or []
    return CommitteeReport(
        findings=findings,
        upcoming_hearings=_parse_hearings(data.get("upcoming_hearings")),
        current_status=data.get("current_status") or None,
        sources=[str(s) for s in sources] if isinstance(sources, list) else [str(sources)],
        confidence=str(data.get("confidence") or "low"),
        last_update_found=parse_date(data.get("last_update_found")),
    )
