"""
Unit tests for committee report parsing.
"""
import json
from datetime import date

from src.committee.parser import parse_committee_report
from src.core.models import CommitteeDecision, CommitteeLevel


class TestCommitteeParser:

    def test_full_report(self):
        text = "Here is what I found:\n```json\n" + json.dumps({
            "local_committee": {"discussed": True, "decision": "אושרה", "decision_date": "2025-01-10"},
            "district_committee": {"discussed": False, "decision": "null"},
            "upcoming_hearings": [
                {"date": "2025-03-02", "committee": "ועדה מחוזית", "agenda_item": "הפקדה"},
                {"date": "sometime", "committee": "local"},
                {"date": "2025-04-01", "committee": "municipal"},
            ],
            "sources": ["iplan.gov.il"],
            "confidence": "high",
        }, ensure_ascii=False) + "\n```"

        report = parse_committee_report(text)
        local = report.finding(CommitteeLevel.LOCAL)
        assert local.is_approved
        assert local.decision_date == date(2025, 1, 10)

        district = report.finding(CommitteeLevel.DISTRICT)
        assert district.decision is None
        assert not district.is_approved

        assert report.finding(CommitteeLevel.NATIONAL).decision is None

        assert len(report.upcoming_hearings) == 1
        hearing = report.upcoming_hearings[0]
        assert hearing.committee == CommitteeLevel.DISTRICT
        assert hearing.hearing_date == date(2025, 3, 2)
        assert report.sources == ["iplan.gov.il"]
        assert report.confidence == "high"

    def test_unknown_decision_is_no_information(self):
        report = parse_committee_report('{"local_committee": {"decision": "under review maybe"}}')
        assert report.finding(CommitteeLevel.LOCAL).decision is None

    def test_deferred_is_not_approval(self):
        report = parse_committee_report('{"local_committee": {"decision": "deferred"}}')
        finding = report.finding(CommitteeLevel.LOCAL)
        assert finding.decision == CommitteeDecision.DEFERRED
        assert not finding.is_approved

    def test_unparseable(self):
        assert parse_committee_report("No committee information was found.") is None
