"""
Unit tests for enum normalization and value coercion helpers.
"""
from datetime import date

import pytest

from src.core.models import (
    CommitteeDecision, DeveloperStrength, EnrichmentMode, JobStatus, PlanningStatus, Sentiment,
)
from src.core.utils import parse_date, to_float, to_int


class TestEnumNormalization:

    def test_planning_status(self):
        assert PlanningStatus.normalize("Deposited") == PlanningStatus.DEPOSITED
        assert PlanningStatus.normalize("pre-deposit") == PlanningStatus.PRE_DEPOSIT
        assert PlanningStatus.normalize("אושרה") == PlanningStatus.APPROVED
        assert PlanningStatus.normalize("whatever") == PlanningStatus.UNKNOWN
        assert PlanningStatus.normalize(None, default=PlanningStatus.DECLARED) == PlanningStatus.DECLARED

    def test_committee_decision(self):
        assert CommitteeDecision.normalize("APPROVED") == CommitteeDecision.APPROVED
        assert CommitteeDecision.normalize("נדחה") == CommitteeDecision.REJECTED
        assert CommitteeDecision.normalize("null") is None
        assert CommitteeDecision.normalize("maybe later") is None

    def test_soft_enums(self):
        assert DeveloperStrength.normalize("חזק") == DeveloperStrength.STRONG
        assert DeveloperStrength.normalize("excellent") == DeveloperStrength.UNKNOWN
        assert Sentiment.normalize("Negative") == Sentiment.NEGATIVE

    def test_enrichment_mode_is_strict(self):
        assert EnrichmentMode.normalize("FULL") == EnrichmentMode.FULL
        with pytest.raises(ValueError):
            EnrichmentMode.normalize("turbo")

    def test_terminal_job_states(self):
        assert JobStatus.COMPLETED.is_terminal
        assert JobStatus.CANCELLED.is_terminal
        assert not JobStatus.RUNNING.is_terminal


class TestCoercion:

    def test_parse_date(self):
        assert parse_date("2025-01-10") == date(2025, 1, 10)
        assert parse_date("2025-01-10T08:00:00Z") == date(2025, 1, 10)
        assert parse_date("10/01/2025") == date(2025, 1, 10)
        assert parse_date(date(2024, 5, 1)) == date(2024, 5, 1)
        assert parse_date("null") is None
        assert parse_date("soon") is None

    def test_numbers(self):
        assert to_float("1,250") == 1250.0
        assert to_float("12%") == 12.0
        assert to_float(True) is None
        assert to_float("n/a") is None
        assert to_int("39.6") == 40
        assert to_int(None) is None

    def test_non_finite_numbers_are_missing(self):
        assert to_float("nan") is None
        assert to_float(float("nan")) is None
        assert to_float("inf") is None
        assert to_float(float("-inf")) is None
        assert to_float(10 ** 400) is None
        assert to_int("NaN") is None
        assert to_int("-Infinity") is None
