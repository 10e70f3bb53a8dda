"""
Unit tests for complex-name de-duplication and locality normalization.
"""
import pytest

from src.discovery.fuzzy_matcher import (
    FuzzyMatcher, closest_existing, core_name, find_match, names_match, normalize_locality, normalize_name,
)


class TestNameNormalization:

    def test_normalize_name(self):
        assert normalize_name("  Central-Block ") == "central block"
        assert normalize_name("O'Hara, Street") == "ohara street"
        assert normalize_name(None) == ""

    def test_core_name_strips_prefixes_and_annotations(self):
        assert core_name("Urban Renewal Central Block (120 units)") == "central block"
        assert core_name("Complex Central Block") == "central block"
        assert core_name("מתחם הרצל") == "הרצל"
        assert core_name("מתחם פינוי בינוי הרצל (דרום)") == "הרצל"

    def test_prefix_only_name_is_kept(self):
        assert core_name("Project") == "project"


class TestNamesMatch:

    def test_prefix_variants_match(self):
        assert names_match("מתחם הרצל", "הרצל")
        assert names_match("Central Block", "Urban Renewal Central Block (120 units)")

    def test_identical_after_normalization(self):
        assert names_match("Central-Block", "central block")

    def test_containment_needs_minimum_length(self):
        # Too short for core (3) and full-name (4) containment
        assert not names_match("AB", "ABC")
        assert names_match("Weizmann", "Weizmann North")

    def test_different_names_do_not_match(self):
        assert not names_match("Central Block", "Harbour Towers")
        assert not names_match("הרצל", "ביאליק")

    def test_empty_names_never_match(self):
        assert not names_match("", "")
        assert not names_match("Central Block", None)

    def test_find_match_returns_first_hit(self):
        existing = ["Harbour Towers", "Central Block", "Central Block North"]
        assert find_match("Urban Renewal Central Block", existing) == "Central Block"
        assert find_match("Garden Estate", existing) is None

    def test_closest_existing_is_diagnostic_only(self):
        name, score = closest_existing("Harbor Tower", ["Central Block", "Harbour Towers"])
        assert name == "Harbour Towers"
        assert score >= 70
        assert not names_match("Harbor Tower", "Harbour Towers")
        assert closest_existing("Garden Estate", ["Harbour Towers"]) is None
        assert closest_existing("Garden Estate", []) is None


class TestLocalityNormalization:

    def test_abbreviations(self):
        assert normalize_locality('ת"א') == "תל אביב"
        assert normalize_locality("תל אביב-יפו") == "תל אביב"
        assert normalize_locality("Tel-Aviv") == "תל אביב"

    def test_kiryat_spelling(self):
        assert normalize_locality("קרית אונו") == "קריית אונו"

    def test_unknown_locality_is_whitespace_cleaned(self):
        assert normalize_locality("  Example   City ") == "Example City"
        assert normalize_locality(None) == ""


class TestFuzzyMatcher:

    async def test_exists_queries_canonical_locality(self):
        seen = []

        async def provider(city):
            seen.append(city)
            return ["מתחם הרצל"]

        matcher = FuzzyMatcher(provider)
        assert await matcher.exists("הרצל", 'ת"א')
        assert seen == ["תל אביב"]

    async def test_new_name_is_not_a_duplicate(self):
        async def provider(city):
            return ["Central Block"]

        matcher = FuzzyMatcher(provider)
        assert not await matcher.exists("Harbour Towers", "Example City")
