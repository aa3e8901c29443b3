"""Tests for dedup.similarity."""

from datetime import date

from ledger_import.dedup.similarity import days_between, jaccard, substring_containment
from ledger_import.parsers.base import token_set


class TestJaccard:
    def test_identical(self):
        assert jaccard({"office", "rent"}, {"office", "rent"}) == 1.0

    def test_disjoint(self):
        assert jaccard({"office", "rent"}, {"fuel"}) == 0.0

    def test_partial(self):
        # 2 shared of 3 distinct
        assert jaccard({"office", "rent", "july"}, {"office", "rent"}) == 2 / 3

    def test_both_empty_is_full_match(self):
        assert jaccard(frozenset(), frozenset()) == 1.0

    def test_one_empty(self):
        assert jaccard(frozenset(), {"rent"}) == 0.0

    def test_symmetric_and_bounded(self):
        pairs = [
            ("Office rent July", "office rent"),
            ("Shell garage", "SHELL GARAGE 12"),
            ("Bank charges", "Monthly fee"),
            ("", "rent"),
        ]
        for a, b in pairs:
            ab = jaccard(token_set(a), token_set(b))
            ba = jaccard(token_set(b), token_set(a))
            assert ab == ba
            assert 0.0 <= ab <= 1.0


class TestDaysBetween:
    def test_same_day(self):
        assert days_between(date(2025, 7, 1), date(2025, 7, 1)) == 0.0

    def test_absolute(self):
        assert days_between(date(2025, 7, 1), date(2025, 7, 3)) == 2.0
        assert days_between(date(2025, 7, 3), date(2025, 7, 1)) == 2.0

    def test_across_month(self):
        assert days_between(date(2025, 6, 30), date(2025, 7, 1)) == 1.0


class TestSubstringContainment:
    def test_contained(self):
        assert substring_containment("Office rent", "office rent July") is True

    def test_contains(self):
        assert substring_containment("OFFICE RENT - JULY", "office rent") is True

    def test_unrelated(self):
        assert substring_containment("fuel", "rent") is False

    def test_punctuation_ignored(self):
        assert substring_containment("Shell*Garage", "shell garage #12") is True

    def test_empty_only_matches_empty(self):
        assert substring_containment("", "office rent") is False
        assert substring_containment("office rent", None) is False
        assert substring_containment("", None) is True
