"""Tests for dedup.detector."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from ledger_import.config import Config
from ledger_import.dedup.detector import (
    DedupSettings,
    DuplicateDetector,
    existing_window,
)
from ledger_import.models import ExistingTransaction, IncomingTransaction, TransactionType
from tests.conftest import FIXTURE_CONFIG_DIR, PACKAGED_CONFIG_DIR


def _incoming(**kw) -> IncomingTransaction:
    defaults = dict(
        type=TransactionType.EXPENSE,
        amount=Decimal("500.00"),
        description="Office rent July",
        date=date(2025, 7, 1),
        category="Rent",
    )
    defaults.update(kw)
    return IncomingTransaction(**defaults)


def _existing(**kw) -> ExistingTransaction:
    defaults = dict(
        id="e1",
        amount=Decimal("500.00"),
        description="office rent july",
        date=date(2025, 7, 2),
        type=TransactionType.EXPENSE,
    )
    defaults.update(kw)
    return ExistingTransaction(**defaults)


class TestCompare:
    def test_all_signals(self):
        signals = DuplicateDetector().compare(_incoming(), _existing())
        assert signals.amount_match
        assert signals.date_close
        assert signals.description_similar
        assert signals.is_duplicate
        assert signals.score == 1.0

    def test_amount_within_tolerance(self):
        signals = DuplicateDetector().compare(_incoming(amount=Decimal("500.01")), _existing())
        assert signals.amount_match

    def test_amount_outside_tolerance(self):
        signals = DuplicateDetector().compare(_incoming(amount=Decimal("500.02")), _existing())
        assert not signals.amount_match
        assert not signals.is_duplicate
        assert signals.score == 0.5

    def test_date_boundary(self):
        detector = DuplicateDetector()
        assert detector.compare(_incoming(), _existing(date=date(2025, 7, 3))).date_close
        assert not detector.compare(_incoming(), _existing(date=date(2025, 7, 4))).date_close

    def test_description_by_containment(self):
        # Jaccard is 2/5, below threshold
        signals = DuplicateDetector().compare(
            _incoming(description="Office rent"),
            _existing(description="office rent july 2025 invoice"),
        )
        assert signals.description_similar

    def test_description_dissimilar(self):
        signals = DuplicateDetector().compare(
            _incoming(description="Shell garage"), _existing(),
        )
        assert not signals.description_similar
        assert signals.score == 0.7

    def test_score_bounded(self):
        detector = DuplicateDetector()
        for existing in (_existing(), _existing(amount=Decimal("1")), _existing(description="x")):
            score = detector.compare(_incoming(), existing).score
            assert 0.0 <= score <= 1.0


class TestCheck:
    def test_flags_duplicate(self):
        check = DuplicateDetector().check(_incoming(), [_existing()])
        assert check.duplicate_flag is True
        assert len(check.matches) == 1
        assert check.matches[0].transaction.id == "e1"
        assert check.matches[0].score == 1.0

    def test_different_amount_not_flagged(self):
        check = DuplicateDetector().check(_incoming(), [_existing(amount=Decimal("700.00"))])
        assert check.duplicate_flag is False
        assert check.matches == []

    def test_no_existing(self):
        check = DuplicateDetector().check(_incoming(), [])
        assert check.duplicate_flag is False
        assert check.matches == []

    def test_flag_matches_non_empty_matches(self):
        detector = DuplicateDetector()
        for existing in ([], [_existing()], [_existing(amount=Decimal("9"))]):
            check = detector.check(_incoming(), existing)
            assert check.duplicate_flag == bool(check.matches)

    def test_amount_change_clears_flag(self):
        detector = DuplicateDetector()
        existing = [_existing()]
        assert detector.check(_incoming(), existing).duplicate_flag
        assert not detector.check(_incoming(amount=Decimal("500.50")), existing).duplicate_flag

    def test_only_duplicates_are_listed(self):
        existing = [
            _existing(id="far", date=date(2025, 6, 1)),
            _existing(id="near"),
        ]
        check = DuplicateDetector().check(_incoming(), existing)
        assert [m.transaction.id for m in check.matches] == ["near"]

    def test_ties_keep_input_order(self):
        existing = [_existing(id="a"), _existing(id="b"), _existing(id="c")]
        check = DuplicateDetector().check(_incoming(), existing)
        assert [m.transaction.id for m in check.matches] == ["a", "b", "c"]

    def test_match_score_is_weight_sum(self):
        settings = DedupSettings(max_days_apart=5, date_weight=0.1)
        check = DuplicateDetector(settings).check(
            _incoming(), [_existing(date=date(2025, 7, 5))],
        )
        assert check.matches[0].score == 0.9

    def test_accepts_iterator(self):
        check = DuplicateDetector().check(_incoming(), iter([_existing()]))
        assert check.duplicate_flag is True

    def test_candidate_serialization(self):
        check = DuplicateDetector().check(_incoming(), [_existing()])
        assert check.matches[0].to_dict() == {
            "id": "e1",
            "amount": 500.0,
            "date": "2025-07-02",
            "description": "office rent july",
            "score": 1.0,
        }


class TestDedupSettings:
    def test_defaults(self):
        s = DedupSettings()
        assert s.amount_tolerance == Decimal("0.01")
        assert s.max_days_apart == 2
        assert s.jaccard_threshold == 0.55

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError, match="weights"):
            DedupSettings(amount_weight=-0.1)

    def test_weights_over_one_rejected(self):
        with pytest.raises(ValueError, match="weights"):
            DedupSettings(amount_weight=0.6, date_weight=0.3, description_weight=0.3)

    def test_from_packaged_config(self):
        s = DedupSettings.from_config(Config(PACKAGED_CONFIG_DIR))
        assert s == DedupSettings()

    def test_from_fixture_config(self):
        s = DedupSettings.from_config(Config(FIXTURE_CONFIG_DIR))
        assert s.amount_tolerance == Decimal("0.05")
        assert s.max_days_apart == 5
        assert s.jaccard_threshold == 0.8
        assert s.amount_weight == 0.4

    def test_fixture_tolerance_applies(self):
        detector = DuplicateDetector.from_config(Config(FIXTURE_CONFIG_DIR))
        check = detector.check(
            _incoming(amount=Decimal("500.04")), [_existing(date=date(2025, 7, 5))],
        )
        assert check.duplicate_flag is True


class TestExistingWindow:
    def _records(self):
        return [
            _existing(id="old", date=date(2024, 12, 1)),
            _existing(id="mid", date=date(2025, 5, 1)),
            _existing(id="new", date=date(2025, 7, 1)),
            _existing(id="new2", date=date(2025, 7, 1)),
        ]

    def test_drops_records_outside_window(self):
        window = existing_window(self._records(), as_of=date(2025, 7, 1))
        assert "old" not in [r.id for r in window]

    def test_most_recent_first_stable(self):
        window = existing_window(self._records(), as_of=date(2025, 7, 1))
        assert [r.id for r in window] == ["new", "new2", "mid"]

    def test_limit(self):
        window = existing_window(self._records(), as_of=date(2025, 7, 1), limit=1)
        assert [r.id for r in window] == ["new"]

    def test_cutoff_inclusive(self):
        as_of = date(2025, 7, 1)
        records = [_existing(id="edge", date=as_of - timedelta(days=180))]
        assert len(existing_window(records, as_of=as_of)) == 1

    def test_future_records_kept(self):
        records = [_existing(id="future", date=date(2025, 8, 1))]
        assert len(existing_window(records, as_of=date(2025, 7, 1))) == 1

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            existing_window([], as_of=date(2025, 7, 1), days=-1)
