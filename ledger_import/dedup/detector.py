"""Duplicate detection for incoming transactions.

An incoming transaction is a duplicate of an existing ledger entry only when
all three signals agree:

1. Amount — equal within a rounding tolerance (0.01)
2. Date — at most 2 days apart, to absorb bank posting lag
3. Description — Jaccard token overlap >= 0.55, or one normalized
   description contains the other

The verdict is conjunctive to avoid false positives. A weighted score
(0.5 amount + 0.2 date + 0.3 description) ranks the matches.

Duplicates are flagged for review, never auto-rejected: a missed duplicate
shows up in a later audit, a wrongly dropped transaction does not.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Sequence

from ledger_import.dedup.similarity import days_between, jaccard, substring_containment
from ledger_import.models import DuplicateCandidate, ExistingTransaction, IncomingTransaction
from ledger_import.parsers.base import token_set

if TYPE_CHECKING:
    from ledger_import.config import Config

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")
MAX_DAYS_APART = 2
JACCARD_THRESHOLD = 0.55
AMOUNT_WEIGHT = 0.5
DATE_WEIGHT = 0.2
DESCRIPTION_WEIGHT = 0.3

DEFAULT_WINDOW_DAYS = 180
DEFAULT_WINDOW_LIMIT = 500


@dataclass(frozen=True)
class DedupSettings:
    amount_tolerance: Decimal = AMOUNT_TOLERANCE
    max_days_apart: float = MAX_DAYS_APART
    jaccard_threshold: float = JACCARD_THRESHOLD
    amount_weight: float = AMOUNT_WEIGHT
    date_weight: float = DATE_WEIGHT
    description_weight: float = DESCRIPTION_WEIGHT

    def __post_init__(self):
        weights = (self.amount_weight, self.date_weight, self.description_weight)
        if any(w < 0 for w in weights) or sum(weights) > 1.0 + 1e-9:
            raise ValueError(
                f"Duplicate weights must be non-negative and sum to at most 1: {weights}"
            )

    @classmethod
    def from_config(cls, config: Config) -> DedupSettings:
        params = config.duplicate_params
        weights = params.get("weights", {}) or {}
        return cls(
            amount_tolerance=Decimal(str(params.get("amount_tolerance", AMOUNT_TOLERANCE))),
            max_days_apart=float(params.get("max_days_apart", MAX_DAYS_APART)),
            jaccard_threshold=float(params.get("jaccard_threshold", JACCARD_THRESHOLD)),
            amount_weight=float(weights.get("amount", AMOUNT_WEIGHT)),
            date_weight=float(weights.get("date", DATE_WEIGHT)),
            description_weight=float(weights.get("description", DESCRIPTION_WEIGHT)),
        )


@dataclass(frozen=True)
class PairSignals:
    """The three duplicate signals for one (incoming, existing) pair."""
    amount_match: bool
    date_close: bool
    description_similar: bool
    score: float

    @property
    def is_duplicate(self) -> bool:
        return self.amount_match and self.date_close and self.description_similar


@dataclass
class DuplicateCheck:
    """Outcome of checking one incoming transaction."""
    duplicate_flag: bool = False
    matches: list[DuplicateCandidate] = field(default_factory=list)


class DuplicateDetector:
    """Compare incoming transactions against existing ledger entries."""

    def __init__(self, settings: DedupSettings | None = None):
        self.settings = settings or DedupSettings()

    @classmethod
    def from_config(cls, config: Config) -> DuplicateDetector:
        return cls(DedupSettings.from_config(config))

    def compare(
        self, incoming: IncomingTransaction, existing: ExistingTransaction
    ) -> PairSignals:
        """Compute the duplicate signals and ranking score for one pair."""
        s = self.settings
        amount_match = abs(incoming.amount - existing.amount) <= s.amount_tolerance
        date_close = days_between(incoming.date, existing.date) <= s.max_days_apart
        similarity = jaccard(token_set(incoming.description), token_set(existing.description))
        description_similar = (
            similarity >= s.jaccard_threshold
            or substring_containment(incoming.description, existing.description)
        )
        score = (
            s.amount_weight * amount_match
            + s.date_weight * date_close
            + s.description_weight * description_similar
        )
        return PairSignals(
            amount_match=amount_match,
            date_close=date_close,
            description_similar=description_similar,
            score=min(1.0, round(score, 10)),
        )

    def check(
        self,
        incoming: IncomingTransaction,
        existing: Iterable[ExistingTransaction],
    ) -> DuplicateCheck:
        """Find every existing transaction that duplicates incoming.

        Matches are sorted by score descending; sorted() is stable, so
        equal scores keep the order of the existing list.
        """
        matches = []
        for candidate in existing:
            signals = self.compare(incoming, candidate)
            if signals.is_duplicate:
                matches.append(DuplicateCandidate(transaction=candidate, score=signals.score))

        if not matches:
            return DuplicateCheck()

        matches = sorted(matches, key=lambda m: m.score, reverse=True)
        logger.debug(
            "Possible duplicate: %r matches %d existing (best %s, score %.2f)",
            incoming.description, len(matches),
            matches[0].transaction.id, matches[0].score,
        )
        return DuplicateCheck(duplicate_flag=True, matches=matches)


def existing_window(
    records: Sequence[ExistingTransaction],
    as_of: date,
    days: int = DEFAULT_WINDOW_DAYS,
    limit: int = DEFAULT_WINDOW_LIMIT,
) -> list[ExistingTransaction]:
    """Select the existing transactions worth comparing against.

    Keeps records dated on or after as_of - days (later-dated records are
    kept too), most recent first, capped at limit. Records on the same
    date keep their input order.
    """
    if days < 0 or limit < 0:
        raise ValueError(f"Window days and limit must be non-negative: {days}, {limit}")
    cutoff = as_of - timedelta(days=days)
    recent = [r for r in records if r.date >= cutoff]
    recent = sorted(recent, key=lambda r: r.date, reverse=True)
    return recent[:limit]
