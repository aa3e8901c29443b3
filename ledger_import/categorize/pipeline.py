"""Batch annotation: classification + duplicate detection per record.

For every incoming transaction:
  1. Suggest an account — structured cascade for PDF/receipt extractions,
     freeform scoring for typed or spoken text (or an explicit classifier)
  2. Check for duplicates against the existing-transaction window
  3. Default the record to "include in import"

The two annotations are independent, records are never reordered or
merged, and duplicates are only flagged; the reviewer decides what gets
posted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Sequence

from ledger_import.categorize.base import AccountClassifier
from ledger_import.categorize.freeform import FreeformClassifier
from ledger_import.categorize.structured import StructuredClassifier
from ledger_import.dedup.detector import (
    DEFAULT_WINDOW_DAYS,
    DEFAULT_WINDOW_LIMIT,
    DuplicateDetector,
    existing_window,
)
from ledger_import.models import (
    Account,
    AnnotatedTransaction,
    ExistingTransaction,
    IncomingTransaction,
    Provenance,
)
from ledger_import.parsers.extraction import parse_extractor_payload

if TYPE_CHECKING:
    from ledger_import.config import Config

logger = logging.getLogger(__name__)

# Suggestions below this confidence are counted as needing attention
LOW_CONFIDENCE = 60


@dataclass
class BatchSummary:
    """Counts over one annotated batch."""
    total: int = 0
    duplicate_count: int = 0
    low_confidence_count: int = 0
    method_counts: dict[str, int] = field(default_factory=dict)


@dataclass
class BatchResult:
    transactions: list[AnnotatedTransaction]
    summary: BatchSummary


class ImportBatchProcessor:
    """Annotate batches of incoming transactions.

    Args:
        structured: Classifier for PDF/receipt extractions.
        freeform: Classifier for typed and spoken text.
        detector: Duplicate detector.
    """

    def __init__(
        self,
        structured: AccountClassifier,
        freeform: AccountClassifier,
        detector: DuplicateDetector,
        window_days: int = DEFAULT_WINDOW_DAYS,
        window_limit: int = DEFAULT_WINDOW_LIMIT,
    ):
        self.structured = structured
        self.freeform = freeform
        self.detector = detector
        self.window_days = window_days
        self.window_limit = window_limit

    @classmethod
    def from_config(cls, config: Config) -> ImportBatchProcessor:
        return cls(
            structured=StructuredClassifier.from_config(config),
            freeform=FreeformClassifier.from_config(config),
            detector=DuplicateDetector.from_config(config),
            window_days=config.window_days,
            window_limit=config.window_limit,
        )

    def classifier_for(self, provenance: Provenance) -> AccountClassifier:
        """Pick the classifier calibrated for a record's provenance."""
        if provenance is Provenance.PDF_UPLOAD:
            return self.structured
        return self.freeform

    def annotate(
        self,
        transaction: IncomingTransaction,
        existing: Sequence[ExistingTransaction],
        accounts: Sequence[Account],
        classifier: AccountClassifier | None = None,
    ) -> AnnotatedTransaction:
        """Annotate a single transaction."""
        classifier = classifier or self.classifier_for(transaction.source)
        suggestion = classifier.classify(transaction, accounts)
        duplicates = self.detector.check(transaction, existing)
        return AnnotatedTransaction(
            transaction=transaction,
            account_id=suggestion.account_id,
            confidence_score=suggestion.confidence,
            method=suggestion.method,
            duplicate_flag=duplicates.duplicate_flag,
            duplicate_matches=duplicates.matches,
            include_in_import=True,
        )

    def process(
        self,
        batch: Sequence[IncomingTransaction],
        existing: Sequence[ExistingTransaction],
        accounts: Sequence[Account],
        classifier: AccountClassifier | None = None,
    ) -> BatchResult:
        """Annotate every transaction in the batch, preserving order.

        Args:
            batch: Incoming transactions from one extraction run.
            existing: Existing ledger transactions to compare against.
            accounts: Account catalog.
            classifier: Force one classifier for the whole batch. If None,
                each record's provenance decides.
        """
        annotated = []
        summary = BatchSummary(total=len(batch))
        for transaction in batch:
            item = self.annotate(transaction, existing, accounts, classifier)
            annotated.append(item)
            if item.duplicate_flag:
                summary.duplicate_count += 1
            if item.confidence_score < LOW_CONFIDENCE:
                summary.low_confidence_count += 1
            summary.method_counts[item.method] = summary.method_counts.get(item.method, 0) + 1

        logger.info(
            "Annotated %d transaction(s): %d possible duplicate(s), %d low confidence",
            summary.total, summary.duplicate_count, summary.low_confidence_count,
        )
        return BatchResult(transactions=annotated, summary=summary)

    def process_payload(
        self,
        payload,
        existing: Sequence[ExistingTransaction],
        accounts: Sequence[Account],
        source: Provenance | str | None = None,
        as_of: date | None = None,
    ) -> BatchResult:
        """Parse an extractor response and annotate it.

        Existing transactions are narrowed to the configured window ending
        at as_of. Without as_of, the latest date in the batch is used so
        the result never depends on the wall clock.

        Raises:
            ExtractionError: if the payload contains an invalid record.
        """
        batch = parse_extractor_payload(payload, source)
        if not batch:
            return BatchResult(transactions=[], summary=BatchSummary())
        if as_of is None:
            as_of = max(txn.date for txn in batch)
        window = existing_window(
            existing, as_of, days=self.window_days, limit=self.window_limit,
        )
        logger.debug(
            "Comparing against %d of %d existing transaction(s) (as of %s)",
            len(window), len(existing), as_of.isoformat(),
        )
        return self.process(batch, window, accounts)
