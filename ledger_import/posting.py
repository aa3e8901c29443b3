"""Build ledger-posting payloads from reviewed, annotated transactions.

The posting endpoint takes one transaction per request. This module only
prepares the JSON bodies; sending them (and retrying) is up to the caller.
"""

from __future__ import annotations

import logging
from typing import Iterator, Sequence

from ledger_import.models import Account, AnnotatedTransaction
from ledger_import.parsers.extraction import DEFAULT_CATEGORY, DEFAULT_DESCRIPTION

logger = logging.getLogger(__name__)


class PostingError(ValueError):
    """Raised when a reviewed transaction cannot be posted as-is."""


def build_posting_payload(
    annotated: AnnotatedTransaction,
    accounts: Sequence[Account],
) -> dict:
    """Return the JSON body for posting one reviewed transaction.

    The account falls back to the first catalog account when the engine
    (and the reviewer) left it empty.

    Raises:
        PostingError: if the amount is zero.
    """
    txn = annotated.transaction
    if txn.amount == 0:
        raise PostingError(
            f"Amount cannot be zero: {txn.description!r} on {txn.date.isoformat()}"
        )

    account_id = annotated.account_id
    if not account_id:
        account_id = accounts[0].id if accounts else None

    return {
        "type": txn.type.value,
        "amount": float(txn.amount),
        "date": txn.date.isoformat(),
        "description": txn.description or DEFAULT_DESCRIPTION,
        "category": txn.category or DEFAULT_CATEGORY,
        "account_id": account_id,
        "original_text": txn.original_text,
        "source": txn.source.value,
        "is_verified": True,
    }


def approved_payloads(
    batch: Sequence[AnnotatedTransaction],
    accounts: Sequence[Account],
) -> Iterator[dict]:
    """Yield payloads for the records the reviewer kept, in batch order."""
    skipped = 0
    for annotated in batch:
        if not annotated.include_in_import:
            skipped += 1
            continue
        yield build_posting_payload(annotated, accounts)
    if skipped:
        logger.info("Skipped %d transaction(s) excluded during review", skipped)
