"""Dataclass models for the import engine.

Accounts and existing ledger transactions are read-only inputs supplied by
the ledger service. Incoming transactions come from the extraction service
and are annotated (never modified) by the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum


class TransactionType(str, Enum):
    """Type tag carried by incoming and existing transactions."""

    INCOME = "income"
    EXPENSE = "expense"
    DEBT = "debt"


class AccountType(str, Enum):
    """Coarse account classification in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


class Provenance(str, Enum):
    """Where an incoming record was extracted from."""

    PDF_UPLOAD = "pdf-upload"
    TEXT_INPUT = "text-input"
    AUDIO_INPUT = "audio-input"


# income→income, expense→expense, debt→liability
EXPECTED_ACCOUNT_TYPE: dict[TransactionType, AccountType] = {
    TransactionType.INCOME: AccountType.INCOME,
    TransactionType.EXPENSE: AccountType.EXPENSE,
    TransactionType.DEBT: AccountType.LIABILITY,
}


@dataclass(frozen=True)
class Account:
    id: str
    name: str
    type: AccountType
    code: str | None = None

    @property
    def lower_name(self) -> str:
        return self.name.lower()

    @property
    def is_bank_or_cash(self) -> bool:
        """Asset accounts whose name mentions a bank or cash."""
        name = self.lower_name
        return self.type is AccountType.ASSET and ("bank" in name or "cash" in name)


@dataclass(frozen=True)
class ExistingTransaction:
    id: str
    amount: Decimal
    date: date
    description: str
    type: TransactionType
    account_id: str | None = None


@dataclass(frozen=True)
class IncomingTransaction:
    type: TransactionType
    amount: Decimal
    description: str
    date: date
    category: str
    original_text: str | None = None
    source: Provenance = Provenance.TEXT_INPUT


@dataclass(frozen=True)
class DuplicateCandidate:
    """An existing transaction that plausibly records the same event."""
    transaction: ExistingTransaction
    score: float

    def to_dict(self) -> dict:
        txn = self.transaction
        return {
            "id": txn.id,
            "amount": float(txn.amount),
            "date": txn.date.isoformat(),
            "description": txn.description,
            "score": self.score,
        }


@dataclass
class AnnotatedTransaction:
    """An incoming transaction plus the engine's suggestions.

    The reviewer may override account_id and include_in_import; the source
    record itself stays untouched.
    """
    transaction: IncomingTransaction
    account_id: str | None = None
    confidence_score: int = 0
    method: str = "no_accounts"
    duplicate_flag: bool = False
    duplicate_matches: list[DuplicateCandidate] = field(default_factory=list)
    include_in_import: bool = True

    def to_dict(self) -> dict:
        """Serialize using the field names the review table expects."""
        txn = self.transaction
        return {
            "type": txn.type.value,
            "amount": float(txn.amount),
            "description": txn.description,
            "date": txn.date.isoformat(),
            "category": txn.category,
            "original_text": txn.original_text,
            "source": txn.source.value,
            "account_id": self.account_id,
            "confidenceScore": self.confidence_score,
            "method": self.method,
            "duplicateFlag": self.duplicate_flag,
            "duplicateMatches": [m.to_dict() for m in self.duplicate_matches],
            "includeInImport": self.include_in_import,
        }
