"""Shared contract for account classifiers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from ledger_import.models import Account, AccountType, IncomingTransaction


@dataclass(frozen=True)
class Classification:
    """Suggested account for one transaction."""
    account_id: str | None
    confidence: int
    method: str  # rule name, "type_match", "bank_cash", "first_account", "no_accounts"

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Confidence out of range: {self.confidence}")


NO_ACCOUNTS = Classification(account_id=None, confidence=0, method="no_accounts")


def check_confidence(value: int, field_name: str) -> int:
    """Raise ValueError unless value is a 0-100 confidence."""
    if not 0 <= value <= 100:
        raise ValueError(f"{field_name} must be between 0 and 100: {value}")
    return value


def keyword_list(value, field_name: str) -> tuple[str, ...]:
    """Lower-cased keywords from a YAML list of non-empty strings.

    A bare string is rejected rather than iterated character by character.
    """
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{field_name} must be a list of strings: {value!r}")
    for keyword in value:
        if not isinstance(keyword, str) or not keyword.strip():
            raise ValueError(f"{field_name} must be a list of strings: {value!r}")
    return tuple(keyword.lower() for keyword in value)


class AccountClassifier(ABC):
    """Suggest a ledger account for an incoming transaction.

    Implementations must be pure: the same transaction and catalog always
    give the same answer, and an empty catalog gives NO_ACCOUNTS rather
    than an exception.
    """

    name: str = "base"

    @abstractmethod
    def classify(
        self, transaction: IncomingTransaction, accounts: Sequence[Account]
    ) -> Classification:
        """Return the suggested account and a 0-100 confidence."""


def find_account(
    accounts: Sequence[Account],
    name_keywords: Sequence[str],
    account_type: AccountType | None = None,
) -> Account | None:
    """First account (in catalog order) whose name contains any keyword."""
    for account in accounts:
        if account_type is not None and account.type is not account_type:
            continue
        name = account.lower_name
        if any(keyword in name for keyword in name_keywords):
            return account
    return None


def find_by_type(accounts: Sequence[Account], account_type: AccountType) -> Account | None:
    for account in accounts:
        if account.type is account_type:
            return account
    return None
