"""Keyword cascade for records extracted from receipts and PDFs.

Extracted records carry a fairly clean category, so a fixed priority list
of keyword rules does well. Rules live in structured_rules.yaml and are
evaluated in order; the first rule that matches the transaction and finds a
suitable account in the catalog wins.

Fallbacks when no rule resolves:
  1. First account of the expected type (income→income, expense→expense,
     debt→liability) — confidence 60
  2. Bank account, then cash asset account — confidence 40
  3. First account in the catalog — confidence 20
  4. No account — confidence 0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from ledger_import.categorize.base import (
    NO_ACCOUNTS,
    AccountClassifier,
    Classification,
    check_confidence,
    find_account,
    find_by_type,
    keyword_list,
)
from ledger_import.models import (
    EXPECTED_ACCOUNT_TYPE,
    Account,
    AccountType,
    IncomingTransaction,
    TransactionType,
)
from ledger_import.parsers.base import contains_any, lower

if TYPE_CHECKING:
    from ledger_import.config import Config

logger = logging.getLogger(__name__)

TYPE_MATCH_CONFIDENCE = 60
BANK_CASH_CONFIDENCE = 40
FIRST_ACCOUNT_CONFIDENCE = 20
BANK_KEYWORDS = ("bank account",)
CASH_KEYWORDS = ("cash",)


@dataclass(frozen=True)
class StructuredRule:
    """One row of the keyword cascade."""
    name: str
    transaction_type: TransactionType
    category_keywords: tuple[str, ...]
    description_keywords: tuple[str, ...]
    account_keywords: tuple[str, ...]
    account_type: AccountType
    confidence: int

    def matches(self, transaction: IncomingTransaction) -> bool:
        if transaction.type is not self.transaction_type:
            return False
        return (
            contains_any(lower(transaction.category), self.category_keywords)
            or contains_any(lower(transaction.description), self.description_keywords)
        )

    def resolve(self, accounts: Sequence[Account]) -> Account | None:
        return find_account(accounts, self.account_keywords, self.account_type)

    @classmethod
    def from_dict(cls, data: dict) -> StructuredRule:
        """Build a rule from its YAML form.

        Raises:
            ValueError: on missing keys, unknown types, keyword fields that
                are not lists of strings, or out-of-range confidence.
        """
        try:
            confidence = int(data["confidence"])
            account_keywords = keyword_list(data["account_keywords"], "account_keywords")
            if not account_keywords:
                raise ValueError("no account keywords")
            check_confidence(confidence, "confidence")
            return cls(
                name=str(data.get("name") or account_keywords[0]),
                transaction_type=TransactionType(data["transaction_type"]),
                category_keywords=keyword_list(
                    data.get("category_keywords", []), "category_keywords"
                ),
                description_keywords=keyword_list(
                    data.get("description_keywords", []), "description_keywords"
                ),
                account_keywords=account_keywords,
                account_type=AccountType(data["account_type"]),
                confidence=confidence,
            )
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise ValueError(f"Invalid structured rule {data!r}: {e}") from e


def load_structured_rules(raw_rules: list[dict]) -> list[StructuredRule]:
    """Parse the cascade, skipping (and logging) malformed rules."""
    rules = []
    for raw in raw_rules:
        try:
            rules.append(StructuredRule.from_dict(raw))
        except ValueError as e:
            logger.warning("Skipping structured rule: %s", e)
    return rules


class StructuredClassifier(AccountClassifier):
    """First-match keyword cascade with type/bank/first-account fallbacks."""

    name = "structured"

    def __init__(
        self,
        rules: Sequence[StructuredRule],
        type_match_confidence: int = TYPE_MATCH_CONFIDENCE,
        bank_cash_confidence: int = BANK_CASH_CONFIDENCE,
        first_account_confidence: int = FIRST_ACCOUNT_CONFIDENCE,
        bank_keywords: Sequence[str] = BANK_KEYWORDS,
        cash_keywords: Sequence[str] = CASH_KEYWORDS,
    ):
        self.rules = tuple(rules)
        self.type_match_confidence = check_confidence(
            type_match_confidence, "type_match_confidence"
        )
        self.bank_cash_confidence = check_confidence(bank_cash_confidence, "bank_cash_confidence")
        self.first_account_confidence = check_confidence(
            first_account_confidence, "first_account_confidence"
        )
        self.bank_keywords = keyword_list(bank_keywords, "bank_keywords")
        self.cash_keywords = keyword_list(cash_keywords, "cash_keywords")

    @classmethod
    def from_config(cls, config: Config) -> StructuredClassifier:
        params = config.structured_params
        return cls(
            load_structured_rules(config.structured_rules),
            type_match_confidence=int(params.get("type_match_confidence", TYPE_MATCH_CONFIDENCE)),
            bank_cash_confidence=int(params.get("bank_cash_confidence", BANK_CASH_CONFIDENCE)),
            first_account_confidence=int(
                params.get("first_account_confidence", FIRST_ACCOUNT_CONFIDENCE)
            ),
            bank_keywords=params.get("bank_keywords", BANK_KEYWORDS),
            cash_keywords=params.get("cash_keywords", CASH_KEYWORDS),
        )

    def classify(
        self, transaction: IncomingTransaction, accounts: Sequence[Account]
    ) -> Classification:
        if not accounts:
            return NO_ACCOUNTS

        for rule in self.rules:
            if not rule.matches(transaction):
                continue
            account = rule.resolve(accounts)
            if account is not None:
                logger.debug(
                    "Structured rule %s: %r -> %s", rule.name, transaction.description, account.id,
                )
                return Classification(account.id, rule.confidence, rule.name)

        return self._fallback(transaction, accounts)

    def _fallback(
        self, transaction: IncomingTransaction, accounts: Sequence[Account]
    ) -> Classification:
        account = find_by_type(accounts, EXPECTED_ACCOUNT_TYPE[transaction.type])
        if account is not None:
            return Classification(account.id, self.type_match_confidence, "type_match")

        account = (
            find_account(accounts, self.bank_keywords, AccountType.ASSET)
            or find_account(accounts, self.cash_keywords, AccountType.ASSET)
        )
        if account is not None:
            return Classification(account.id, self.bank_cash_confidence, "bank_cash")

        return Classification(accounts[0].id, self.first_account_confidence, "first_account")
