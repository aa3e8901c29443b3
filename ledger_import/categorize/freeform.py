"""Weighted scoring for records extracted from freeform text or speech.

Natural-language descriptions vary too much for a first-match cascade, so
every account in the catalog is scored additively:

  +100  description contains the full account name (name longer than 3 chars)
   +80  category contains the full account name
   +70  per contextual phrase rule pointing at the account
   +10  per significant name keyword found in the description
    +8  per significant name keyword found in the category
   +15  transaction type fits the account type
    +5  bank or cash asset account

The best account wins if its score exceeds 60 (confidence = min(100, score)).
Otherwise the type/bank-cash/first-account fallbacks apply at 40/20/10.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

from ledger_import.categorize.base import (
    NO_ACCOUNTS,
    AccountClassifier,
    Classification,
    check_confidence,
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
from ledger_import.parsers.base import lower

if TYPE_CHECKING:
    from ledger_import.config import Config

logger = logging.getLogger(__name__)

ACCEPT_THRESHOLD = 60
MIN_NAME_LENGTH = 3
MIN_KEYWORD_LENGTH = 2

DESCRIPTION_NAME_SCORE = 100
CATEGORY_NAME_SCORE = 80
PHRASE_SCORE = 70
DESCRIPTION_KEYWORD_SCORE = 10
CATEGORY_KEYWORD_SCORE = 8
TYPE_ALIGNMENT_SCORE = 15
BANK_CASH_SCORE = 5

FALLBACK_TYPE_MATCH_CONFIDENCE = 40
FALLBACK_BANK_CASH_CONFIDENCE = 20
FALLBACK_FIRST_ACCOUNT_CONFIDENCE = 10

STOP_WORDS = frozenset({
    "and", "of", "for", "the", "a", "an",
    "expense", "income", "payable", "receivable",
})


@dataclass(frozen=True)
class PhraseRule:
    """Description phrase that points at a specific kind of account."""
    phrase: str
    account_keyword: str
    account_type: AccountType

    def applies(self, description: str, account: Account) -> bool:
        return (
            self.phrase in description
            and self.account_keyword in account.lower_name
            and account.type is self.account_type
        )

    @classmethod
    def from_dict(cls, data: dict) -> PhraseRule:
        try:
            return cls(
                phrase=data["phrase"].lower(),
                account_keyword=data["account_keyword"].lower(),
                account_type=AccountType(data["account_type"]),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Invalid phrase rule {data!r}: {e}") from e


def load_phrase_rules(raw_rules: list[dict]) -> list[PhraseRule]:
    """Parse phrase rules, skipping (and logging) malformed ones."""
    rules = []
    for raw in raw_rules:
        try:
            rules.append(PhraseRule.from_dict(raw))
        except ValueError as e:
            logger.warning("Skipping phrase rule: %s", e)
    return rules


@dataclass(frozen=True)
class FreeformSettings:
    accept_threshold: int = ACCEPT_THRESHOLD
    min_name_length: int = MIN_NAME_LENGTH
    min_keyword_length: int = MIN_KEYWORD_LENGTH
    description_name_score: int = DESCRIPTION_NAME_SCORE
    category_name_score: int = CATEGORY_NAME_SCORE
    phrase_score: int = PHRASE_SCORE
    description_keyword_score: int = DESCRIPTION_KEYWORD_SCORE
    category_keyword_score: int = CATEGORY_KEYWORD_SCORE
    type_alignment_score: int = TYPE_ALIGNMENT_SCORE
    bank_cash_score: int = BANK_CASH_SCORE
    fallback_type_match_confidence: int = FALLBACK_TYPE_MATCH_CONFIDENCE
    fallback_bank_cash_confidence: int = FALLBACK_BANK_CASH_CONFIDENCE
    fallback_first_account_confidence: int = FALLBACK_FIRST_ACCOUNT_CONFIDENCE
    stop_words: frozenset[str] = field(default=STOP_WORDS)

    def __post_init__(self):
        check_confidence(self.fallback_type_match_confidence, "fallback type_match_confidence")
        check_confidence(self.fallback_bank_cash_confidence, "fallback bank_cash_confidence")
        check_confidence(
            self.fallback_first_account_confidence, "fallback first_account_confidence"
        )

    @classmethod
    def from_config(cls, config: Config) -> FreeformSettings:
        params = config.freeform_params
        scores = params.get("scores", {}) or {}
        fallback = params.get("fallback", {}) or {}
        stop_words = params.get("stop_words")
        return cls(
            accept_threshold=int(params.get("accept_threshold", ACCEPT_THRESHOLD)),
            min_name_length=int(params.get("min_name_length", MIN_NAME_LENGTH)),
            min_keyword_length=int(params.get("min_keyword_length", MIN_KEYWORD_LENGTH)),
            description_name_score=int(scores.get("description_name", DESCRIPTION_NAME_SCORE)),
            category_name_score=int(scores.get("category_name", CATEGORY_NAME_SCORE)),
            phrase_score=int(scores.get("phrase", PHRASE_SCORE)),
            description_keyword_score=int(
                scores.get("description_keyword", DESCRIPTION_KEYWORD_SCORE)
            ),
            category_keyword_score=int(scores.get("category_keyword", CATEGORY_KEYWORD_SCORE)),
            type_alignment_score=int(scores.get("type_alignment", TYPE_ALIGNMENT_SCORE)),
            bank_cash_score=int(scores.get("bank_cash", BANK_CASH_SCORE)),
            fallback_type_match_confidence=int(
                fallback.get("type_match_confidence", FALLBACK_TYPE_MATCH_CONFIDENCE)
            ),
            fallback_bank_cash_confidence=int(
                fallback.get("bank_cash_confidence", FALLBACK_BANK_CASH_CONFIDENCE)
            ),
            fallback_first_account_confidence=int(
                fallback.get("first_account_confidence", FALLBACK_FIRST_ACCOUNT_CONFIDENCE)
            ),
            stop_words=(
                frozenset(keyword_list(stop_words, "stop_words"))
                if stop_words is not None else STOP_WORDS
            ),
        )


def type_aligned(transaction_type: TransactionType, account: Account) -> bool:
    """Return True if the account type is what the transaction type expects.

    Besides the direct mapping, income may land in a receivable asset and
    an expense in a payable liability.
    """
    if account.type is EXPECTED_ACCOUNT_TYPE[transaction_type]:
        return True
    name = account.lower_name
    if transaction_type is TransactionType.INCOME:
        return account.type is AccountType.ASSET and "receivable" in name
    if transaction_type is TransactionType.EXPENSE:
        return account.type is AccountType.LIABILITY and "payable" in name
    return False


class FreeformClassifier(AccountClassifier):
    """Additive phrase and keyword scoring over the whole catalog."""

    name = "freeform"

    def __init__(
        self,
        phrase_rules: Sequence[PhraseRule] = (),
        settings: FreeformSettings | None = None,
    ):
        self.phrase_rules = tuple(phrase_rules)
        self.settings = settings or FreeformSettings()

    @classmethod
    def from_config(cls, config: Config) -> FreeformClassifier:
        return cls(
            load_phrase_rules(config.phrase_rules),
            FreeformSettings.from_config(config),
        )

    def keywords(self, account: Account) -> list[str]:
        """Significant words of the account name, in name order."""
        s = self.settings
        return [
            word for word in account.lower_name.split()
            if len(word) > s.min_keyword_length and word not in s.stop_words
        ]

    def score(self, transaction: IncomingTransaction, account: Account) -> int:
        """Cumulative score of one account for one transaction."""
        s = self.settings
        description = lower(transaction.description)
        category = lower(transaction.category)
        name = account.lower_name
        total = 0

        if len(name) > s.min_name_length:
            if name in description:
                total += s.description_name_score
            if name in category:
                total += s.category_name_score

        for rule in self.phrase_rules:
            if rule.applies(description, account):
                total += s.phrase_score

        for keyword in self.keywords(account):
            if keyword in description:
                total += s.description_keyword_score
            if keyword in category:
                total += s.category_keyword_score

        if type_aligned(transaction.type, account):
            total += s.type_alignment_score
        if account.is_bank_or_cash:
            total += s.bank_cash_score

        return total

    def classify(
        self, transaction: IncomingTransaction, accounts: Sequence[Account]
    ) -> Classification:
        if not accounts:
            return NO_ACCOUNTS

        best: Account | None = None
        best_score = -1
        for account in accounts:
            current = self.score(transaction, account)
            # Strictly greater: the earliest account wins ties
            if current > best_score:
                best, best_score = account, current

        if best is not None and best_score > self.settings.accept_threshold:
            logger.debug(
                "Freeform match: %r -> %s (score %d)", transaction.description, best.id, best_score,
            )
            return Classification(best.id, min(100, best_score), "freeform_score")

        return self._fallback(transaction, accounts)

    def _fallback(
        self, transaction: IncomingTransaction, accounts: Sequence[Account]
    ) -> Classification:
        s = self.settings
        account = find_by_type(accounts, EXPECTED_ACCOUNT_TYPE[transaction.type])
        if account is not None:
            return Classification(account.id, s.fallback_type_match_confidence, "type_match")

        for account in accounts:
            if account.is_bank_or_cash:
                return Classification(account.id, s.fallback_bank_cash_confidence, "bank_cash")

        return Classification(accounts[0].id, s.fallback_first_account_confidence, "first_account")
