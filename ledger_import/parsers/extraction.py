"""Input boundary: extractor and ledger JSON → typed records.

The extraction service returns loosely-typed records with capitalized keys
(Type, Amount, Description, Date, Destination_of_funds, Customer_name,
Original_Text). The ledger service returns accounts and existing
transactions with lower-case keys. Everything is validated here so the
engine only ever sees well-typed records.

Unparseable dates, amounts and unknown type tags raise ExtractionError.
They are never replaced with defaults: a silently defaulted date would hide
duplicates and skew account suggestions.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from ledger_import.models import (
    Account,
    AccountType,
    AnnotatedTransaction,
    ExistingTransaction,
    IncomingTransaction,
    Provenance,
    TransactionType,
)

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Imported Transaction"
DEFAULT_CATEGORY = "Uncategorized"
GENERIC_INCOME_CATEGORIES = {"income", "general income"}
GENERIC_INCOME_REPLACEMENT = "Sales Revenue"

# Extractor key that carries the category, per provenance
_CATEGORY_KEYS = {
    Provenance.PDF_UPLOAD: ("Destination_of_funds", "category"),
    Provenance.TEXT_INPUT: ("Customer_name", "category"),
    Provenance.AUDIO_INPUT: ("Destination_of_funds", "category"),
}


class ExtractionError(ValueError):
    """Raised when an input record cannot be converted to a typed record."""


def _get(raw: dict, *keys: str):
    """Return the first present, non-None value among keys."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def parse_date(value) -> date:
    """Parse DD/MM/YYYY (extractor form) or YYYY-MM-DD.

    Raises:
        ExtractionError: if value is missing or not a valid calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        raise ExtractionError(f"Missing or invalid date: {value!r}")
    text = value.strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ExtractionError(f"Unparseable date: {value!r}")


def parse_amount(value, default: Decimal | None = None) -> Decimal:
    """Convert an amount to Decimal.

    Floats go through str() so 500.1 stays 500.1 rather than its binary
    expansion. Booleans are rejected even though they are ints.
    """
    if value is None or value == "":
        if default is not None:
            return default
        raise ExtractionError("Missing amount")
    if isinstance(value, bool):
        raise ExtractionError(f"Invalid amount: {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ExtractionError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise ExtractionError(f"Invalid amount: {value!r}")
    return amount


def parse_transaction_type(value, default: TransactionType | None = None) -> TransactionType:
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise ExtractionError("Missing transaction type")
    try:
        return TransactionType(str(value).strip().lower())
    except ValueError as e:
        raise ExtractionError(f"Unknown transaction type: {value!r}") from e


def parse_account_type(value) -> AccountType:
    try:
        return AccountType(str(value).strip().lower())
    except ValueError as e:
        raise ExtractionError(f"Unknown account type: {value!r}") from e


def parse_provenance(value) -> Provenance:
    try:
        return Provenance(str(value).strip().lower())
    except ValueError as e:
        raise ExtractionError(f"Unknown source: {value!r}") from e


# ── Extractor records ────────────────────────────────────


def parse_extracted_transaction(raw: dict, source: Provenance | str) -> IncomingTransaction:
    """Convert one extractor record into an IncomingTransaction.

    Missing type defaults to expense and missing amount to 0, as the
    extraction service omits them for unreadable lines. Generic income
    categories ("income", "general income") are mapped to Sales Revenue.
    """
    if not isinstance(raw, dict):
        raise ExtractionError(f"Transaction record must be an object, got {type(raw).__name__}")
    source = parse_provenance(source) if not isinstance(source, Provenance) else source

    txn_type = parse_transaction_type(
        _get(raw, "Type", "type"), default=TransactionType.EXPENSE,
    )
    amount = parse_amount(_get(raw, "Amount", "amount"), default=Decimal("0"))
    txn_date = parse_date(_get(raw, "Date", "date"))

    description = _get(raw, "Description", "description") or DEFAULT_DESCRIPTION
    category = str(_get(raw, *_CATEGORY_KEYS[source]) or DEFAULT_CATEGORY)
    if txn_type is TransactionType.INCOME and category.lower() in GENERIC_INCOME_CATEGORIES:
        category = GENERIC_INCOME_REPLACEMENT

    original_text = _get(raw, "Original_Text", "original_text") or description

    return IncomingTransaction(
        type=txn_type,
        amount=amount,
        description=str(description),
        date=txn_date,
        category=str(category),
        original_text=str(original_text),
        source=source,
    )


def parse_extractor_payload(payload, source: Provenance | str | None = None) -> list[IncomingTransaction]:
    """Parse a full extractor response.

    Accepts either {"transactions": [...], "source": ...} or a bare list.
    An explicit source argument wins over the payload's own source key.
    """
    if isinstance(payload, dict):
        records = payload.get("transactions")
        if source is None:
            source = payload.get("source")
    else:
        records = payload
    if not isinstance(records, list):
        raise ExtractionError("Extractor payload has no transactions list")
    if source is None:
        raise ExtractionError("Extractor payload has no source")

    parsed = []
    for index, raw in enumerate(records):
        try:
            parsed.append(parse_extracted_transaction(raw, source))
        except ExtractionError as e:
            raise ExtractionError(f"Transaction {index}: {e}") from e
    logger.debug("Parsed %d extracted transaction(s) from %s", len(parsed), source)
    return parsed


# ── Ledger records ───────────────────────────────────────


def parse_accounts(rows: list[dict]) -> list[Account]:
    """Validate the ledger's account catalog, preserving its order."""
    accounts = []
    seen: set[str] = set()
    for row in rows:
        if not isinstance(row, dict):
            raise ExtractionError(f"Account record must be an object: {row!r}")
        account_id = row.get("id")
        if account_id is None or account_id == "":
            raise ExtractionError(f"Account without id: {row!r}")
        account_id = str(account_id)
        if account_id in seen:
            raise ExtractionError(f"Duplicate account id: {account_id}")
        seen.add(account_id)
        code = row.get("code")
        accounts.append(Account(
            id=account_id,
            name=str(row.get("name") or ""),
            type=parse_account_type(row.get("type")),
            code=str(code) if code is not None else None,
        ))
    return accounts


def parse_existing_transactions(rows: list[dict]) -> list[ExistingTransaction]:
    """Validate the ledger's recent-transaction window."""
    existing = []
    for row in rows:
        if not isinstance(row, dict):
            raise ExtractionError(f"Transaction record must be an object: {row!r}")
        txn_id = row.get("id")
        if txn_id is None or txn_id == "":
            raise ExtractionError(f"Transaction without id: {row!r}")
        account_id = row.get("account_id")
        existing.append(ExistingTransaction(
            id=str(txn_id),
            amount=parse_amount(row.get("amount")),
            date=parse_date(row.get("date")),
            description=str(row.get("description") or ""),
            type=parse_transaction_type(row.get("type")),
            account_id=str(account_id) if account_id is not None else None,
        ))
    return existing


# ── Reviewed records ─────────────────────────────────────


def parse_reviewed_transaction(row: dict) -> AnnotatedTransaction:
    """Rebuild an annotated record after human review.

    Reads the JSON written by AnnotatedTransaction.to_dict(), including
    reviewer edits to type, amount, date, category, account_id and
    includeInImport. Duplicate matches are informational only and are not
    read back.
    """
    if not isinstance(row, dict):
        raise ExtractionError(f"Reviewed record must be an object: {row!r}")
    transaction = IncomingTransaction(
        type=parse_transaction_type(row.get("type")),
        amount=parse_amount(row.get("amount")),
        description=str(row.get("description") or DEFAULT_DESCRIPTION),
        date=parse_date(row.get("date")),
        category=str(row.get("category") or DEFAULT_CATEGORY),
        original_text=row.get("original_text"),
        source=parse_provenance(row.get("source") or Provenance.TEXT_INPUT.value),
    )
    account_id = row.get("account_id")
    include = row.get("includeInImport", True)
    if not isinstance(include, bool):
        raise ExtractionError(f"includeInImport must be true or false: {include!r}")
    return AnnotatedTransaction(
        transaction=transaction,
        account_id=str(account_id) if account_id else None,
        confidence_score=int(row.get("confidenceScore") or 0),
        method=str(row.get("method") or "reviewed"),
        duplicate_flag=bool(row.get("duplicateFlag", False)),
        include_in_import=include,
    )
