"""Tests for parsers.extraction — the input boundary."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_import.models import AccountType, Provenance, TransactionType
from ledger_import.parsers.extraction import (
    ExtractionError,
    parse_accounts,
    parse_amount,
    parse_date,
    parse_existing_transactions,
    parse_extracted_transaction,
    parse_extractor_payload,
    parse_reviewed_transaction,
)


def _pdf_row(**kw) -> dict:
    row = dict(
        Type="Expense",
        Amount="350.50",
        Description="Shell garage",
        Date="01/07/2025",
        Destination_of_funds="Fuel",
    )
    row.update(kw)
    return row


class TestParseDate:
    def test_iso(self):
        assert parse_date("2025-07-01") == date(2025, 7, 1)

    def test_day_month_year(self):
        assert parse_date("01/07/2025") == date(2025, 7, 1)

    def test_strips_whitespace(self):
        assert parse_date(" 2025-07-01 ") == date(2025, 7, 1)

    def test_date_passthrough(self):
        assert parse_date(date(2025, 7, 1)) == date(2025, 7, 1)

    def test_unparseable_raises(self):
        with pytest.raises(ExtractionError, match="Unparseable date"):
            parse_date("July first")

    def test_invalid_calendar_day_raises(self):
        with pytest.raises(ExtractionError):
            parse_date("31/02/2025")

    def test_missing_raises(self):
        with pytest.raises(ExtractionError, match="Missing or invalid date"):
            parse_date(None)

    def test_empty_raises(self):
        with pytest.raises(ExtractionError):
            parse_date("")


class TestParseAmount:
    def test_string(self):
        assert parse_amount("500.00") == Decimal("500.00")

    def test_float_keeps_decimal_digits(self):
        assert parse_amount(500.1) == Decimal("500.1")

    def test_int(self):
        assert parse_amount(42) == Decimal("42")

    def test_negative(self):
        assert parse_amount("-12.5") == Decimal("-12.5")

    def test_missing_uses_default(self):
        assert parse_amount(None, default=Decimal("0")) == Decimal("0")

    def test_missing_without_default_raises(self):
        with pytest.raises(ExtractionError, match="Missing amount"):
            parse_amount(None)

    def test_garbage_raises(self):
        with pytest.raises(ExtractionError, match="Invalid amount"):
            parse_amount("five hundred")

    def test_nan_raises(self):
        with pytest.raises(ExtractionError):
            parse_amount("NaN")

    def test_bool_raises(self):
        with pytest.raises(ExtractionError):
            parse_amount(True)


class TestParseExtractedTransaction:
    def test_pdf_record(self):
        txn = parse_extracted_transaction(_pdf_row(), Provenance.PDF_UPLOAD)
        assert txn.type is TransactionType.EXPENSE
        assert txn.amount == Decimal("350.50")
        assert txn.description == "Shell garage"
        assert txn.date == date(2025, 7, 1)
        assert txn.category == "Fuel"
        assert txn.source is Provenance.PDF_UPLOAD

    def test_source_as_string(self):
        txn = parse_extracted_transaction(_pdf_row(), "pdf-upload")
        assert txn.source is Provenance.PDF_UPLOAD

    def test_text_record_uses_customer_name(self):
        row = dict(Type="income", Amount=1200, Description="Consulting", Date="2025-07-05",
                   Customer_name="Acme Ltd")
        txn = parse_extracted_transaction(row, Provenance.TEXT_INPUT)
        assert txn.category == "Acme Ltd"

    def test_lowercase_keys(self):
        row = dict(type="expense", amount=500, description="Office rent", date="2025-07-01",
                   category="Rent")
        txn = parse_extracted_transaction(row, Provenance.TEXT_INPUT)
        assert txn.category == "Rent"
        assert txn.amount == Decimal("500")

    def test_missing_type_defaults_to_expense(self):
        row = _pdf_row()
        del row["Type"]
        txn = parse_extracted_transaction(row, Provenance.PDF_UPLOAD)
        assert txn.type is TransactionType.EXPENSE

    def test_unknown_type_raises(self):
        with pytest.raises(ExtractionError, match="Unknown transaction type"):
            parse_extracted_transaction(_pdf_row(Type="transfer"), Provenance.PDF_UPLOAD)

    def test_missing_amount_defaults_to_zero(self):
        row = _pdf_row()
        del row["Amount"]
        txn = parse_extracted_transaction(row, Provenance.PDF_UPLOAD)
        assert txn.amount == Decimal("0")

    def test_missing_date_raises(self):
        row = _pdf_row()
        del row["Date"]
        with pytest.raises(ExtractionError):
            parse_extracted_transaction(row, Provenance.PDF_UPLOAD)

    def test_bad_date_raises(self):
        with pytest.raises(ExtractionError):
            parse_extracted_transaction(_pdf_row(Date="yesterday"), Provenance.PDF_UPLOAD)

    def test_defaults_for_missing_text(self):
        row = _pdf_row()
        del row["Description"]
        del row["Destination_of_funds"]
        txn = parse_extracted_transaction(row, Provenance.PDF_UPLOAD)
        assert txn.description == "Imported Transaction"
        assert txn.category == "Uncategorized"
        assert txn.original_text == "Imported Transaction"

    def test_original_text_kept(self):
        txn = parse_extracted_transaction(
            _pdf_row(Original_Text="SHELL GARAGE 350.50"), Provenance.PDF_UPLOAD,
        )
        assert txn.original_text == "SHELL GARAGE 350.50"

    def test_generic_income_category_becomes_sales_revenue(self):
        row = _pdf_row(Type="income", Destination_of_funds="General Income")
        txn = parse_extracted_transaction(row, Provenance.PDF_UPLOAD)
        assert txn.category == "Sales Revenue"

    def test_generic_category_kept_for_expense(self):
        row = _pdf_row(Destination_of_funds="income")
        txn = parse_extracted_transaction(row, Provenance.PDF_UPLOAD)
        assert txn.category == "income"

    def test_non_dict_raises(self):
        with pytest.raises(ExtractionError, match="must be an object"):
            parse_extracted_transaction(["not", "a", "dict"], Provenance.PDF_UPLOAD)


class TestParseExtractorPayload:
    def test_payload_with_source(self):
        payload = {"source": "pdf-upload", "transactions": [_pdf_row(), _pdf_row(Amount="10")]}
        txns = parse_extractor_payload(payload)
        assert len(txns) == 2
        assert all(t.source is Provenance.PDF_UPLOAD for t in txns)

    def test_explicit_source_wins(self):
        payload = {"source": "pdf-upload", "transactions": [_pdf_row()]}
        txns = parse_extractor_payload(payload, source="audio-input")
        assert txns[0].source is Provenance.AUDIO_INPUT

    def test_bare_list(self):
        txns = parse_extractor_payload([_pdf_row()], source="pdf-upload")
        assert len(txns) == 1

    def test_missing_source_raises(self):
        with pytest.raises(ExtractionError, match="no source"):
            parse_extractor_payload({"transactions": [_pdf_row()]})

    def test_unknown_source_raises(self):
        with pytest.raises(ExtractionError, match="Unknown source"):
            parse_extractor_payload({"source": "fax", "transactions": [_pdf_row()]})

    def test_missing_transactions_raises(self):
        with pytest.raises(ExtractionError, match="no transactions list"):
            parse_extractor_payload({"source": "pdf-upload"})

    def test_error_names_record_index(self):
        payload = {"source": "pdf-upload", "transactions": [_pdf_row(), _pdf_row(Date="??")]}
        with pytest.raises(ExtractionError, match="Transaction 1"):
            parse_extractor_payload(payload)

    def test_empty_list(self):
        assert parse_extractor_payload({"source": "text-input", "transactions": []}) == []


class TestParseAccounts:
    def test_parses_in_order(self):
        accounts = parse_accounts([
            {"id": 7, "name": "Fuel Expense", "type": "Expense", "code": "6100"},
            {"id": "bank", "name": "Bank Account", "type": "asset"},
        ])
        assert [a.id for a in accounts] == ["7", "bank"]
        assert accounts[0].type is AccountType.EXPENSE
        assert accounts[0].code == "6100"
        assert accounts[1].code is None

    def test_unknown_type_raises(self):
        with pytest.raises(ExtractionError, match="Unknown account type"):
            parse_accounts([{"id": "1", "name": "Mystery", "type": "other"}])

    def test_missing_id_raises(self):
        with pytest.raises(ExtractionError, match="without id"):
            parse_accounts([{"name": "Fuel Expense", "type": "expense"}])

    def test_non_object_row_raises(self):
        with pytest.raises(ExtractionError, match="must be an object"):
            parse_accounts(["Fuel Expense"])

    def test_duplicate_id_raises(self):
        with pytest.raises(ExtractionError, match="Duplicate account id"):
            parse_accounts([
                {"id": "1", "name": "A", "type": "asset"},
                {"id": "1", "name": "B", "type": "asset"},
            ])


class TestParseExistingTransactions:
    def test_parses(self):
        existing = parse_existing_transactions([{
            "id": 11, "amount": "500.00", "date": "2025-07-02",
            "description": "office rent july", "type": "expense", "account_id": 3,
        }])
        assert existing[0].id == "11"
        assert existing[0].amount == Decimal("500.00")
        assert existing[0].date == date(2025, 7, 2)
        assert existing[0].account_id == "3"

    def test_bad_date_raises(self):
        with pytest.raises(ExtractionError):
            parse_existing_transactions([{
                "id": 1, "amount": 5, "date": "soon", "description": "x", "type": "expense",
            }])

    def test_missing_id_raises(self):
        with pytest.raises(ExtractionError, match="without id"):
            parse_existing_transactions([{
                "amount": 5, "date": "2025-07-01", "description": "x", "type": "expense",
            }])


class TestParseReviewedTransaction:
    def _row(self, **kw) -> dict:
        row = {
            "type": "expense", "amount": 350.5, "description": "Shell garage",
            "date": "2025-07-01", "category": "Fuel", "original_text": "SHELL",
            "source": "pdf-upload", "account_id": "fuel", "confidenceScore": 90,
            "method": "fuel", "duplicateFlag": False, "duplicateMatches": [],
            "includeInImport": True,
        }
        row.update(kw)
        return row

    def test_round_trip_fields(self):
        reviewed = parse_reviewed_transaction(self._row())
        assert reviewed.transaction.amount == Decimal("350.5")
        assert reviewed.transaction.source is Provenance.PDF_UPLOAD
        assert reviewed.account_id == "fuel"
        assert reviewed.confidence_score == 90
        assert reviewed.include_in_import is True

    def test_reviewer_exclusion(self):
        reviewed = parse_reviewed_transaction(self._row(includeInImport=False))
        assert reviewed.include_in_import is False

    def test_empty_account_becomes_none(self):
        reviewed = parse_reviewed_transaction(self._row(account_id=""))
        assert reviewed.account_id is None

    def test_include_must_be_bool(self):
        with pytest.raises(ExtractionError, match="includeInImport"):
            parse_reviewed_transaction(self._row(includeInImport="yes"))
