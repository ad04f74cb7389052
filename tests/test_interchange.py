"""Tests for JSON and CSV import/export."""

import json
import pytest
from datetime import datetime
from decimal import Decimal

from conftest import make_draft
from finance_tracker.errors import ParseError
from finance_tracker.models.finance import Transaction, TransactionType
from finance_tracker.services.interchange import (
    CSV_COLUMNS,
    export_csv,
    export_transactions,
    parse_csv,
    parse_transactions,
    report_filename,
)


def sample_transactions():
    return [
        Transaction(
            id="aaaaaaaaa",
            description="Salário",
            amount=Decimal("5000.00"),
            date=datetime(2024, 1, 5, 9, 30),
            category="Salário",
            type=TransactionType.INCOME,
            account_id="2",
        ),
        Transaction(
            id="bbbbbbbbb",
            description='Jantar, "especial"',
            amount=Decimal("123.45"),
            date=datetime(2024, 1, 10, 20, 0),
            category="Lazer",
            type=TransactionType.EXPENSE,
            account_id="1",
            tags=["t1", "t2"],
            credit_card_id="k1",
        ),
    ]


class TestJsonDocuments:
    """Tests for the JSON export format."""

    def test_export_is_camel_case_array(self):
        """Test the export is an array of client-shaped objects."""
        documents = json.loads(export_transactions(sample_transactions()))
        assert isinstance(documents, list)
        assert documents[1]["accountId"] == "1"
        assert documents[1]["creditCardId"] == "k1"
        assert documents[1]["tags"] == ["t1", "t2"]
        assert documents[1]["amount"] == 123.45

    def test_round_trip(self):
        """Test export then parse yields the same transactions."""
        original = sample_transactions()
        parsed = parse_transactions(export_transactions(original))
        assert parsed == original

    def test_float_noise_is_rounded_to_cents(self):
        """Test a float-rounded amount is read and written back as cents."""
        payload = json.dumps([make_draft(id="aaaaaaaaa", amount=0.1 + 0.2)])
        parsed = parse_transactions(payload)
        assert parsed[0].amount == Decimal("0.30")
        assert json.loads(export_transactions(parsed))[0]["amount"] == 0.3
        assert parse_transactions(export_transactions(parsed)) == parsed

    def test_parse_accepts_bytes(self):
        """Test an uploaded file body can be parsed directly."""
        data = export_transactions(sample_transactions()).encode("utf-8")
        assert len(parse_transactions(data)) == 2

    def test_missing_id_gets_provisional_one(self):
        """Test elements without an id are still accepted."""
        payload = json.dumps([make_draft()])
        parsed = parse_transactions(payload)
        assert len(parsed[0].id) == 9

    def test_malformed_json(self):
        """Test invalid JSON raises ParseError."""
        with pytest.raises(ParseError, match="Invalid JSON"):
            parse_transactions("[{not json")

    def test_root_must_be_array(self):
        """Test a JSON object root is rejected."""
        with pytest.raises(ParseError, match="array"):
            parse_transactions('{"transactions": []}')

    def test_invalid_element_reports_index(self):
        """Test the failing element is named."""
        payload = json.dumps([make_draft(), make_draft(type="gift")])
        with pytest.raises(ParseError, match="Element 1"):
            parse_transactions(payload)

    def test_non_object_element(self):
        """Test a scalar element is rejected."""
        with pytest.raises(ParseError, match="Element 0"):
            parse_transactions("[42]")


class TestCsvReport:
    """Tests for the CSV report format."""

    def test_export_layout(self):
        """Test headers, date format, labels and two-decimal amounts."""
        lines = export_csv(sample_transactions()).splitlines()
        assert lines[0] == ",".join(CSV_COLUMNS)
        assert lines[1] == "05/01/2024,Salário,Salário,Receita,5000.00"

    def test_export_quotes_delimiters(self):
        """Test a description with a comma and quotes is quoted and escaped."""
        lines = export_csv(sample_transactions()).splitlines()
        assert lines[2] == '10/01/2024,"Jantar, ""especial""",Lazer,Despesa,123.45'

    def test_export_empty(self):
        """Test an empty report is just the header."""
        assert export_csv([]).strip() == ",".join(CSV_COLUMNS)

    def test_round_trip(self):
        """Test export then parse keeps every column the report carries."""
        original = sample_transactions()
        drafts = parse_csv(export_csv(original), account_id="1")
        assert [d.description for d in drafts] == [t.description for t in original]
        assert [d.amount for d in drafts] == [t.amount for t in original]
        assert [d.type for d in drafts] == [t.type for t in original]
        assert [d.date.date() for d in drafts] == [t.date.date() for t in original]
        assert {d.account_id for d in drafts} == {"1"}

    def test_missing_columns(self):
        """Test a CSV without the report headers is rejected."""
        with pytest.raises(ParseError, match="Missing required columns"):
            parse_csv("date,amount\n2024-01-01,10\n", account_id="1")

    def test_bad_date(self):
        """Test an ISO date is not accepted in the dd/mm/yyyy column."""
        data = ",".join(CSV_COLUMNS) + "\n2024-01-10,Mercado,Alimentação,Despesa,10.00\n"
        with pytest.raises(ParseError, match="Row 2"):
            parse_csv(data, account_id="1")

    def test_unknown_type_label(self):
        """Test only Receita and Despesa are accepted."""
        data = ",".join(CSV_COLUMNS) + "\n10/01/2024,Mercado,Alimentação,Transferência,10.00\n"
        with pytest.raises(ParseError, match="unknown type"):
            parse_csv(data, account_id="1")

    def test_bad_amount(self):
        """Test a non-numeric amount is rejected."""
        data = ",".join(CSV_COLUMNS) + "\n10/01/2024,Mercado,Alimentação,Despesa,dez\n"
        with pytest.raises(ParseError, match="bad amount"):
            parse_csv(data, account_id="1")

    def test_empty_file(self):
        """Test an empty upload is rejected."""
        with pytest.raises(ParseError):
            parse_csv("", account_id="1")

    def test_report_filename(self):
        """Test the download name carries the period."""
        from datetime import date
        assert report_filename(date(2024, 1, 1), date(2024, 1, 31)) == "relatorio_2024-01-01_a_2024-01-31.csv"
