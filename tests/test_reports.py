"""Tests for the report filter."""

import pytest
from datetime import date, datetime
from decimal import Decimal

from finance_tracker.errors import ValidationError
from finance_tracker.models.finance import LedgerSnapshot, Tag, Transaction, TransactionType
from finance_tracker.queries import filter_transactions


def tx(id, amount, when, type, category="Outros", tags=()):
    return Transaction(
        id=id,
        description=id,
        amount=Decimal(amount),
        date=when,
        category=category,
        type=type,
        account_id="1",
        tags=list(tags),
    )


@pytest.fixture
def january():
    return LedgerSnapshot(
        tags=(Tag(id="t1", name="viagem"),),
        transactions=(
            tx("expense", "50", datetime(2024, 1, 15), TransactionType.EXPENSE, "Lazer", ["t1"]),
            tx("income", "20", datetime(2024, 1, 20), TransactionType.INCOME, "Salário"),
        ),
    )


class TestFilterTransactions:
    """Tests for filter_transactions."""

    def test_january_expenses(self, january):
        """Test the expense-only January report."""
        result = filter_transactions(january, "2024-01-01", "2024-01-31", type="expense")
        assert [t.id for t in result.transactions] == ["expense"]
        assert result.net_total == Decimal("-50")
        assert result.count == 1

    def test_unfiltered_net_and_order(self, january):
        """Test all dimensions pass when not given; newest first."""
        result = filter_transactions(january, date(2024, 1, 1), date(2024, 1, 31))
        assert [t.id for t in result.transactions] == ["income", "expense"]
        assert result.income_total == Decimal("20")
        assert result.expense_total == Decimal("50")
        assert result.net_total == Decimal("-30")

    def test_bounds_are_inclusive(self, january):
        """Test transactions on the start and end dates are included."""
        result = filter_transactions(january, "2024-01-15", "2024-01-20")
        assert result.count == 2

    def test_end_date_includes_late_times(self):
        """Test a transaction late on the end date is included."""
        snapshot = LedgerSnapshot(transactions=(
            tx("late", "5", datetime(2024, 1, 31, 23, 59), TransactionType.EXPENSE),
        ))
        result = filter_transactions(snapshot, "2024-01-01", "2024-01-31")
        assert result.count == 1

    def test_category_filter(self, january):
        """Test filtering by category name."""
        result = filter_transactions(january, "2024-01-01", "2024-01-31", category="Salário")
        assert [t.id for t in result.transactions] == ["income"]

    def test_tag_filter(self, january):
        """Test filtering by tag id."""
        result = filter_transactions(january, "2024-01-01", "2024-01-31", tag="t1")
        assert [t.id for t in result.transactions] == ["expense"]
        assert "tag: viagem" in result.description

    def test_all_placeholder_means_unfiltered(self, january):
        """Test 'all' is treated like an absent filter."""
        result = filter_transactions(january, "2024-01-01", "2024-01-31", category="all", type="all")
        assert result.count == 2

    def test_empty_result(self, january):
        """Test an empty match gives an empty list and zero totals."""
        result = filter_transactions(january, "2024-02-01", "2024-02-29")
        assert result.transactions == ()
        assert result.net_total == Decimal("0")
        assert result.is_empty

    def test_inverted_range(self, january):
        """Test a start date after the end date is rejected."""
        with pytest.raises(ValidationError, match="End date cannot be before start date"):
            filter_transactions(january, "2024-02-01", "2024-01-01")

    def test_bad_date(self, january):
        """Test an unparseable date is rejected."""
        with pytest.raises(ValidationError):
            filter_transactions(january, "yesterday", "2024-01-01")

    def test_description(self, january):
        """Test the description names the filters and the period."""
        result = filter_transactions(january, "2024-01-01", "2024-01-31", type="expense")
        assert result.description == "Transactions | type: expense | in January 2024"
