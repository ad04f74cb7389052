"""
Tests for the aggregation functions.

Snapshots are built directly so every test controls "today".
"""

import pytest
from datetime import date, datetime
from decimal import Decimal

from finance_tracker.models.finance import (
    Account,
    Category,
    CreditCard,
    LedgerSnapshot,
    NotificationSettings,
    Tag,
    Transaction,
    TransactionType,
)
from finance_tracker.queries import (
    cash_flow_series,
    category_breakdown,
    credit_card_breakdown,
    format_currency,
    month_label,
    monthly_expense,
    monthly_income,
    monthly_summary,
    next_due_date,
    tag_breakdown,
    total_balance,
    upcoming_card_dues,
)


TODAY = date(2024, 3, 15)

INCOME = TransactionType.INCOME
EXPENSE = TransactionType.EXPENSE


def tx(id, amount, when, type=EXPENSE, category="Alimentação", account_id="1", tags=(), card=None):
    return Transaction(
        id=id,
        description=id,
        amount=Decimal(amount),
        date=when,
        category=category,
        type=type,
        account_id=account_id,
        tags=list(tags),
        credit_card_id=card,
    )


@pytest.fixture
def snapshot():
    return LedgerSnapshot(
        accounts=(
            Account(id="1", name="Carteira", balance=Decimal("70")),
            Account(id="2", name="Conta Corrente", balance=Decimal("-12.50")),
        ),
        categories=(
            Category(id="c1", name="Alimentação", color="#f59e0b", type=EXPENSE),
            Category(id="c2", name="Transporte", color="#3b82f6", type=EXPENSE),
            Category(id="c3", name="Lazer", color="#8b5cf6", type=EXPENSE),
            Category(id="c5", name="Salário", color="#10b981", type=INCOME),
        ),
        tags=(
            Tag(id="t1", name="viagem", color="#ff0000"),
            Tag(id="t2", name="trabalho", color="#00ff00"),
            Tag(id="t3", name="vazio"),
        ),
        credit_cards=(
            CreditCard(id="k1", name="Nubank", bank="Nu", due_day=20),
            CreditCard(id="k2", name="Inter", bank="Inter", due_day=5),
        ),
        transactions=(
            tx("a", "100", datetime(2024, 3, 1, 9), type=INCOME, category="Salário"),
            tx("b", "30", datetime(2024, 3, 1, 18), tags=["t1"], card="k1"),
            tx("c", "12.50", datetime(2024, 3, 10), category="Transporte", account_id="2", tags=["t1", "t2"]),
            tx("d", "40", datetime(2024, 2, 28), category="Lazer", card="k2"),
            tx("e", "25", datetime(2023, 3, 5), type=INCOME, category="Salário"),
        ),
    )


class TestTotals:
    """Tests for balance and monthly totals."""

    def test_total_balance(self, snapshot):
        """Test total balance sums every account."""
        assert total_balance(snapshot) == Decimal("57.50")

    def test_total_balance_empty(self):
        """Test an empty ledger has zero balance."""
        assert total_balance(LedgerSnapshot()) == Decimal("0")

    def test_monthly_income_window(self, snapshot):
        """Test only this month and year count, not last month or last year."""
        assert monthly_income(snapshot, TODAY) == Decimal("100")

    def test_monthly_expense_window(self, snapshot):
        """Test last month's expense contributes nothing."""
        assert monthly_expense(snapshot, TODAY) == Decimal("42.50")

    def test_month_boundary(self, snapshot):
        """Test the February view sees only the February expense."""
        assert monthly_expense(snapshot, date(2024, 2, 1)) == Decimal("40")
        assert monthly_income(snapshot, date(2024, 2, 1)) == Decimal("0")

    def test_monthly_summary(self, snapshot):
        """Test the summary combines the monthly figures."""
        summary = monthly_summary(snapshot, TODAY)
        assert summary.label == "Março 2024"
        assert summary.income == Decimal("100")
        assert summary.expense == Decimal("42.50")
        assert summary.net == Decimal("57.50")
        assert summary.total_balance == Decimal("57.50")

    def test_month_label(self):
        """Test Portuguese month labels are capitalized."""
        assert month_label(date(2026, 10, 1)) == "Outubro 2026"


class TestBreakdowns:
    """Tests for category, tag and card breakdowns."""

    def test_category_breakdown(self, snapshot):
        """Test expense categories with a positive total, largest first."""
        items = category_breakdown(snapshot)
        assert [(i.name, i.amount) for i in items] == [
            ("Lazer", Decimal("40")),
            ("Alimentação", Decimal("30")),
            ("Transporte", Decimal("12.50")),
        ]
        assert items[1].color == "#f59e0b"
        assert items[1].entity_id == "c1"

    def test_category_breakdown_excludes_income_categories(self, snapshot):
        """Test income categories never appear."""
        assert "Salário" not in {i.name for i in category_breakdown(snapshot)}

    def test_category_breakdown_drops_zero(self):
        """Test categories without expenses are omitted."""
        snapshot = LedgerSnapshot(
            categories=(Category(id="c1", name="Alimentação", type=EXPENSE),),
            transactions=(tx("a", "0", datetime(2024, 3, 1)),),
        )
        assert category_breakdown(snapshot) == []

    def test_tag_breakdown(self, snapshot):
        """Test a transaction counts for each of its tags."""
        items = tag_breakdown(snapshot)
        assert [(i.name, i.amount) for i in items] == [
            ("viagem", Decimal("42.50")),
            ("trabalho", Decimal("12.50")),
        ]

    def test_credit_card_breakdown(self, snapshot):
        """Test expenses grouped by card."""
        items = credit_card_breakdown(snapshot)
        assert [(i.name, i.amount) for i in items] == [
            ("Inter", Decimal("40")),
            ("Nubank", Decimal("30")),
        ]


class TestCashFlow:
    """Tests for cash_flow_series."""

    def test_daily_net(self, snapshot):
        """Test days of the current month with their net movement."""
        points = cash_flow_series(snapshot, TODAY)
        assert [(p.label, p.net) for p in points] == [
            ("01/03", Decimal("70")),
            ("10/03", Decimal("-12.50")),
        ]

    def test_sorted_by_day(self):
        """Test points are chronological regardless of ledger order."""
        snapshot = LedgerSnapshot(transactions=(
            tx("a", "1", datetime(2024, 3, 9)),
            tx("b", "1", datetime(2024, 3, 2)),
            tx("c", "1", datetime(2024, 3, 10)),
        ))
        assert [p.day for p in cash_flow_series(snapshot, TODAY)] == [2, 9, 10]

    def test_empty_month(self, snapshot):
        """Test a month without transactions has no points."""
        assert cash_flow_series(snapshot, date(2025, 1, 1)) == []


class TestReminders:
    """Tests for card due reminders."""

    def test_next_due_date_this_month(self):
        """Test a due day still ahead falls in the current month."""
        assert next_due_date(20, TODAY) == date(2024, 3, 20)

    def test_next_due_date_today(self):
        """Test a card due today is due today."""
        assert next_due_date(15, TODAY) == TODAY

    def test_next_due_date_rolls_over(self):
        """Test a due day already past moves to next month."""
        assert next_due_date(5, TODAY) == date(2024, 4, 5)
        assert next_due_date(5, date(2024, 12, 20)) == date(2025, 1, 5)

    def test_next_due_date_clamped(self):
        """Test day 31 falls on the last day of a short month."""
        assert next_due_date(31, date(2024, 2, 10)) == date(2024, 2, 29)

    def test_upcoming_within_window(self, snapshot):
        """Test only cards due within days_before_due are reported."""
        settings = NotificationSettings(days_before_due=5)
        reminders = upcoming_card_dues(snapshot, settings, TODAY)
        assert [(r.card_id, r.days_until_due) for r in reminders] == [("k1", 5)]

    def test_default_window_excludes_far_cards(self, snapshot):
        """Test the default two-day window sees nothing on the 15th."""
        assert upcoming_card_dues(snapshot, today=TODAY) == []

    def test_reminders_switched_off(self, snapshot):
        """Test no reminders when card reminders are disabled."""
        settings = NotificationSettings(card_due_reminders=False, days_before_due=31)
        assert upcoming_card_dues(snapshot, settings, TODAY) == []


class TestFormatCurrency:
    """Tests for BRL formatting."""

    def test_thousands_and_decimals(self):
        assert format_currency(Decimal("1234.5")) == "R$ 1.234,50"

    def test_small_and_negative(self):
        assert format_currency(Decimal("0")) == "R$ 0,00"
        assert format_currency(Decimal("-70")) == "-R$ 70,00"
        assert format_currency(Decimal("1000000")) == "R$ 1.000.000,00"
