"""
Aggregation Engine

DESIGN DECISION: Aggregates are pure functions of a LedgerSnapshot.
They never touch storage and never mutate anything, so the dashboard,
the charts and the tests all see exactly the same numbers for the same
snapshot. Functions that depend on "now" take an optional `today` so
results are reproducible.

Breakdowns only count expenses and drop groups whose total is not
positive.
"""

import calendar
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from finance_tracker.models.finance import (
    LedgerSnapshot,
    NotificationSettings,
    Transaction,
    TransactionType,
)
from finance_tracker.models.reports import (
    BreakdownItem,
    CardDueReminder,
    CashFlowPoint,
    MonthlySummary,
)


ZERO = Decimal("0")

MONTH_NAMES_PT = (
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
)


def _today(today: Optional[date]) -> date:
    return today or date.today()


def _in_month(transaction: Transaction, today: date) -> bool:
    return (
        transaction.date.year == today.year
        and transaction.date.month == today.month
    )


def _sum(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in transactions), ZERO)


def _expenses(snapshot: LedgerSnapshot) -> list[Transaction]:
    return [t for t in snapshot.transactions if t.type is TransactionType.EXPENSE]


def _positive_desc(items: list[BreakdownItem]) -> list[BreakdownItem]:
    # sorted() is stable, so ties keep the reference-data order
    return sorted(
        (item for item in items if item.amount > ZERO),
        key=lambda item: item.amount,
        reverse=True,
    )


# =============================================================================
# TOTALS
# =============================================================================

def total_balance(snapshot: LedgerSnapshot) -> Decimal:
    """Sum of every account balance."""
    return sum((a.balance for a in snapshot.accounts), ZERO)


def monthly_income(snapshot: LedgerSnapshot, today: Optional[date] = None) -> Decimal:
    """Income recorded in the current calendar month."""
    today = _today(today)
    return _sum(
        t for t in snapshot.transactions
        if t.type is TransactionType.INCOME and _in_month(t, today)
    )


def monthly_expense(snapshot: LedgerSnapshot, today: Optional[date] = None) -> Decimal:
    """Expenses recorded in the current calendar month."""
    today = _today(today)
    return _sum(
        t for t in snapshot.transactions
        if t.type is TransactionType.EXPENSE and _in_month(t, today)
    )


def month_label(today: date) -> str:
    """Portuguese month and year, e.g. 'Outubro 2026'."""
    return f"{MONTH_NAMES_PT[today.month - 1].capitalize()} {today.year}"


def monthly_summary(snapshot: LedgerSnapshot, today: Optional[date] = None) -> MonthlySummary:
    today = _today(today)
    income = monthly_income(snapshot, today)
    expense = monthly_expense(snapshot, today)
    return MonthlySummary(
        label=month_label(today),
        year=today.year,
        month=today.month,
        income=income,
        expense=expense,
        net=income - expense,
        total_balance=total_balance(snapshot),
    )


# =============================================================================
# BREAKDOWNS
# =============================================================================

def category_breakdown(snapshot: LedgerSnapshot) -> list[BreakdownItem]:
    """
    Expense total per expense category, matched by category name.

    Income categories never appear, even if an expense was filed under
    one of their names.
    """
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in _expenses(snapshot):
        totals[t.category] += t.amount

    return _positive_desc([
        BreakdownItem(
            name=c.name,
            amount=totals.get(c.name, ZERO),
            color=c.color,
            entity_id=c.id,
        )
        for c in snapshot.categories
        if c.type is TransactionType.EXPENSE
    ])


def tag_breakdown(snapshot: LedgerSnapshot) -> list[BreakdownItem]:
    """Expense total per tag; a transaction counts once for each tag it carries."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in _expenses(snapshot):
        for tag_id in t.tags:
            totals[tag_id] += t.amount

    return _positive_desc([
        BreakdownItem(name=tag.name, amount=totals.get(tag.id, ZERO), color=tag.color, entity_id=tag.id)
        for tag in snapshot.tags
    ])


def credit_card_breakdown(snapshot: LedgerSnapshot) -> list[BreakdownItem]:
    """Expense total per credit card."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in _expenses(snapshot):
        if t.credit_card_id is not None:
            totals[t.credit_card_id] += t.amount

    return _positive_desc([
        BreakdownItem(name=card.name, amount=totals.get(card.id, ZERO), color=card.color, entity_id=card.id)
        for card in snapshot.credit_cards
    ])


# =============================================================================
# CASH FLOW
# =============================================================================

def cash_flow_series(snapshot: LedgerSnapshot, today: Optional[date] = None) -> list[CashFlowPoint]:
    """
    Net movement per calendar day of the current month.

    Days without transactions are omitted. Points are ordered by month,
    then day.
    """
    today = _today(today)
    net_by_day: dict[tuple[int, int], Decimal] = defaultdict(lambda: ZERO)
    for t in snapshot.transactions:
        if _in_month(t, today):
            net_by_day[(t.date.month, t.date.day)] += t.signed_amount

    return [
        CashFlowPoint(label=f"{day:02d}/{month:02d}", day=day, month=month, net=net)
        for (month, day), net in sorted(net_by_day.items())
    ]


# =============================================================================
# REMINDERS
# =============================================================================

def next_due_date(due_day: int, today: date) -> date:
    """
    Next occurrence of a card's due day, today included.

    A due day past the end of a month falls on that month's last day.
    """
    def clamped(year: int, month: int) -> date:
        return date(year, month, min(due_day, calendar.monthrange(year, month)[1]))

    candidate = clamped(today.year, today.month)
    if candidate >= today:
        return candidate
    if today.month == 12:
        return clamped(today.year + 1, 1)
    return clamped(today.year, today.month + 1)


def upcoming_card_dues(
    snapshot: LedgerSnapshot,
    settings: Optional[NotificationSettings] = None,
    today: Optional[date] = None,
) -> list[CardDueReminder]:
    """
    Cards whose bill is due within `days_before_due` days.

    Empty when card due reminders are switched off.
    """
    settings = settings or snapshot.notification_settings
    if not settings.card_due_reminders:
        return []

    today = _today(today)
    horizon = today + timedelta(days=settings.days_before_due)
    reminders = []
    for card in snapshot.credit_cards:
        due = next_due_date(card.due_day, today)
        if due <= horizon:
            reminders.append(
                CardDueReminder(
                    card_id=card.id,
                    card_name=card.name,
                    bank=card.bank,
                    due_date=due,
                    days_until_due=(due - today).days,
                )
            )
    reminders.sort(key=lambda r: (r.due_date, r.card_name))
    return reminders


# =============================================================================
# FORMATTING
# =============================================================================

def format_currency(value: Decimal) -> str:
    """Brazilian real formatting: 1234.5 -> 'R$ 1.234,50'."""
    amount = Decimal(value).quantize(Decimal("0.01"))
    sign = "-" if amount < 0 else ""
    text = f"{abs(amount):,.2f}"
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {text}"
