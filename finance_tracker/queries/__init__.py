"""Read-side package: aggregates and reports over a ledger snapshot."""

from finance_tracker.queries.aggregates import (
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
from finance_tracker.queries.reports import (
    build_filter,
    describe_filter,
    filter_transactions,
)

__all__ = [
    "build_filter",
    "cash_flow_series",
    "category_breakdown",
    "credit_card_breakdown",
    "describe_filter",
    "filter_transactions",
    "format_currency",
    "month_label",
    "monthly_expense",
    "monthly_income",
    "monthly_summary",
    "next_due_date",
    "tag_breakdown",
    "total_balance",
    "upcoming_card_dues",
]
