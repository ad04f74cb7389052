"""
Report Filter

DESIGN DECISION: Reports are computed from a snapshot, never from storage.
Date bounds are inclusive calendar days: a transaction at 23:59 on the
end date is in the report. Filters that are not given (or given as
"all", the web client's placeholder) pass everything.

An empty result is a normal answer with zero totals, not an error.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from finance_tracker.errors import ValidationError
from finance_tracker.models.finance import LedgerSnapshot, Transaction, TransactionType
from finance_tracker.models.reports import ReportFilter, ReportResult


ZERO = Decimal("0")
ANY = "all"
_ONE_DAY = timedelta(days=1)

DateLike = Union[date, datetime, str]


def _unset(value: Optional[str]) -> Optional[str]:
    if value is None or value == "" or value == ANY:
        return None
    return value


def build_filter(
    start_date: DateLike,
    end_date: DateLike,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    type: Optional[Union[TransactionType, str]] = None,
) -> ReportFilter:
    """
    Validate report parameters.

    Raises:
        ValidationError: Unparseable dates, unknown type, or a start
            date after the end date
    """
    if isinstance(start_date, datetime):
        start_date = start_date.date()
    if isinstance(end_date, datetime):
        end_date = end_date.date()
    try:
        return ReportFilter(
            start_date=start_date,
            end_date=end_date,
            category=_unset(category),
            tag=_unset(tag),
            type=_unset(type),
        )
    except PydanticValidationError as e:
        first = e.errors()[0]
        message = first["msg"].removeprefix("Value error, ")
        field = ".".join(str(part) for part in first["loc"]) or None
        raise ValidationError(message, field=field) from e


def matches(transaction: Transaction, report_filter: ReportFilter) -> bool:
    day = transaction.date.date()
    if day < report_filter.start_date or day > report_filter.end_date:
        return False
    if report_filter.category is not None and transaction.category != report_filter.category:
        return False
    if report_filter.tag is not None and report_filter.tag not in transaction.tags:
        return False
    if report_filter.type is not None and transaction.type is not report_filter.type:
        return False
    return True


def filter_transactions(
    snapshot: LedgerSnapshot,
    start_date: DateLike,
    end_date: DateLike,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    type: Optional[Union[TransactionType, str]] = None,
) -> ReportResult:
    """
    Transactions in [start_date, end_date] matching every given filter.

    Returns them most recent first, with income and expense subtotals
    and the net total (income positive, expense negative).

    Raises:
        ValidationError: Invalid parameters (see build_filter)
    """
    report_filter = build_filter(start_date, end_date, category, tag, type)

    selected = sorted(
        (t for t in snapshot.transactions if matches(t, report_filter)),
        key=lambda t: t.date,
        reverse=True,
    )
    income = sum(
        (t.amount for t in selected if t.type is TransactionType.INCOME), ZERO
    )
    expense = sum(
        (t.amount for t in selected if t.type is TransactionType.EXPENSE), ZERO
    )

    return ReportResult(
        filter=report_filter,
        transactions=tuple(selected),
        count=len(selected),
        income_total=income,
        expense_total=expense,
        net_total=income - expense,
        description=describe_filter(report_filter, snapshot),
    )


def describe_filter(report_filter: ReportFilter, snapshot: Optional[LedgerSnapshot] = None) -> str:
    """Human-readable summary, e.g. 'Transactions | type: expense | in January 2024'."""
    parts = ["Transactions"]
    if report_filter.category:
        parts.append(f"category: {report_filter.category}")
    if report_filter.tag:
        tag_name = report_filter.tag
        if snapshot is not None:
            tag_name = next(
                (t.name for t in snapshot.tags if t.id == report_filter.tag),
                report_filter.tag,
            )
        parts.append(f"tag: {tag_name}")
    if report_filter.type:
        parts.append(f"type: {report_filter.type.value}")
    parts.append(_date_range_str(report_filter.start_date, report_filter.end_date))
    return " | ".join(parts)


def _date_range_str(date_from: date, date_to: date) -> str:
    """Format date range for description."""
    if date_from == date_to:
        return f"on {date_from.strftime('%d %b %Y')}"
    if (
        date_from.day == 1
        and date_from.month == date_to.month
        and date_from.year == date_to.year
        and (date_to + _ONE_DAY).month != date_to.month
    ):
        return f"in {date_from.strftime('%B %Y')}"
    if date_from.year == date_to.year:
        return f"from {date_from.strftime('%d %b')} to {date_to.strftime('%d %b %Y')}"
    return f"from {date_from.strftime('%d %b %Y')} to {date_to.strftime('%d %b %Y')}"
