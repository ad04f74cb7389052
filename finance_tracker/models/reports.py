"""
Read-side models: aggregates, breakdowns and report results.

These are produced by the aggregation and report functions and are
never persisted.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, model_validator

from finance_tracker.models.finance import (
    FinanceModel,
    Money,
    Transaction,
    TransactionType,
)


class BreakdownItem(FinanceModel):
    """Expense total of one group (category, tag or credit card)."""

    name: str
    amount: Money
    color: str = "#000000"
    entity_id: Optional[str] = Field(default=None, alias="entityId")


class CashFlowPoint(FinanceModel):
    """Net movement of one calendar day."""

    label: str = Field(..., description="dd/MM")
    day: int = Field(..., ge=1, le=31)
    month: int = Field(..., ge=1, le=12)
    net: Money


class MonthlySummary(FinanceModel):
    """Headline numbers of the current month."""

    label: str = Field(..., description="Localized month name, e.g. 'Outubro 2026'")
    year: int
    month: int = Field(..., ge=1, le=12)
    income: Money
    expense: Money
    net: Money
    total_balance: Money = Field(..., alias="totalBalance")


class CardDueReminder(FinanceModel):
    """A credit card whose bill is due soon."""

    card_id: str = Field(..., alias="cardId")
    card_name: str = Field(..., alias="cardName")
    bank: str = ""
    due_date: date = Field(..., alias="dueDate")
    days_until_due: int = Field(..., alias="daysUntilDue", ge=0)


class ReportFilter(FinanceModel):
    """
    Filters for a transaction report.

    Dates are inclusive calendar days. Unset dimensions pass everything.
    """

    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")
    category: Optional[str] = None
    tag: Optional[str] = Field(default=None, description="Tag id")
    type: Optional[TransactionType] = None

    @model_validator(mode="after")
    def validate_range(self) -> "ReportFilter":
        if self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class ReportResult(FinanceModel):
    """Filtered, date-descending transaction list and its totals."""

    filter: ReportFilter
    generated_at: datetime = Field(default_factory=datetime.now, alias="generatedAt")
    transactions: tuple[Transaction, ...] = ()
    count: int = Field(default=0, ge=0)
    income_total: Money = Field(default=Decimal("0"), alias="incomeTotal")
    expense_total: Money = Field(default=Decimal("0"), alias="expenseTotal")
    net_total: Money = Field(default=Decimal("0"), alias="netTotal")
    description: str = ""

    @property
    def is_empty(self) -> bool:
        return self.count == 0
