"""
Data Models Package

This package contains all Pydantic models used in Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.finance import (
    DEFAULT_ACCOUNTS,
    DEFAULT_CATEGORIES,
    Account,
    Category,
    CategoryDraft,
    CategoryUpdate,
    CreditCard,
    CreditCardDraft,
    CreditCardUpdate,
    FinanceModel,
    LedgerSnapshot,
    Money,
    NotificationSettings,
    NotificationSettingsUpdate,
    Tag,
    TagDraft,
    TagUpdate,
    Transaction,
    TransactionDraft,
    TransactionType,
    TransactionUpdate,
    new_id,
)
from finance_tracker.models.reports import (
    BreakdownItem,
    CardDueReminder,
    CashFlowPoint,
    MonthlySummary,
    ReportFilter,
    ReportResult,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DEFAULT_ACCOUNTS",
    "DEFAULT_CATEGORIES",
    "Account",
    "Category",
    "CategoryDraft",
    "CategoryUpdate",
    "CreditCard",
    "CreditCardDraft",
    "CreditCardUpdate",
    "FinanceModel",
    "LedgerSnapshot",
    "Money",
    "NotificationSettings",
    "NotificationSettingsUpdate",
    "Tag",
    "TagDraft",
    "TagUpdate",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "TransactionUpdate",
    "new_id",
    # Read-side models
    "BreakdownItem",
    "CardDueReminder",
    "CashFlowPoint",
    "MonthlySummary",
    "ReportFilter",
    "ReportResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
