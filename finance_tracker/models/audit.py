"""
Audit Models for Finance Tracker

Every ledger mutation, rejected operation and persistence failure is
logged as an AuditEvent. This provides:
1. Traceability of every balance change
2. Debugging information when a write to the store fails
3. The record that optimistic mutations were not rolled back

Audit events are append-only.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTIONS_IMPORTED = "transactions_imported"
    TRANSACTIONS_EXPORTED = "transactions_exported"

    # Reference data
    ENTITY_CREATED = "entity_created"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_DELETED = "entity_deleted"
    SETTINGS_UPDATED = "settings_updated"
    DEFAULTS_SEEDED = "defaults_seeded"
    LEDGER_LOADED = "ledger_loaded"

    # Balances
    BALANCE_CHANGED = "balance_changed"
    BALANCE_CONFIRMED = "balance_confirmed"
    BALANCE_MISMATCH = "balance_mismatch"

    # Rejections
    VALIDATION_FAILED = "validation_failed"
    IMPORT_REJECTED = "import_rejected"

    # Persistence
    PERSISTENCE_FAILED = "persistence_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant ledger action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Collection of the entity (e.g., 'transactions', 'accounts')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Opaque id of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one import batch)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(transaction_id, account_id, "-30.00")
        event = AuditEventBuilder.persistence_failed("create", "transactions", id, error)
    """

    @staticmethod
    def transaction_added(
        transaction_id: str,
        account_id: str,
        signed_amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transactions",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction added to account {account_id}: {signed_amount}",
            details={
                "account_id": account_id,
                "signed_amount": signed_amount,
            },
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        changed_fields: list[str],
        balance_affected: bool,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transactions",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction updated: {', '.join(changed_fields) or 'no fields'}",
            details={
                "changed_fields": changed_fields,
                "balance_affected": balance_affected,
            },
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        account_id: str,
        reverted_amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transactions",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction deleted from account {account_id}",
            details={
                "account_id": account_id,
                "reverted_amount": reverted_amount,
            },
        )

    @staticmethod
    def transactions_imported(
        count: int,
        accounts_touched: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_IMPORTED,
            entity_type="transactions",
            correlation_id=correlation_id,
            description=f"Imported {count} transactions",
            details={
                "count": count,
                "accounts_touched": accounts_touched,
            },
        )

    @staticmethod
    def transactions_exported(
        count: int,
        export_format: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_EXPORTED,
            entity_type="transactions",
            description=f"Exported {count} transactions as {export_format}",
            details={
                "count": count,
                "format": export_format,
            },
        )

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        name: Optional[str] = None
    ) -> AuditEvent:
        verb = {
            AuditEventType.ENTITY_CREATED: "created",
            AuditEventType.ENTITY_UPDATED: "updated",
            AuditEventType.ENTITY_DELETED: "deleted",
        }.get(event_type, event_type.value)
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type} {verb}: {name or entity_id}",
        )

    @staticmethod
    def balance_changed(
        account_id: str,
        old_balance: str,
        new_balance: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_CHANGED,
            entity_type="accounts",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Balance of {account_id}: {old_balance} -> {new_balance}",
            details={
                "old_balance": old_balance,
                "new_balance": new_balance,
            },
        )

    @staticmethod
    def balance_confirmed(
        account_id: str,
        balance: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_CONFIRMED,
            entity_type="accounts",
            entity_id=account_id,
            description=f"Balance of {account_id} confirmed at {balance}",
            details={"balance": balance},
        )

    @staticmethod
    def balance_mismatch(
        account_id: str,
        stored_balance: str,
        posted_balance: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_MISMATCH,
            severity=AuditSeverity.WARNING,
            entity_type="accounts",
            entity_id=account_id,
            description=f"Posted balance of {account_id} does not match its transactions",
            details={
                "stored_balance": stored_balance,
                "posted_balance": posted_balance,
            },
        )

    @staticmethod
    def settings_updated(
        key: str,
        changed_fields: list[str]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_UPDATED,
            entity_type="settings",
            entity_id=key,
            description=f"Settings '{key}' updated",
            details={"changed_fields": changed_fields},
        )

    @staticmethod
    def defaults_seeded(created: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEFAULTS_SEEDED,
            description="Default reference data created",
            details=dict(created),
        )

    @staticmethod
    def ledger_loaded(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOADED,
            severity=AuditSeverity.DEBUG,
            description="Ledger loaded from storage",
            details=dict(counts),
        )

    @staticmethod
    def validation_failed(
        operation: str,
        message: str,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{operation} rejected",
            error_message=message,
            details={
                "operation": operation,
            },
        )

    @staticmethod
    def import_rejected(
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transactions",
            correlation_id=correlation_id,
            description="Import rejected, existing data untouched",
            error_message=reason,
        )

    @staticmethod
    def persistence_failed(
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Store rejected {operation} on {entity_type}; local state kept",
            error_code="persistence",
            error_message=error_message,
            details={
                "operation": operation,
            },
        )
