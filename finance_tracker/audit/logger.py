"""
Audit Logger

Every ledger mutation is logged. This provides:
1. Complete traceability of balance changes
2. Debugging capability when the store rejects a write
3. A visible record of optimistic mutations that were not persisted

The audit logger:
- Is async so it can sit on the same await path as persistence
- Never raises; a failed log must not break the ledger
- Supports correlation IDs to trace related events (one import batch)
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditEventType


def configure_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure structlog on top of the standard library logger.

    Safe to call more than once; the last call wins.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Writes every event to the structured local log. The events it has
    seen are also kept in memory (bounded) so callers and tests can
    inspect recent history.
    """

    def __init__(self, history_size: int = 500):
        self._logger = structlog.get_logger("finance_tracker.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    @property
    def history(self) -> list[AuditEvent]:
        """Recent events, oldest first."""
        return list(self._history)

    def events_of_type(self, event_type: AuditEventType) -> list[AuditEvent]:
        return [e for e in self._history if e.event_type == event_type]

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True once the event is recorded.
        """
        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[: len(self._history) - self._history_size]

        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        return True

    async def log_transaction_added(
        self,
        transaction_id: str,
        account_id: str,
        signed_amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            account_id=account_id,
            signed_amount=signed_amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_updated(
        self,
        transaction_id: str,
        changed_fields: list[str],
        balance_affected: bool,
    ) -> None:
        event = AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            changed_fields=changed_fields,
            balance_affected=balance_affected,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        account_id: str,
        reverted_amount: str,
    ) -> None:
        event = AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            account_id=account_id,
            reverted_amount=reverted_amount,
        )
        await self.log(event)

    async def log_transactions_imported(
        self,
        count: int,
        accounts_touched: list[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transactions_imported(
            count=count,
            accounts_touched=accounts_touched,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_entity_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        name: Optional[str] = None,
    ) -> None:
        event = AuditEventBuilder.entity_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            name=name,
        )
        await self.log(event)

    async def log_balance_changed(
        self,
        account_id: str,
        old_balance: str,
        new_balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.balance_changed(
            account_id=account_id,
            old_balance=old_balance,
            new_balance=new_balance,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        operation: str,
        message: str,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.validation_failed(
            operation=operation,
            message=message,
            entity_id=entity_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_persistence_failed(
        self,
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.persistence_failed(
            operation=operation,
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step action (e.g., an import).
    """
    return uuid4()
