"""
Error taxonomy for Finance Tracker.

Engine-level errors (validation, not found, parse) are raised before
any state is mutated. Persistence errors may surface after an
optimistic local mutation; see LedgerEngine for the policy.
"""

from typing import Optional


class FinanceTrackerError(Exception):
    """Base exception for all Finance Tracker errors."""
    pass


class ValidationError(FinanceTrackerError):
    """A required field is missing or a reference does not resolve."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(FinanceTrackerError):
    """Operation on an unknown id."""

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"{entity_type} not found: {entity_id}")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ParseError(FinanceTrackerError):
    """An import payload could not be parsed."""
    pass


class PersistenceError(FinanceTrackerError):
    """The backing store rejected a write or could not be read."""
    pass


class StorageConnectionError(PersistenceError):
    """Could not connect to the storage backend."""
    pass
