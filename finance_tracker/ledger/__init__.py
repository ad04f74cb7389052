"""Ledger package: the in-memory ledger and its balance bookkeeping."""

from finance_tracker.ledger.engine import LedgerEngine

__all__ = ["LedgerEngine"]
