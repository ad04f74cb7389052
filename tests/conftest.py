"""Shared fixtures: an in-memory ledger seeded with the default data."""

from datetime import datetime
from decimal import Decimal

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.config import LedgerSettings
from finance_tracker.ledger import LedgerEngine
from finance_tracker.services.storage import InMemoryStorage


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def ledger_settings():
    return LedgerSettings(strict_persistence=False, seed_defaults=True)


@pytest.fixture
async def ledger(storage, audit_logger, ledger_settings):
    engine = LedgerEngine(storage, audit_logger=audit_logger, settings=ledger_settings)
    await engine.load()
    return engine


def make_draft(**overrides) -> dict:
    """A valid transaction payload (camelCase, as the web client sends it)."""
    payload = {
        "description": "Mercado",
        "amount": "30.00",
        "date": datetime(2024, 1, 10, 12, 0).isoformat(),
        "category": "Alimentação",
        "type": "expense",
        "accountId": "1",
        "tags": [],
    }
    payload.update(overrides)
    return payload


def signed_sum(ledger: LedgerEngine, account_id: str) -> Decimal:
    """Balance an account should have according to its transactions."""
    return sum(
        (t.signed_amount for t in ledger.transactions if t.account_id == account_id),
        Decimal("0"),
    )
