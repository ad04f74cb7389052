"""
Storage bootstrap: backend selection and default seed data.
"""

from typing import Optional

import structlog

from finance_tracker.config import DatabaseSettings, get_settings
from finance_tracker.models.finance import DEFAULT_ACCOUNTS, DEFAULT_CATEGORIES
from finance_tracker.services.storage.interface import Collection, StorageInterface
from finance_tracker.services.storage.memory import InMemoryStorage
from finance_tracker.services.storage.sql import SQLStorage


logger = structlog.get_logger(__name__)

MEMORY_URL = "memory://"


def create_storage(settings: Optional[DatabaseSettings] = None) -> StorageInterface:
    """
    Build the storage backend for the configured DATABASE_URL.

    "memory://" selects the in-memory store; anything else is handed to
    SQLAlchemy.
    """
    settings = settings or get_settings().database
    if settings.url == MEMORY_URL:
        logger.info("storage_selected", backend="memory")
        return InMemoryStorage()
    storage = SQLStorage(settings)
    storage.init_schema()
    logger.info("storage_selected", backend=storage.engine.dialect.name)
    return storage


async def seed_defaults(storage: StorageInterface) -> dict[str, int]:
    """
    Create the default accounts and categories.

    Each collection is seeded only when it is empty, so this is safe to
    run on every start.

    Returns:
        Number of entities created per collection
    """
    created = {Collection.ACCOUNTS.value: 0, Collection.CATEGORIES.value: 0}

    if await storage.count(Collection.ACCOUNTS) == 0:
        for account in DEFAULT_ACCOUNTS:
            await storage.create(Collection.ACCOUNTS, account)
        created[Collection.ACCOUNTS.value] = len(DEFAULT_ACCOUNTS)

    if await storage.count(Collection.CATEGORIES) == 0:
        for category in DEFAULT_CATEGORIES:
            await storage.create(Collection.CATEGORIES, category)
        created[Collection.CATEGORIES.value] = len(DEFAULT_CATEGORIES)

    if any(created.values()):
        logger.info("defaults_seeded", **created)
    return created
