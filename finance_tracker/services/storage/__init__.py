"""
Storage Services Package

Provides the abstract storage interface and its implementations.
SQL (SQLite by default) is the production backend; the in-memory store
serves tests and throwaway runs.
"""

from finance_tracker.services.storage.interface import (
    COLLECTION_MODELS,
    Collection,
    NotFoundError,
    PersistenceError,
    StorageConnectionError,
    StorageInterface,
)
from finance_tracker.services.storage.memory import InMemoryStorage
from finance_tracker.services.storage.sql import SQLStorage, build_engine
from finance_tracker.services.storage.bootstrap import (
    MEMORY_URL,
    create_storage,
    seed_defaults,
)

__all__ = [
    # Interface
    "COLLECTION_MODELS",
    "Collection",
    "StorageInterface",
    # Exceptions
    "NotFoundError",
    "PersistenceError",
    "StorageConnectionError",
    # Implementations
    "InMemoryStorage",
    "SQLStorage",
    "build_engine",
    # Bootstrap
    "MEMORY_URL",
    "create_storage",
    "seed_defaults",
]
