"""
Abstract Storage Interface

We define an abstract interface for storage operations. This allows us to:
1. Swap SQLite for Postgres (or anything else) without touching the ledger
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally generic: create/read/update/delete of
whole entities in a named collection, plus one key/value slot for
process-wide settings. It never computes balances.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from finance_tracker.errors import (
    NotFoundError,
    PersistenceError,
    StorageConnectionError,
)
from finance_tracker.models.finance import (
    Account,
    Category,
    CreditCard,
    FinanceModel,
    Tag,
    Transaction,
)


class Collection(str, Enum):
    """Entity collections known to the gateway."""
    TRANSACTIONS = "transactions"
    ACCOUNTS = "accounts"
    CATEGORIES = "categories"
    CREDIT_CARDS = "credit_cards"
    TAGS = "tags"

    @property
    def model(self) -> type[FinanceModel]:
        return COLLECTION_MODELS[self]


COLLECTION_MODELS: dict[Collection, type[FinanceModel]] = {
    Collection.TRANSACTIONS: Transaction,
    Collection.ACCOUNTS: Account,
    Collection.CATEGORIES: Category,
    Collection.CREDIT_CARDS: CreditCard,
    Collection.TAGS: Tag,
}


class StorageInterface(ABC):
    """
    Abstract interface for entity storage operations.

    Any storage implementation (SQLite, PostgreSQL, in-memory, etc.)
    must implement these methods. Implementations raise
    PersistenceError (or a subclass) when the backend fails.
    """

    @abstractmethod
    async def create(self, collection: Collection, entity: FinanceModel) -> bool:
        """
        Insert a new entity.

        Args:
            collection: Target collection
            entity: The entity to insert; its id must be unset in the store

        Returns:
            True if saved successfully

        Raises:
            PersistenceError: If the insert fails
        """
        pass

    @abstractmethod
    async def get(self, collection: Collection, entity_id: str) -> Optional[FinanceModel]:
        """
        Retrieve an entity by id.

        Returns:
            The entity if found, None otherwise
        """
        pass

    @abstractmethod
    async def update(self, collection: Collection, entity: FinanceModel) -> bool:
        """
        Replace an existing entity (matched by id).

        Raises:
            NotFoundError: If the entity doesn't exist
            PersistenceError: If the update fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: Collection, entity_id: str) -> bool:
        """
        Delete an entity by id.

        Returns:
            True if something was deleted, False if the id was unknown
        """
        pass

    @abstractmethod
    async def list_entities(self, collection: Collection) -> list[FinanceModel]:
        """
        List every entity of a collection.

        Transactions come back date-descending; other collections in
        insertion order.
        """
        pass

    @abstractmethod
    async def count(self, collection: Collection) -> int:
        """Number of entities in a collection."""
        pass

    @abstractmethod
    async def load_settings(self, key: str) -> Optional[dict]:
        """
        Load a settings document.

        Returns:
            The stored document, or None if nothing was saved yet
        """
        pass

    @abstractmethod
    async def save_settings(self, key: str, value: dict) -> bool:
        """Create or replace a settings document."""
        pass


__all__ = [
    "COLLECTION_MODELS",
    "Collection",
    "NotFoundError",
    "PersistenceError",
    "StorageConnectionError",
    "StorageInterface",
]
