"""
In-memory storage.

Used by the test suite and for throwaway runs (DATABASE_URL=memory://).
Entities are frozen models, so storing the instances themselves is safe.
"""

from typing import Optional

from finance_tracker.errors import NotFoundError, PersistenceError
from finance_tracker.models.finance import FinanceModel
from finance_tracker.services.storage.interface import Collection, StorageInterface


class InMemoryStorage(StorageInterface):
    """Dict-backed implementation of the storage interface."""

    def __init__(self):
        self._data: dict[Collection, dict[str, FinanceModel]] = {
            collection: {} for collection in Collection
        }
        self._settings: dict[str, dict] = {}

    def _check_type(self, collection: Collection, entity: FinanceModel) -> None:
        if not isinstance(entity, collection.model):
            raise PersistenceError(
                f"{type(entity).__name__} cannot be stored in {collection.value}"
            )

    async def create(self, collection: Collection, entity: FinanceModel) -> bool:
        self._check_type(collection, entity)
        bucket = self._data[collection]
        if entity.id in bucket:
            raise PersistenceError(f"Duplicate id in {collection.value}: {entity.id}")
        bucket[entity.id] = entity
        return True

    async def get(self, collection: Collection, entity_id: str) -> Optional[FinanceModel]:
        return self._data[collection].get(entity_id)

    async def update(self, collection: Collection, entity: FinanceModel) -> bool:
        self._check_type(collection, entity)
        bucket = self._data[collection]
        if entity.id not in bucket:
            raise NotFoundError(collection.value, entity.id)
        bucket[entity.id] = entity
        return True

    async def delete(self, collection: Collection, entity_id: str) -> bool:
        return self._data[collection].pop(entity_id, None) is not None

    async def list_entities(self, collection: Collection) -> list[FinanceModel]:
        entities = list(self._data[collection].values())
        if collection is Collection.TRANSACTIONS:
            entities.sort(key=lambda t: t.date, reverse=True)
        return entities

    async def count(self, collection: Collection) -> int:
        return len(self._data[collection])

    async def load_settings(self, key: str) -> Optional[dict]:
        value = self._settings.get(key)
        return dict(value) if value is not None else None

    async def save_settings(self, key: str, value: dict) -> bool:
        self._settings[key] = dict(value)
        return True
