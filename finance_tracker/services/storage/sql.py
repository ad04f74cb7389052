"""
SQL Storage Implementation

A relational store through SQLAlchemy. SQLite is the default (a single
file next to the app); any SQLAlchemy URL works, e.g. Postgres.

TRADEOFFS:
- Each gateway call opens a short synchronous session inside the async
  method; fine for a single-user tracker, not for high write volume
- Column names follow the original web client's schema (accountId,
  creditCardId, limit_val, ...) so an existing finance.db keeps working
- tags are stored as a JSON text blob and decoded to a list on read

The implementation follows the abstract interface, so the ledger never
knows which engine it talks to.
"""

import json
from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session
from sqlalchemy.pool import StaticPool
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_tracker.config import DatabaseSettings, get_settings
from finance_tracker.errors import (
    NotFoundError,
    PersistenceError,
    StorageConnectionError,
)
from finance_tracker.models.finance import FinanceModel
from finance_tracker.services.storage.interface import Collection, StorageInterface


logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


class TransactionRow(Base):
    __tablename__ = "transactions"

    id = Column(String, primary_key=True)
    description = Column(String, nullable=False, default="")
    amount = Column(Numeric(14, 2), nullable=False)
    date = Column(DateTime, nullable=False, index=True)
    category = Column(String, nullable=False, index=True)
    type = Column(String(10), nullable=False)
    account_id = Column("accountId", String, nullable=False, index=True)
    tags = Column(Text, nullable=False, default="[]")
    credit_card_id = Column("creditCardId", String, nullable=True)


class CategoryRow(Base):
    __tablename__ = "categories"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    icon = Column(String, nullable=False, default="Tag")
    color = Column(String, nullable=False, default="#000000")
    type = Column(String(10), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class AccountRow(Base):
    __tablename__ = "accounts"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    color = Column(String, nullable=False, default="#000000")
    icon = Column(String, nullable=False, default="Wallet")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class CreditCardRow(Base):
    __tablename__ = "credit_cards"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    brand = Column(String, nullable=False, default="Visa")
    bank = Column(String, nullable=False, default="")
    limit = Column("limit_val", Numeric(14, 2), nullable=False, default=0)
    closing_day = Column("closingDay", Integer, nullable=False, default=1)
    due_day = Column("dueDay", Integer, nullable=False, default=10)
    color = Column(String, nullable=False, default="#000000")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class TagRow(Base):
    __tablename__ = "tags"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    color = Column(String, nullable=False, default="#000000")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class SettingRow(Base):
    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)


ROW_CLASSES: dict[Collection, type[Base]] = {
    Collection.TRANSACTIONS: TransactionRow,
    Collection.ACCOUNTS: AccountRow,
    Collection.CATEGORIES: CategoryRow,
    Collection.CREDIT_CARDS: CreditCardRow,
    Collection.TAGS: TagRow,
}


def build_engine(settings: DatabaseSettings) -> Engine:
    """Create the SQLAlchemy engine for the configured URL."""
    kwargs: dict[str, Any] = {"echo": settings.echo}
    if settings.is_sqlite:
        # The API serves requests from a worker thread
        kwargs["connect_args"] = {"check_same_thread": False}
        if settings.url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(settings.url, **kwargs)


class SQLStorage(StorageInterface):
    """
    SQLAlchemy implementation of the storage interface.

    Writes are retried with exponential backoff on operational errors
    (locked database, dropped connection) before a PersistenceError
    is raised.
    """

    def __init__(
        self,
        settings: Optional[DatabaseSettings] = None,
        engine: Optional[Engine] = None,
    ):
        self._settings = settings or get_settings().database
        self._engine = engine or build_engine(self._settings)
        self._schema_ready = False

    @property
    def engine(self) -> Engine:
        return self._engine

    def init_schema(self) -> None:
        """Create any missing table."""
        if self._schema_ready:
            return
        try:
            Base.metadata.create_all(self._engine)
        except OperationalError as e:
            raise StorageConnectionError(f"Failed to reach the database: {e}")
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create schema: {e}")
        self._schema_ready = True
        logger.info("schema_ready", url=self._engine.url.render_as_string(hide_password=True))

    def _session(self) -> Session:
        self.init_schema()
        return Session(self._engine, expire_on_commit=False)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._settings.write_retry_attempts),
            wait=wait_exponential(
                multiplier=0.25,
                max=self._settings.write_retry_max_wait_seconds,
            ),
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        )

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _entity_to_values(self, collection: Collection, entity: FinanceModel) -> dict:
        """Convert an entity to column values keyed by row attribute."""
        if not isinstance(entity, collection.model):
            raise PersistenceError(
                f"{type(entity).__name__} cannot be stored in {collection.value}"
            )
        values = entity.model_dump()
        if "type" in values:
            values["type"] = entity.type.value
        if collection is Collection.TRANSACTIONS:
            values["tags"] = json.dumps(values["tags"])
        return values

    def _row_to_entity(self, collection: Collection, row: Base) -> FinanceModel:
        """Convert a row back to its entity."""
        model = collection.model
        values = {name: getattr(row, name) for name in model.model_fields}
        if collection is Collection.TRANSACTIONS:
            values["tags"] = json.loads(row.tags) if row.tags else []
        return model.model_validate(values)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, collection: Collection, entity: FinanceModel) -> bool:
        values = self._entity_to_values(collection, entity)
        row_class = ROW_CLASSES[collection]
        try:
            async for attempt in self._retrying():
                with attempt:
                    with self._session() as session, session.begin():
                        session.add(row_class(**values))
        except IntegrityError as e:
            raise PersistenceError(f"Duplicate id in {collection.value}: {entity.id}") from e
        except OperationalError as e:
            raise StorageConnectionError(f"Failed to save to {collection.value}: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save to {collection.value}: {e}") from e
        return True

    async def update(self, collection: Collection, entity: FinanceModel) -> bool:
        values = self._entity_to_values(collection, entity)
        row_class = ROW_CLASSES[collection]
        try:
            async for attempt in self._retrying():
                with attempt:
                    with self._session() as session, session.begin():
                        row = session.get(row_class, entity.id)
                        if row is None:
                            raise NotFoundError(collection.value, entity.id)
                        for name, value in values.items():
                            setattr(row, name, value)
        except NotFoundError:
            raise
        except OperationalError as e:
            raise StorageConnectionError(f"Failed to update {collection.value}: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update {collection.value}: {e}") from e
        return True

    async def delete(self, collection: Collection, entity_id: str) -> bool:
        row_class = ROW_CLASSES[collection]
        deleted = False
        try:
            async for attempt in self._retrying():
                with attempt:
                    with self._session() as session, session.begin():
                        row = session.get(row_class, entity_id)
                        if row is not None:
                            session.delete(row)
                            deleted = True
        except OperationalError as e:
            raise StorageConnectionError(f"Failed to delete from {collection.value}: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete from {collection.value}: {e}") from e
        return deleted

    async def save_settings(self, key: str, value: dict) -> bool:
        document = json.dumps(value)
        try:
            async for attempt in self._retrying():
                with attempt:
                    with self._session() as session, session.begin():
                        session.merge(SettingRow(key=key, value=document))
        except OperationalError as e:
            raise StorageConnectionError(f"Failed to save settings '{key}': {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save settings '{key}': {e}") from e
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, collection: Collection, entity_id: str) -> Optional[FinanceModel]:
        try:
            with self._session() as session:
                row = session.get(ROW_CLASSES[collection], entity_id)
                return self._row_to_entity(collection, row) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read {collection.value}: {e}") from e

    async def list_entities(self, collection: Collection) -> list[FinanceModel]:
        row_class = ROW_CLASSES[collection]
        if collection is Collection.TRANSACTIONS:
            stmt = select(row_class).order_by(TransactionRow.date.desc())
        else:
            stmt = select(row_class).order_by(row_class.created_at.asc(), row_class.id.asc())
        try:
            with self._session() as session:
                rows = session.execute(stmt).scalars().all()
                return [self._row_to_entity(collection, row) for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list {collection.value}: {e}") from e

    async def count(self, collection: Collection) -> int:
        try:
            with self._session() as session:
                return session.scalar(
                    select(func.count()).select_from(ROW_CLASSES[collection])
                ) or 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count {collection.value}: {e}") from e

    async def load_settings(self, key: str) -> Optional[dict]:
        try:
            with self._session() as session:
                row = session.get(SettingRow, key)
                return json.loads(row.value) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load settings '{key}': {e}") from e
