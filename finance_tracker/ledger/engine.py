"""
Ledger Engine

The ledger owns the in-memory state of every collection and is the only
writer of account balances. Every transaction mutation updates the
affected account balances in the same step, so that at all times:

    account.balance == sum(+amount for income, -amount for expense)
                       over the account's transactions

DESIGN DECISION: Validate first, then mutate, then persist.
- Validation and not-found checks run before anything changes; a
  rejected operation leaves the ledger untouched
- Local state is updated optimistically, the store write follows
- A failed store write is audited and NOT rolled back; with
  LEDGER_STRICT_PERSISTENCE=true it is also re-raised

Reads go through snapshot(), an immutable copy that the aggregation
and report functions consume.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, NoReturn, Optional, TypeVar, Union
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.config import LedgerSettings, get_settings
from finance_tracker.errors import NotFoundError, PersistenceError, ValidationError
from finance_tracker.models.audit import AuditEventBuilder, AuditEventType
from finance_tracker.models.finance import (
    Account,
    Category,
    CategoryDraft,
    CategoryUpdate,
    CreditCard,
    CreditCardDraft,
    CreditCardUpdate,
    FinanceModel,
    LedgerSnapshot,
    NotificationSettings,
    NotificationSettingsUpdate,
    Tag,
    TagDraft,
    TagUpdate,
    Transaction,
    TransactionDraft,
    TransactionUpdate,
    new_id,
    to_cents,
)
from finance_tracker.services.storage import Collection, StorageInterface, seed_defaults


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=FinanceModel)

NOTIFICATION_SETTINGS_KEY = "notifications"
BALANCE_FIELDS = ("amount", "type", "account_id")


def _first_error(error: PydanticValidationError) -> tuple[str, Optional[str]]:
    """Message and field name of the first pydantic error."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or None
    message = f"{field}: {first['msg']}" if field else first["msg"]
    return message, field


class LedgerEngine:
    """
    In-memory ledger backed by a storage gateway.

    Usage:
        ledger = LedgerEngine(storage)
        await ledger.load()
        tx = await ledger.add_transaction({...})
        snapshot = ledger.snapshot()
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().ledger

        # Most recent insertion first
        self._transactions: list[Transaction] = []
        self._accounts: dict[str, Account] = {}
        self._categories: dict[str, Category] = {}
        self._credit_cards: dict[str, CreditCard] = {}
        self._tags: dict[str, Tag] = {}
        self._notification_settings = NotificationSettings()
        self._loaded = False

    # =========================================================================
    # STATE ACCESS
    # =========================================================================

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return tuple(self._transactions)

    @property
    def accounts(self) -> tuple[Account, ...]:
        return tuple(self._accounts.values())

    @property
    def categories(self) -> tuple[Category, ...]:
        return tuple(self._categories.values())

    @property
    def credit_cards(self) -> tuple[CreditCard, ...]:
        return tuple(self._credit_cards.values())

    @property
    def tags(self) -> tuple[Tag, ...]:
        return tuple(self._tags.values())

    @property
    def notification_settings(self) -> NotificationSettings:
        return self._notification_settings

    def get_transaction(self, transaction_id: str) -> Transaction:
        for transaction in self._transactions:
            if transaction.id == transaction_id:
                return transaction
        raise NotFoundError("Transaction", transaction_id)

    def get_account(self, account_id: str) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    def snapshot(self) -> LedgerSnapshot:
        """Immutable copy of the current state."""
        return LedgerSnapshot(
            transactions=tuple(self._transactions),
            accounts=tuple(self._accounts.values()),
            categories=tuple(self._categories.values()),
            credit_cards=tuple(self._credit_cards.values()),
            tags=tuple(self._tags.values()),
            notification_settings=self._notification_settings,
        )

    # =========================================================================
    # LOADING
    # =========================================================================

    async def load(self) -> LedgerSnapshot:
        """
        Populate the ledger from storage.

        Default accounts and categories are seeded first (only into
        empty collections) unless LEDGER_SEED_DEFAULTS is off.
        """
        if self._settings.seed_defaults:
            created = await seed_defaults(self._storage)
            if any(created.values()):
                await self._audit_logger.log(AuditEventBuilder.defaults_seeded(created))

        self._transactions = list(await self._storage.list_entities(Collection.TRANSACTIONS))
        self._accounts = {
            a.id: a for a in await self._storage.list_entities(Collection.ACCOUNTS)
        }
        self._categories = {
            c.id: c for c in await self._storage.list_entities(Collection.CATEGORIES)
        }
        self._credit_cards = {
            c.id: c for c in await self._storage.list_entities(Collection.CREDIT_CARDS)
        }
        self._tags = {t.id: t for t in await self._storage.list_entities(Collection.TAGS)}

        document = await self._storage.load_settings(NOTIFICATION_SETTINGS_KEY)
        if document is not None:
            try:
                self._notification_settings = NotificationSettings.model_validate(document)
            except PydanticValidationError as e:
                # A corrupt settings row must not stop the ledger from loading
                logger.warning("notification_settings_invalid", error=str(e))
                self._notification_settings = NotificationSettings()

        self._loaded = True
        counts = {
            Collection.TRANSACTIONS.value: len(self._transactions),
            Collection.ACCOUNTS.value: len(self._accounts),
            Collection.CATEGORIES.value: len(self._categories),
            Collection.CREDIT_CARDS.value: len(self._credit_cards),
            Collection.TAGS.value: len(self._tags),
        }
        await self._audit_logger.log(AuditEventBuilder.ledger_loaded(counts))
        return self.snapshot()

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def add_transaction(
        self,
        draft: Union[TransactionDraft, dict[str, Any]],
    ) -> Transaction:
        """
        Record a new transaction and apply it to its account.

        Any id on the payload is ignored; a fresh one is minted.

        Raises:
            ValidationError: Invalid payload, unknown account or card
        """
        draft = await self._validate(TransactionDraft, draft, "add_transaction")
        await self._check_references(draft.account_id, draft.credit_card_id, "add_transaction")

        values = draft.model_dump()
        values["id"] = self._mint_id(t.id for t in self._transactions)
        transaction = Transaction.model_validate(values)

        self._transactions.insert(0, transaction)
        account = await self._apply(transaction.account_id, transaction.signed_amount)

        await self._audit_logger.log_transaction_added(
            transaction_id=transaction.id,
            account_id=transaction.account_id,
            signed_amount=str(transaction.signed_amount),
        )
        await self._persist("create", Collection.TRANSACTIONS, transaction)
        await self._persist("update", Collection.ACCOUNTS, account)
        return transaction

    async def update_transaction(
        self,
        transaction_id: str,
        changes: Union[TransactionUpdate, dict[str, Any]],
    ) -> Transaction:
        """
        Apply a partial update to a transaction.

        When amount, type or account change, the original contribution
        is reverted from the original account and the new one applied to
        the (possibly different) new account. Otherwise only the record
        is replaced.

        Raises:
            NotFoundError: Unknown transaction id
            ValidationError: Invalid result, unknown new account or card
        """
        original = self.get_transaction(transaction_id)
        update = await self._validate(TransactionUpdate, changes, "update_transaction")
        delta = update.changes()

        try:
            updated = Transaction.model_validate(
                {**original.model_dump(), **delta, "id": original.id}
            )
        except PydanticValidationError as e:
            message, field = _first_error(e)
            await self._reject("update_transaction", message, field, transaction_id)

        if updated.account_id != original.account_id:
            await self._check_references(updated.account_id, None, "update_transaction")
        if updated.credit_card_id != original.credit_card_id:
            await self._check_references(None, updated.credit_card_id, "update_transaction")

        changed_fields = [
            name for name in delta if getattr(original, name) != getattr(updated, name)
        ]
        balance_affected = any(
            getattr(original, name) != getattr(updated, name) for name in BALANCE_FIELDS
        )

        index = self._transactions.index(original)
        self._transactions[index] = updated

        touched: list[Account] = []
        if balance_affected:
            touched.append(await self._apply(original.account_id, -original.signed_amount))
            new_account = await self._apply(updated.account_id, updated.signed_amount)
            if new_account.id == touched[0].id:
                touched[0] = new_account
            else:
                touched.append(new_account)

        await self._audit_logger.log_transaction_updated(
            transaction_id=updated.id,
            changed_fields=changed_fields,
            balance_affected=balance_affected,
        )
        await self._persist("update", Collection.TRANSACTIONS, updated)
        for account in touched:
            await self._persist("update", Collection.ACCOUNTS, account)
        return updated

    async def delete_transaction(self, transaction_id: str) -> Transaction:
        """
        Remove a transaction and revert its contribution.

        Raises:
            NotFoundError: Unknown transaction id
        """
        transaction = self.get_transaction(transaction_id)

        self._transactions.remove(transaction)
        account = await self._apply(transaction.account_id, -transaction.signed_amount)

        await self._audit_logger.log_transaction_deleted(
            transaction_id=transaction.id,
            account_id=transaction.account_id,
            reverted_amount=str(-transaction.signed_amount),
        )
        await self._persist("delete", Collection.TRANSACTIONS, entity_id=transaction.id)
        await self._persist("update", Collection.ACCOUNTS, account)
        return transaction

    async def import_transactions(
        self,
        transactions: Iterable[Union[TransactionDraft, dict[str, Any]]],
    ) -> list[Transaction]:
        """
        Add a batch of transactions.

        The batch is validated as a whole before anything changes: one
        bad element or unresolvable account/card rejects the import.
        Every transaction gets a fresh id; the batch is prepended in its
        given order and each contribution is applied to its account.

        Raises:
            ValidationError: Any element is invalid
        """
        correlation_id = create_correlation_id()

        drafts: list[TransactionDraft] = []
        for index, item in enumerate(transactions):
            try:
                draft = (
                    item if isinstance(item, TransactionDraft)
                    else TransactionDraft.model_validate(item)
                )
            except PydanticValidationError as e:
                message, field = _first_error(e)
                await self._reject_import(f"Transaction {index}: {message}", field, correlation_id)
            if draft.account_id not in self._accounts:
                await self._reject_import(
                    f"Transaction {index}: unknown account {draft.account_id}",
                    "account_id",
                    correlation_id,
                )
            if draft.credit_card_id is not None and draft.credit_card_id not in self._credit_cards:
                await self._reject_import(
                    f"Transaction {index}: unknown credit card {draft.credit_card_id}",
                    "credit_card_id",
                    correlation_id,
                )
            drafts.append(draft)

        if not drafts:
            return []

        known_ids = {t.id for t in self._transactions}
        batch: list[Transaction] = []
        for draft in drafts:
            values = draft.model_dump(exclude={"id"})
            values["id"] = self._mint_id(known_ids)
            known_ids.add(values["id"])
            batch.append(Transaction.model_validate(values))

        self._transactions[:0] = batch

        touched: dict[str, Account] = {}
        for transaction in batch:
            touched[transaction.account_id] = await self._apply(
                transaction.account_id, transaction.signed_amount, correlation_id
            )

        await self._audit_logger.log_transactions_imported(
            count=len(batch),
            accounts_touched=list(touched),
            correlation_id=correlation_id,
        )
        for transaction in batch:
            await self._persist(
                "create", Collection.TRANSACTIONS, transaction, correlation_id=correlation_id
            )
        for account in touched.values():
            await self._persist(
                "update", Collection.ACCOUNTS, account, correlation_id=correlation_id
            )
        return batch

    async def record_export(self, count: int, export_format: str) -> None:
        """Audit a download of the transaction list."""
        await self._audit_logger.log(
            AuditEventBuilder.transactions_exported(count=count, export_format=export_format)
        )

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def confirm_account_balance(self, account_id: str, balance: Any) -> Account:
        """
        Accept a client-posted balance for an account.

        Balances are derived from transactions, so the posted value must
        equal the ledger's own balance (to the cent). The account is then
        re-persisted.

        Raises:
            NotFoundError: Unknown account id
            ValidationError: Not a number, or differs from the ledger
        """
        account = self.get_account(account_id)
        try:
            posted = Decimal(str(balance))
        except (InvalidOperation, ValueError):
            await self._reject("confirm_account_balance", "balance must be a number", "balance", account_id)
        if not posted.is_finite():
            await self._reject("confirm_account_balance", "balance must be a number", "balance", account_id)
        try:
            posted = to_cents(posted)
        except ValueError as e:
            await self._reject("confirm_account_balance", str(e), "balance", account_id)

        if posted != account.balance:
            await self._audit_logger.log(
                AuditEventBuilder.balance_mismatch(
                    account_id=account_id,
                    stored_balance=str(account.balance),
                    posted_balance=str(posted),
                )
            )
            raise ValidationError(
                f"Balance of account {account_id} is derived from its transactions "
                f"({account.balance}); posted {posted}",
                field="balance",
            )

        await self._audit_logger.log(
            AuditEventBuilder.balance_confirmed(account_id, str(account.balance))
        )
        await self._persist("update", Collection.ACCOUNTS, account)
        return account

    def verify_balances(self) -> list[Account]:
        """
        Accounts whose stored balance differs from the signed sum of
        their transactions. Empty when the ledger is consistent.
        """
        computed = {account_id: Decimal("0") for account_id in self._accounts}
        for transaction in self._transactions:
            if transaction.account_id in computed:
                computed[transaction.account_id] += transaction.signed_amount

        mismatched = [
            account for account in self._accounts.values()
            if account.balance != computed[account.id]
        ]
        for account in mismatched:
            logger.warning(
                "balance_mismatch",
                account_id=account.id,
                stored=str(account.balance),
                computed=str(computed[account.id]),
            )
        return mismatched

    # =========================================================================
    # REFERENCE DATA
    # =========================================================================

    async def add_category(self, draft: Union[CategoryDraft, dict[str, Any]]) -> Category:
        draft = await self._validate(CategoryDraft, draft, "add_category")
        return await self._create_reference(Collection.CATEGORIES, Category, draft)

    async def update_category(
        self,
        category_id: str,
        changes: Union[CategoryUpdate, dict[str, Any]],
    ) -> Category:
        """
        Update a category.

        Transactions reference categories by name, so a rename leaves
        existing transactions on the old name.
        """
        update = await self._validate(CategoryUpdate, changes, "update_category")
        return await self._update_reference(Collection.CATEGORIES, category_id, update)

    async def delete_category(self, category_id: str) -> Category:
        return await self._delete_reference(Collection.CATEGORIES, category_id)

    async def add_credit_card(
        self,
        draft: Union[CreditCardDraft, dict[str, Any]],
    ) -> CreditCard:
        draft = await self._validate(CreditCardDraft, draft, "add_credit_card")
        return await self._create_reference(Collection.CREDIT_CARDS, CreditCard, draft)

    async def update_credit_card(
        self,
        card_id: str,
        changes: Union[CreditCardUpdate, dict[str, Any]],
    ) -> CreditCard:
        update = await self._validate(CreditCardUpdate, changes, "update_credit_card")
        return await self._update_reference(Collection.CREDIT_CARDS, card_id, update)

    async def delete_credit_card(self, card_id: str) -> CreditCard:
        """Delete a card. Transactions keep their (now dangling) card id."""
        return await self._delete_reference(Collection.CREDIT_CARDS, card_id)

    async def add_tag(self, draft: Union[TagDraft, dict[str, Any]]) -> Tag:
        draft = await self._validate(TagDraft, draft, "add_tag")
        return await self._create_reference(Collection.TAGS, Tag, draft)

    async def update_tag(
        self,
        tag_id: str,
        changes: Union[TagUpdate, dict[str, Any]],
    ) -> Tag:
        update = await self._validate(TagUpdate, changes, "update_tag")
        return await self._update_reference(Collection.TAGS, tag_id, update)

    async def delete_tag(self, tag_id: str) -> Tag:
        """Delete a tag. Transactions are not touched."""
        return await self._delete_reference(Collection.TAGS, tag_id)

    async def update_notification_settings(
        self,
        changes: Union[NotificationSettingsUpdate, dict[str, Any]],
    ) -> NotificationSettings:
        """Merge changes into the notification settings and save them."""
        update = await self._validate(
            NotificationSettingsUpdate, changes, "update_notification_settings"
        )
        delta = update.model_dump(exclude_unset=True, exclude_none=True)
        merged = self._notification_settings.model_copy(update=delta)
        self._notification_settings = merged

        await self._audit_logger.log(
            AuditEventBuilder.settings_updated(NOTIFICATION_SETTINGS_KEY, sorted(delta))
        )
        try:
            await self._storage.save_settings(NOTIFICATION_SETTINGS_KEY, merged.to_document())
        except PersistenceError as e:
            await self._persistence_failed("save_settings", "settings", NOTIFICATION_SETTINGS_KEY, e)
        return merged

    def _references(self, collection: Collection) -> dict[str, FinanceModel]:
        return {
            Collection.ACCOUNTS: self._accounts,
            Collection.CATEGORIES: self._categories,
            Collection.CREDIT_CARDS: self._credit_cards,
            Collection.TAGS: self._tags,
        }[collection]

    async def _create_reference(
        self,
        collection: Collection,
        model: type[ModelT],
        draft: FinanceModel,
    ) -> ModelT:
        store = self._references(collection)
        values = draft.model_dump(exclude={"id"})
        values["id"] = self._mint_id(store)
        entity = model.model_validate(values)
        store[entity.id] = entity

        await self._audit_logger.log_entity_changed(
            AuditEventType.ENTITY_CREATED, collection.value, entity.id, entity.name
        )
        await self._persist("create", collection, entity)
        return entity

    async def _update_reference(
        self,
        collection: Collection,
        entity_id: str,
        update: FinanceModel,
    ) -> FinanceModel:
        store = self._references(collection)
        current = store.get(entity_id)
        if current is None:
            raise NotFoundError(collection.value, entity_id)

        delta = update.model_dump(exclude_unset=True)
        try:
            entity = type(current).model_validate(
                {**current.model_dump(), **delta, "id": current.id}
            )
        except PydanticValidationError as e:
            message, field = _first_error(e)
            await self._reject(f"update_{collection.value}", message, field, entity_id)
        store[entity_id] = entity

        await self._audit_logger.log_entity_changed(
            AuditEventType.ENTITY_UPDATED, collection.value, entity_id, entity.name
        )
        await self._persist("update", collection, entity)
        return entity

    async def _delete_reference(self, collection: Collection, entity_id: str) -> FinanceModel:
        store = self._references(collection)
        entity = store.pop(entity_id, None)
        if entity is None:
            raise NotFoundError(collection.value, entity_id)

        await self._audit_logger.log_entity_changed(
            AuditEventType.ENTITY_DELETED, collection.value, entity_id, entity.name
        )
        await self._persist("delete", collection, entity_id=entity_id)
        return entity

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _apply(
        self,
        account_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        """Add a signed amount to an account balance. Returns the new account."""
        account = self.get_account(account_id)
        updated = account.model_copy(update={"balance": account.balance + amount})
        self._accounts[account_id] = updated
        await self._audit_logger.log_balance_changed(
            account_id=account_id,
            old_balance=str(account.balance),
            new_balance=str(updated.balance),
            correlation_id=correlation_id,
        )
        return updated

    @staticmethod
    def _mint_id(existing: Iterable[str]) -> str:
        taken = set(existing)
        while True:
            candidate = new_id()
            if candidate not in taken:
                return candidate

    async def _validate(
        self,
        model: type[ModelT],
        payload: Union[FinanceModel, dict[str, Any]],
        operation: str,
    ) -> ModelT:
        """Coerce a payload to a model, converting pydantic errors."""
        if isinstance(payload, model):
            return payload
        if isinstance(payload, FinanceModel):
            payload = payload.model_dump(exclude_unset=True)
        if not isinstance(payload, dict):
            await self._reject(operation, "payload must be an object", None, None)
        try:
            return model.model_validate(payload)
        except PydanticValidationError as e:
            message, field = _first_error(e)
            await self._reject(operation, message, field, None)

    async def _check_references(
        self,
        account_id: Optional[str],
        credit_card_id: Optional[str],
        operation: str,
    ) -> None:
        if account_id is not None and account_id not in self._accounts:
            await self._reject(operation, f"Unknown account: {account_id}", "account_id", None)
        if credit_card_id is not None and credit_card_id not in self._credit_cards:
            await self._reject(
                operation, f"Unknown credit card: {credit_card_id}", "credit_card_id", None
            )

    async def _reject(
        self,
        operation: str,
        message: str,
        field: Optional[str],
        entity_id: Optional[str],
    ) -> NoReturn:
        """Audit a rejected operation and raise ValidationError."""
        await self._audit_logger.log_validation_failed(
            operation=operation,
            message=message,
            entity_id=entity_id,
        )
        raise ValidationError(message, field=field)

    async def _reject_import(
        self,
        message: str,
        field: Optional[str],
        correlation_id: UUID,
    ) -> NoReturn:
        await self._audit_logger.log(AuditEventBuilder.import_rejected(message, correlation_id))
        raise ValidationError(message, field=field)

    async def _persist(
        self,
        operation: str,
        collection: Collection,
        entity: Optional[FinanceModel] = None,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Write one change through the gateway.

        Failures are audited; local state is kept. In strict mode the
        error is re-raised after the audit entry.
        """
        entity_id = entity_id or (entity.id if entity is not None else None)
        try:
            if operation == "create":
                await self._storage.create(collection, entity)
            elif operation == "update":
                await self._storage.update(collection, entity)
            elif operation == "delete":
                await self._storage.delete(collection, entity_id)
            else:
                raise ValueError(f"Unknown operation: {operation}")
        except (PersistenceError, NotFoundError) as e:
            await self._persistence_failed(operation, collection.value, entity_id, e, correlation_id)

    async def _persistence_failed(
        self,
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self._audit_logger.log_persistence_failed(
            operation=operation,
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=str(error),
            correlation_id=correlation_id,
        )
        if self._settings.strict_persistence:
            if isinstance(error, PersistenceError):
                raise error
            raise PersistenceError(str(error)) from error
