"""
Core Data Models for Finance Tracker

These models define the schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize to the same camelCase documents the web client exchanges
4. Stay immutable, so a snapshot can be shared without copying

Entities are frozen pydantic v2 models. Multi-word fields carry a
camelCase alias (accountId, creditCardId, ...); both names are accepted
on input.
"""

import secrets
import string
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)


CENT = Decimal("0.01")


def to_cents(value: Decimal) -> Decimal:
    """Round half up to whole cents, the precision every store keeps."""
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError("amount out of range")


# Decimal in Python, plain number in JSON documents. Always whole cents,
# so a sum of stored amounts equals the stored sum.
Money = Annotated[
    Decimal,
    AfterValidator(to_cents),
    PlainSerializer(lambda v: float(to_cents(v)), return_type=float, when_used="json"),
]

ID_ALPHABET = string.digits + string.ascii_lowercase
ID_LENGTH = 9


def new_id() -> str:
    """Mint an opaque 9-character base-36 id."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


def _coerce_timestamp(value: Any) -> Any:
    """Accept date objects and date-only strings as local midnight."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str) and len(value.strip()) == 10:
        try:
            return datetime.combine(date.fromisoformat(value.strip()), time.min)
        except ValueError:
            return value
    return value


def _to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _unique_tags(value: Optional[list[str]]) -> Optional[list[str]]:
    if value is None:
        return None
    return list(dict.fromkeys(value))


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class FinanceModel(BaseModel):
    """Base for every entity and payload exchanged with clients."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    def to_document(self) -> dict:
        """Dump with camelCase keys and JSON-safe values."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction; also the kind of a category."""
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def label(self) -> str:
        """Portuguese label used in reports."""
        return "Receita" if self is TransactionType.INCOME else "Despesa"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionDraft(FinanceModel):
    """A transaction payload before an id is assigned."""

    description: str = Field(
        ...,
        max_length=200,
        description="What the money was for"
    )
    amount: Money = Field(
        ...,
        ge=0,
        description="Non-negative magnitude; the sign comes from type"
    )
    date: datetime = Field(
        ...,
        description="When it happened (local time)"
    )
    category: str = Field(
        ...,
        min_length=1,
        description="Category name (referenced by name, not id)"
    )
    type: TransactionType
    account_id: str = Field(
        ...,
        alias="accountId",
        min_length=1,
        description="Account the transaction belongs to"
    )
    tags: list[str] = Field(
        default_factory=list,
        description="Tag ids, order irrelevant"
    )
    credit_card_id: Optional[str] = Field(
        default=None,
        alias="creditCardId",
        description="Credit card used, if any"
    )

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        return _coerce_timestamp(v)

    @field_validator("date")
    @classmethod
    def localize_date(cls, v: datetime) -> datetime:
        return _to_local_naive(v)

    @field_validator("tags", mode="before")
    @classmethod
    def default_tags(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v: list[str]) -> list[str]:
        return _unique_tags(v)

    @field_validator("credit_card_id", mode="before")
    @classmethod
    def blank_card_is_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @property
    def signed_amount(self) -> Decimal:
        """Contribution to the account balance."""
        if self.type is TransactionType.INCOME:
            return self.amount
        return -self.amount


class Transaction(TransactionDraft):
    """A recorded transaction."""

    id: str = Field(
        ...,
        min_length=1,
        description="Opaque unique id, immutable once assigned"
    )


class TransactionUpdate(FinanceModel):
    """
    Partial update of a transaction.

    Only fields explicitly set are applied; the id cannot change.
    """

    description: Optional[str] = Field(default=None, max_length=200)
    amount: Optional[Money] = Field(default=None, ge=0)
    date: Optional[datetime] = None
    category: Optional[str] = Field(default=None, min_length=1)
    type: Optional[TransactionType] = None
    account_id: Optional[str] = Field(default=None, alias="accountId", min_length=1)
    tags: Optional[list[str]] = None
    credit_card_id: Optional[str] = Field(default=None, alias="creditCardId")

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        return _coerce_timestamp(v)

    @field_validator("date")
    @classmethod
    def localize_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _to_local_naive(v)

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return _unique_tags(v)

    @field_validator("credit_card_id", mode="before")
    @classmethod
    def blank_card_is_none(cls, v: Any) -> Any:
        # An explicit blank clears the card
        return _blank_to_none(v)

    def changes(self) -> dict[str, Any]:
        """Fields explicitly provided, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# ACCOUNTS, CATEGORIES, CARDS, TAGS
# =============================================================================

class Account(FinanceModel):
    """
    A money container.

    balance is stored but derived: it always equals the signed sum of
    the account's transactions, and only the ledger writes it.
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    balance: Money = Field(default=Decimal("0"))
    color: str = Field(default="#000000", max_length=20)
    icon: str = Field(default="Wallet", max_length=50)


class CategoryDraft(FinanceModel):
    """A category payload before an id is assigned."""

    name: str = Field(..., min_length=1, max_length=100)
    icon: str = Field(default="Tag", max_length=50)
    color: str = Field(default="#000000", max_length=20)
    type: TransactionType


class Category(CategoryDraft):
    id: str = Field(..., min_length=1)


class CategoryUpdate(FinanceModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)
    type: Optional[TransactionType] = None


class CreditCardDraft(FinanceModel):
    """
    A credit card payload before an id is assigned.

    limit is informational only; nothing enforces it.
    """

    name: str = Field(..., min_length=1, max_length=100)
    brand: str = Field(default="Visa", max_length=50)
    bank: str = Field(default="", max_length=100)
    limit: Money = Field(default=Decimal("0"), ge=0)
    closing_day: int = Field(default=1, alias="closingDay", ge=1, le=31)
    due_day: int = Field(default=10, alias="dueDay", ge=1, le=31)
    color: str = Field(default="#000000", max_length=20)


class CreditCard(CreditCardDraft):
    id: str = Field(..., min_length=1)


class CreditCardUpdate(FinanceModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    brand: Optional[str] = Field(default=None, max_length=50)
    bank: Optional[str] = Field(default=None, max_length=100)
    limit: Optional[Money] = Field(default=None, ge=0)
    closing_day: Optional[int] = Field(default=None, alias="closingDay", ge=1, le=31)
    due_day: Optional[int] = Field(default=None, alias="dueDay", ge=1, le=31)
    color: Optional[str] = Field(default=None, max_length=20)


class TagDraft(FinanceModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(default="#000000", max_length=20)


class Tag(TagDraft):
    id: str = Field(..., min_length=1)


class TagUpdate(FinanceModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)


# =============================================================================
# SETTINGS
# =============================================================================

class NotificationSettings(FinanceModel):
    """Process-wide reminder preferences."""

    card_due_reminders: bool = Field(default=True, alias="cardDueReminders")
    transaction_reminders: bool = Field(default=True, alias="transactionReminders")
    reminder_time: str = Field(
        default="09:00",
        alias="reminderTime",
        pattern=r"^([01]\d|2[0-3]):[0-5]\d$",
        description="HH:mm"
    )
    days_before_due: int = Field(
        default=2,
        alias="daysBeforeDue",
        ge=0,
        le=31,
        description="How many days ahead a card due date is announced"
    )


class NotificationSettingsUpdate(FinanceModel):
    card_due_reminders: Optional[bool] = Field(default=None, alias="cardDueReminders")
    transaction_reminders: Optional[bool] = Field(default=None, alias="transactionReminders")
    reminder_time: Optional[str] = Field(
        default=None,
        alias="reminderTime",
        pattern=r"^([01]\d|2[0-3]):[0-5]\d$",
    )
    days_before_due: Optional[int] = Field(default=None, alias="daysBeforeDue", ge=0, le=31)


# =============================================================================
# SNAPSHOT
# =============================================================================

class LedgerSnapshot(FinanceModel):
    """
    The ledger state at one instant.

    Read-only input of the aggregation and report functions.
    Transactions keep the ledger order (most recent insertion first).
    """

    transactions: tuple[Transaction, ...] = ()
    accounts: tuple[Account, ...] = ()
    categories: tuple[Category, ...] = ()
    credit_cards: tuple[CreditCard, ...] = Field(default=(), alias="creditCards")
    tags: tuple[Tag, ...] = ()
    notification_settings: NotificationSettings = Field(
        default_factory=NotificationSettings,
        alias="notificationSettings",
    )
    taken_at: datetime = Field(default_factory=datetime.now, alias="takenAt")


# =============================================================================
# DEFAULT DATA
# =============================================================================

DEFAULT_ACCOUNTS: tuple[Account, ...] = (
    Account(id="1", name="Carteira", balance=Decimal("0"), color="#000000", icon="Wallet"),
    Account(id="2", name="Conta Corrente", balance=Decimal("0"), color="#333333", icon="Banknote"),
)

DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(id="c1", name="Alimentação", icon="Utensils", color="#f59e0b", type=TransactionType.EXPENSE),
    Category(id="c2", name="Transporte", icon="Car", color="#3b82f6", type=TransactionType.EXPENSE),
    Category(id="c3", name="Lazer", icon="Gamepad2", color="#8b5cf6", type=TransactionType.EXPENSE),
    Category(id="c4", name="Saúde", icon="HeartPulse", color="#ef4444", type=TransactionType.EXPENSE),
    Category(id="c5", name="Salário", icon="DollarSign", color="#10b981", type=TransactionType.INCOME),
    Category(id="c6", name="Investimentos", icon="TrendingUp", color="#000000", type=TransactionType.INCOME),
)
