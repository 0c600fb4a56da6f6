from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
)

from .core.config import settings
from .models import AccountType, RecurrencePattern, TxnType
from .utils.amounts import parse_amount


# ===== Recurrence =====

class RecurrenceConfig(BaseModel):
    """Recurrence rule attached to a transaction.

    Only types are checked here (enum membership, integers, ISO datetimes).
    Range checks live in ``validate_recurrence_config`` so that an invalid
    interval can still be represented and reported back to the caller.
    The JSON form keeps the camelCase keys stored in ``recurrence_pattern``.
    """

    pattern: RecurrencePattern
    interval: int = 1
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    max_occurrences: Optional[int] = Field(default=None, alias="maxOccurrences")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("pattern", mode="before")
    def upper_pattern(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


class RecurrenceValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)


def parse_recurrence_pattern(value: str | None) -> RecurrenceConfig | None:
    """Decode a stored ``recurrence_pattern`` column.

    Returns ``None`` for empty, malformed JSON or type-invalid payloads.
    """
    if not value:
        return None
    try:
        return RecurrenceConfig.model_validate(json.loads(value))
    except (ValueError, TypeError, ValidationError):
        return None


def stringify_recurrence_pattern(config: RecurrenceConfig) -> str:
    return config.model_dump_json(by_alias=True, exclude_none=True)


class TransactionTemplate(BaseModel):
    """Transaction payload that generated instances are copied from."""

    amount: Decimal
    description: str
    type: TxnType
    date: datetime
    category_id: int | str
    space_id: int | str
    account_id: int | str

    @field_validator("amount", mode="before")
    def coerce_amount(cls, v):
        return parse_amount(v)


class GeneratedInstance(BaseModel):
    id: str
    original_transaction_id: int | str
    scheduled_date: datetime
    amount: Decimal
    description: str
    type: TxnType
    category_id: int | str
    space_id: int | str
    account_id: int | str
    is_generated: bool = True
    recurrence_id: int | str

    model_config = ConfigDict(frozen=True)


class RecurrenceSchedule(BaseModel):
    id: int | str
    transaction_template: TransactionTemplate
    recurrence: RecurrenceConfig
    start_date: datetime
    next_scheduled_date: Optional[datetime] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    last_generated_date: Optional[datetime] = None
    occurrence_count: int = 0


class RecurrencePreviewRequest(BaseModel):
    start_date: datetime
    recurrence: RecurrenceConfig
    count: int = Field(default=settings.RECURRENCE_PREVIEW_COUNT, ge=1, le=1000)


class RecurrencePreviewOut(BaseModel):
    dates: list[datetime]
    description: str
    validation: RecurrenceValidationResult


class RecurringInstancesOut(BaseModel):
    instances: list[GeneratedInstance]
    total: int
    has_more: bool = False


# ===== Spaces =====

class SpaceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name")
    def strip_name(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class SpaceUpdate(SpaceCreate):
    pass


class SpaceOut(BaseModel):
    id: int
    user_id: int
    name: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ===== Accounts =====

class AccountCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    type: AccountType

    @field_validator("name")
    def normalize_name(cls, v: str):
        v = " ".join(v.split())
        if len(v) < 2:
            raise ValueError("name must have at least 2 characters")
        return v


class AccountUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    type: Optional[AccountType] = None

    @field_validator("name")
    def normalize_name(cls, v: str | None):
        if v is None:
            return v
        v = " ".join(v.split())
        if len(v) < 2:
            raise ValueError("name must have at least 2 characters")
        return v


class AccountOut(BaseModel):
    id: int
    user_id: int
    name: str
    type: AccountType
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ===== Categories =====

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: Optional[TxnType] = None
    icon: Optional[str] = Field(default=None, max_length=32)
    color: Optional[str] = Field(default=None, max_length=9)
    sort_order: Optional[str] = Field(default=None, max_length=8)

    @field_validator("name")
    def strip_name(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[TxnType] = None
    icon: Optional[str] = Field(default=None, max_length=32)
    color: Optional[str] = Field(default=None, max_length=9)
    sort_order: Optional[str] = Field(default=None, max_length=8)

    @field_validator("name")
    def strip_name(cls, v: str | None):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class CategoryOut(BaseModel):
    id: int
    user_id: Optional[int]
    name: str
    type: Optional[TxnType]
    icon: Optional[str]
    color: Optional[str]
    is_default: bool
    sort_order: Optional[str]

    model_config = ConfigDict(from_attributes=True)


# ===== Transactions =====

def _decode_recurrence(v):
    # Accept the JSON string form stored in the database as well as objects
    if isinstance(v, str):
        if not v.strip():
            return None
        try:
            return json.loads(v)
        except ValueError as exc:
            raise ValueError("recurrence pattern must be valid JSON") from exc
    return v


class TransactionCreate(BaseModel):
    amount: Decimal
    date: datetime
    description: str = Field(..., min_length=1, max_length=255)
    category_id: int
    space_id: int
    account_id: int
    type: TxnType
    is_recurrent: bool = False
    recurrence: Optional[RecurrenceConfig] = Field(
        default=None,
        validation_alias=AliasChoices("recurrence", "recurrence_pattern", "recurrencePattern"),
    )

    @field_validator("amount", mode="before")
    def coerce_amount(cls, v):
        amount = parse_amount(v)
        if amount <= 0:
            raise ValueError("amount must be positive")
        return amount

    @field_validator("description")
    def strip_description(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("description must not be blank")
        return v

    @field_validator("recurrence", mode="before")
    def decode_recurrence(cls, v):
        return _decode_recurrence(v)


class RecurringTransactionCreate(TransactionCreate):
    is_recurrent: bool = True


class TransactionUpdate(BaseModel):
    amount: Optional[Decimal] = None
    date: Optional[datetime] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category_id: Optional[int] = None
    space_id: Optional[int] = None
    account_id: Optional[int] = None
    type: Optional[TxnType] = None
    is_recurrent: Optional[bool] = None
    recurrence: Optional[RecurrenceConfig] = Field(
        default=None,
        validation_alias=AliasChoices("recurrence", "recurrence_pattern", "recurrencePattern"),
    )

    @field_validator("amount", mode="before")
    def coerce_amount(cls, v):
        if v is None:
            return v
        amount = parse_amount(v)
        if amount <= 0:
            raise ValueError("amount must be positive")
        return amount

    @field_validator("recurrence", mode="before")
    def decode_recurrence(cls, v):
        return _decode_recurrence(v)


class TransactionOut(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    date: datetime
    description: str
    category_id: int
    space_id: int
    account_id: int
    type: TxnType
    is_recurrent: bool
    recurrence_pattern: Optional[str] = Field(default=None, exclude=True)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field(return_type=Optional[RecurrenceConfig])
    def recurrence(self) -> RecurrenceConfig | None:
        return parse_recurrence_pattern(self.recurrence_pattern)


class TransactionFilters(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    category_id: Optional[int] = None
    space_id: Optional[int] = None
    account_id: Optional[int] = None
    type: Optional[TxnType] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    search: Optional[str] = None

    @field_validator("min_amount", "max_amount", mode="before")
    def coerce_amount(cls, v):
        if v is None or v == "":
            return None
        return parse_amount(v)

    @field_validator("search")
    def blank_search_is_none(cls, v: str | None):
        if v is None:
            return v
        return v.strip() or None
