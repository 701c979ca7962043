from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from domain.catalog import DEFAULT_CURRENCY_CODE, FALLBACK_CATEGORY
from domain.models import TransactionType


def _coerce_date(value: Any) -> Any:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date) or not isinstance(value, str):
        return value

    text = value.strip()
    if not text:
        return None

    # Canonical format first.
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%m-%d-%Y"):
        try:
            return dt.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return value


class StoredModel(BaseModel):
    """Base for entities persisted in the key-value store (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Transaction(StoredModel):
    id: str = Field(min_length=1)
    description: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    type: TransactionType
    date: dt.date
    category: str = FALLBACK_CATEGORY
    notes: Optional[str] = None
    currency_code: str = DEFAULT_CURRENCY_CODE

    @field_validator("currency_code")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, value: Any) -> Any:
        return _coerce_date(value)


class RecurringTransaction(StoredModel):
    id: str = Field(min_length=1)
    description: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    type: TransactionType
    category: str = FALLBACK_CATEGORY
    # Kept as a plain string so rules with an unknown frequency still load.
    frequency: str
    start_date: dt.date
    next_occurrence_date: dt.date
    notes: Optional[str] = None
    currency_code: str = DEFAULT_CURRENCY_CODE

    @field_validator("currency_code")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("frequency")
    @classmethod
    def lower_frequency(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("start_date", "next_occurrence_date", mode="before")
    @classmethod
    def coerce_date(cls, value: Any) -> Any:
        return _coerce_date(value)


class Budget(StoredModel):
    category: str = Field(min_length=1)
    amount: Decimal = Field(ge=0)


class CategoryOverride(StoredModel):
    description: str
    category: str


class TransactionInput(BaseModel):
    """Raw user input for a transaction; content checks are reported by ValidatorService."""

    description: str = ""
    amount: Optional[Decimal] = None
    type: TransactionType = TransactionType.EXPENSE
    date: Optional[dt.date] = None
    category: str = FALLBACK_CATEGORY
    notes: Optional[str] = None
    currency_code: str = DEFAULT_CURRENCY_CODE
    ai_suggested_category: Optional[str] = None
    override_confirmed: bool = False

    @field_validator("date", mode="before")
    @classmethod
    def coerce_date(cls, value: Any) -> Any:
        return _coerce_date(value)

    @field_validator("amount", mode="before")
    @classmethod
    def blank_amount(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class RecurringTransactionInput(BaseModel):
    description: str = ""
    amount: Optional[Decimal] = None
    type: TransactionType = TransactionType.EXPENSE
    category: str = FALLBACK_CATEGORY
    frequency: str = "monthly"
    start_date: Optional[dt.date] = None
    notes: Optional[str] = None
    currency_code: str = DEFAULT_CURRENCY_CODE
    ai_suggested_category: Optional[str] = None
    override_confirmed: bool = False

    @field_validator("start_date", mode="before")
    @classmethod
    def coerce_date(cls, value: Any) -> Any:
        return _coerce_date(value)

    @field_validator("amount", mode="before")
    @classmethod
    def blank_amount(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class BudgetInput(BaseModel):
    category: str
    amount: Optional[Decimal] = None


class TransactionFilter(BaseModel):
    """
    Transaction list query.

    Optional:
      - type ("all" | "income" | "expense")
      - currency ("ALL" disables the filter)
      - start / end dates (inclusive)
      - sort_order ("asc" oldest first, "desc" newest first)
      - ids (a selection; empty means every transaction that passes the other filters)
    """

    type: Literal["all", "income", "expense"] = "all"
    currency: str = "ALL"
    start: Optional[dt.date] = None
    end: Optional[dt.date] = None
    sort_order: Literal["asc", "desc"] = "desc"
    ids: List[str] = Field(default_factory=list)

    @field_validator("start", "end", mode="before")
    @classmethod
    def coerce_date(cls, value: Any) -> Any:
        return _coerce_date(value)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: str) -> str:
        return value.strip().upper() or "ALL"

    @model_validator(mode="after")
    def validate_order(self) -> "TransactionFilter":
        if self.start and self.end and self.start > self.end:
            raise ValueError("start must be <= end")
        return self


class SettingsUpdate(BaseModel):
    selected_currency: Optional[str] = None
    budget_alert_threshold: Optional[int] = None


class ConversionRequest(BaseModel):
    amount: Decimal
    from_currency: str
    to_currency: str


class CategorizeRequest(BaseModel):
    description: str


class DeleteTransactionsRequest(BaseModel):
    ids: List[str] = Field(default_factory=list)
