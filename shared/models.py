"""Pydantic contracts shared across backend services and the HTTP API."""

from __future__ import annotations

from datetime import date as calendar_date, datetime, time as clock_time, timezone
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TransactionType(str, Enum):
    """Closed set of transaction kinds; the kind carries the amount sign."""

    EXPENSE = "Expense"
    INCOME = "Income"


def _as_utc(value: datetime) -> datetime:
    """Pin timestamps to UTC so calendar buckets match what the store returns."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TransactionFields(BaseModel):
    """Caller-supplied transaction attributes, everything except the id."""

    model_config = ConfigDict(extra="forbid")

    type: TransactionType
    amount: Decimal = Field(ge=0)
    label: str
    date: datetime
    bank_name: str
    category: str | None = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value: datetime) -> datetime:
        return _as_utc(value)


class Transaction(TransactionFields):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1)

    @classmethod
    def from_fields(cls, transaction_id: str, fields: TransactionFields) -> "Transaction":
        return cls(id=transaction_id, **fields.model_dump())


class CategoryExpense(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: str
    total: Decimal


class PeriodSummary(BaseModel):
    """Income/expense totals for a calendar month or year."""

    model_config = ConfigDict(extra="forbid")

    year: int
    month: int | None = None
    income: Decimal
    expenses: Decimal
    net: Decimal


class BalanceSummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    balance: Decimal
    total_income: Decimal
    total_expenses: Decimal


class TransactionFormRequest(BaseModel):
    """Raw transaction form input, parsed server-side into TransactionFields."""

    model_config = ConfigDict(extra="forbid")

    type: str
    amount: str
    label: str
    bank_name: str
    date: str | None = None
    category: str | None = None
    selected_date: calendar_date | None = None
    selected_time: clock_time | None = None
