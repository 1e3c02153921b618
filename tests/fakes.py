"""Deterministic fakes for transaction cache tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from shared.errors import NotFoundError, StoreError
from shared.models import Transaction, TransactionFields, TransactionType


FIXED_NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)
USER_ID = "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa"
OTHER_USER_ID = "bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb"


def make_fields(
    *,
    type: TransactionType = TransactionType.EXPENSE,
    amount: str = "10.00",
    label: str = "Coffee",
    date: datetime = FIXED_NOW,
    bank_name: str = "UBS",
    category: str | None = "Food",
) -> TransactionFields:
    return TransactionFields(
        type=type,
        amount=Decimal(amount),
        label=label,
        date=date,
        bank_name=bank_name,
        category=category,
    )


def make_transaction(transaction_id: str, **kwargs: object) -> Transaction:
    return Transaction.from_fields(transaction_id, make_fields(**kwargs))


@dataclass(slots=True)
class FakeTransactionsRepository:
    """Store fake recording calls, with switchable failures and a fetch gate."""

    rows: dict[str, list[Transaction]] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)
    fail_on: set[str] = field(default_factory=set)
    fetch_gate: asyncio.Event | None = None

    def _record(self, operation: str, user_id: str) -> None:
        self.calls.append((operation, user_id))
        if operation in self.fail_on:
            raise StoreError(f"{operation} failed", status_code=503)

    def count(self, operation: str) -> int:
        return sum(1 for called, _ in self.calls if called == operation)

    async def fetch_all(self, user_id: str) -> list[Transaction]:
        self.calls.append(("fetch_all", user_id))
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        else:
            await asyncio.sleep(0)
        if "fetch_all" in self.fail_on:
            raise StoreError("fetch_all failed", status_code=503)
        return list(self.rows.get(user_id, []))

    async def create(self, user_id: str, transaction: Transaction) -> None:
        self._record("create", user_id)
        self.rows.setdefault(user_id, []).append(transaction)

    async def update(self, user_id: str, transaction: Transaction) -> None:
        self._record("update", user_id)
        user_rows = self.rows.get(user_id, [])
        for index, current in enumerate(user_rows):
            if current.id == transaction.id:
                user_rows[index] = transaction
                return
        raise NotFoundError(transaction.id)

    async def delete(self, user_id: str, transaction_id: str) -> None:
        self._record("delete", user_id)
        self.rows[user_id] = [t for t in self.rows.get(user_id, []) if t.id != transaction_id]

    async def get_by_id(self, user_id: str, transaction_id: str) -> Transaction | None:
        self._record("get_by_id", user_id)
        for transaction in self.rows.get(user_id, []):
            if transaction.id == transaction_id:
                return transaction
        return None

    async def healthcheck(self) -> bool:
        return "healthcheck" not in self.fail_on
