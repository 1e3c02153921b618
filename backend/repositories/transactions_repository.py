"""Transaction store adapters keyed by user id and transaction id."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from pydantic import ValidationError

from backend.db.supabase_client import SupabaseClient
from shared.errors import NotFoundError, StoreError
from shared.models import Transaction


logger = logging.getLogger(__name__)

_SELECT_COLUMNS = "id,type,amount,label,date,bank_name,category"


class TransactionsRepository(Protocol):
    async def fetch_all(self, user_id: str) -> list[Transaction]:
        """Return every transaction stored for the user."""

    async def create(self, user_id: str, transaction: Transaction) -> None:
        """Persist a new transaction for the user."""

    async def update(self, user_id: str, transaction: Transaction) -> None:
        """Replace the stored transaction with the same id, or raise NotFoundError."""

    async def delete(self, user_id: str, transaction_id: str) -> None:
        """Delete a transaction; unknown ids are a no-op."""

    async def get_by_id(self, user_id: str, transaction_id: str) -> Transaction | None:
        """Return one transaction or None when absent."""

    async def healthcheck(self) -> bool:
        """Return whether the store is configured and usable."""


class InMemoryTransactionsRepository:
    """In-memory store used for local dev/tests when Supabase is not configured."""

    def __init__(self, seed: dict[str, list[Transaction]] | None = None) -> None:
        self._rows: dict[str, dict[str, Transaction]] = {}
        for user_id, transactions in (seed or {}).items():
            self._rows[user_id] = {transaction.id: transaction for transaction in transactions}

    async def fetch_all(self, user_id: str) -> list[Transaction]:
        return list(self._rows.get(user_id, {}).values())

    async def create(self, user_id: str, transaction: Transaction) -> None:
        user_rows = self._rows.setdefault(user_id, {})
        if transaction.id in user_rows:
            raise StoreError(f"Transaction already exists: {transaction.id}", status_code=409)
        user_rows[transaction.id] = transaction

    async def update(self, user_id: str, transaction: Transaction) -> None:
        user_rows = self._rows.get(user_id, {})
        if transaction.id not in user_rows:
            raise NotFoundError(transaction.id)
        user_rows[transaction.id] = transaction

    async def delete(self, user_id: str, transaction_id: str) -> None:
        self._rows.get(user_id, {}).pop(transaction_id, None)

    async def get_by_id(self, user_id: str, transaction_id: str) -> Transaction | None:
        return self._rows.get(user_id, {}).get(transaction_id)

    async def healthcheck(self) -> bool:
        return True


class SupabaseTransactionsRepository:
    """Supabase repository reading and writing the user transactions table."""

    def __init__(self, client: SupabaseClient, *, table: str = "transactions") -> None:
        self._client = client
        self._table = table

    @staticmethod
    def _to_row(user_id: str, transaction: Transaction) -> dict[str, object]:
        row = transaction.model_dump(mode="json")
        row["user_id"] = user_id
        return row

    @staticmethod
    def _parse_row(row: dict[str, Any]) -> Transaction:
        payload = {key: value for key, value in row.items() if key != "user_id"}
        try:
            return Transaction.model_validate(payload)
        except ValidationError as exc:
            raise StoreError(f"Invalid transaction row returned by Supabase: {exc}") from exc

    async def fetch_all(self, user_id: str) -> list[Transaction]:
        rows, _ = await asyncio.to_thread(
            self._client.get_rows,
            table=self._table,
            query=[
                ("user_id", f"eq.{user_id}"),
                ("select", _SELECT_COLUMNS),
                ("order", "date.asc"),
            ],
            with_count=False,
        )
        return [self._parse_row(row) for row in rows]

    async def create(self, user_id: str, transaction: Transaction) -> None:
        rows = await asyncio.to_thread(
            self._client.post_rows,
            table=self._table,
            payload=self._to_row(user_id, transaction),
        )
        if not rows:
            raise StoreError("Supabase did not return created transaction")

    async def update(self, user_id: str, transaction: Transaction) -> None:
        payload = self._to_row(user_id, transaction)
        payload.pop("id")
        rows = await asyncio.to_thread(
            self._client.patch_rows,
            table=self._table,
            query={"id": f"eq.{transaction.id}", "user_id": f"eq.{user_id}", "select": "id"},
            payload=payload,
        )
        if not rows:
            raise NotFoundError(transaction.id)

    async def delete(self, user_id: str, transaction_id: str) -> None:
        rows = await asyncio.to_thread(
            self._client.delete_rows,
            table=self._table,
            query={"id": f"eq.{transaction_id}", "user_id": f"eq.{user_id}", "select": "id"},
        )
        if not rows:
            logger.info("transaction_delete_noop user_id=%s transaction_id=%s", user_id, transaction_id)

    async def get_by_id(self, user_id: str, transaction_id: str) -> Transaction | None:
        rows, _ = await asyncio.to_thread(
            self._client.get_rows,
            table=self._table,
            query={
                "id": f"eq.{transaction_id}",
                "user_id": f"eq.{user_id}",
                "select": _SELECT_COLUMNS,
                "limit": 1,
            },
            with_count=False,
        )
        if not rows:
            return None
        return self._parse_row(rows[0])

    async def healthcheck(self) -> bool:
        return self._client.healthcheck()
