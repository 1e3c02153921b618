"""Unit tests for transaction store adapters."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from backend.repositories.transactions_repository import (
    InMemoryTransactionsRepository,
    SupabaseTransactionsRepository,
)
from shared.errors import NotFoundError, StoreError
from shared.models import TransactionType
from tests.fakes import OTHER_USER_ID, USER_ID, make_transaction


class _ClientStub:
    def __init__(self, rows: list[dict[str, object]]) -> None:
        self.rows = rows
        self.healthy = True
        self.calls: list[dict[str, object]] = []

    def get_rows(self, *, table, query, with_count, use_anon_key=False):
        self.calls.append({"method": "GET", "table": table, "query": query})
        return self.rows, None

    def post_rows(self, *, table, payload, prefer="return=representation"):
        self.calls.append({"method": "POST", "table": table, "payload": payload})
        return self.rows

    def patch_rows(self, *, table, query, payload):
        self.calls.append({"method": "PATCH", "table": table, "query": query, "payload": payload})
        return self.rows

    def delete_rows(self, *, table, query):
        self.calls.append({"method": "DELETE", "table": table, "query": query})
        return self.rows

    def healthcheck(self) -> bool:
        return self.healthy


_ROW = {
    "id": "11111111-1111-1111-1111-111111111111",
    "user_id": USER_ID,
    "type": "Expense",
    "amount": "54.20",
    "label": "Supermarket",
    "date": "2025-01-10T09:30:00+00:00",
    "bank_name": "UBS",
    "category": "Food",
}


def test_fetch_all_scopes_query_by_user_and_parses_rows() -> None:
    client = _ClientStub(rows=[_ROW])
    repository = SupabaseTransactionsRepository(client=client)

    transactions = asyncio.run(repository.fetch_all(USER_ID))

    assert len(transactions) == 1
    assert transactions[0].id == _ROW["id"]
    assert transactions[0].type == TransactionType.EXPENSE
    assert transactions[0].amount == Decimal("54.20")
    assert transactions[0].date == datetime(2025, 1, 10, 9, 30, tzinfo=timezone.utc)
    query = client.calls[0]["query"]
    assert client.calls[0]["table"] == "transactions"
    assert ("user_id", f"eq.{USER_ID}") in query
    assert ("order", "date.asc") in query


def test_fetch_all_raises_store_error_on_malformed_rows() -> None:
    client = _ClientStub(rows=[{**_ROW, "amount": "-3"}])
    repository = SupabaseTransactionsRepository(client=client)

    with pytest.raises(StoreError, match="Invalid transaction row"):
        asyncio.run(repository.fetch_all(USER_ID))


def test_create_posts_json_row_with_user_id() -> None:
    client = _ClientStub(rows=[_ROW])
    repository = SupabaseTransactionsRepository(client=client, table="user_transactions")

    asyncio.run(repository.create(USER_ID, make_transaction("t1", amount="12.30")))

    call = client.calls[0]
    assert call["method"] == "POST"
    assert call["table"] == "user_transactions"
    assert call["payload"]["id"] == "t1"
    assert call["payload"]["user_id"] == USER_ID
    assert call["payload"]["type"] == "Expense"
    assert call["payload"]["amount"] == "12.30"


def test_update_patches_by_id_and_user_and_raises_when_nothing_matched() -> None:
    client = _ClientStub(rows=[])
    repository = SupabaseTransactionsRepository(client=client)

    with pytest.raises(NotFoundError):
        asyncio.run(repository.update(USER_ID, make_transaction("missing")))

    call = client.calls[0]
    assert call["method"] == "PATCH"
    assert call["query"]["id"] == "eq.missing"
    assert call["query"]["user_id"] == f"eq.{USER_ID}"
    assert "id" not in call["payload"]


def test_delete_of_unknown_id_is_a_noop() -> None:
    client = _ClientStub(rows=[])
    repository = SupabaseTransactionsRepository(client=client)

    asyncio.run(repository.delete(USER_ID, "missing"))

    assert client.calls[0]["method"] == "DELETE"


def test_get_by_id_returns_none_when_absent() -> None:
    repository = SupabaseTransactionsRepository(client=_ClientStub(rows=[]))

    assert asyncio.run(repository.get_by_id(USER_ID, "missing")) is None


def test_in_memory_repository_isolates_users_and_preserves_insertion_order() -> None:
    repository = InMemoryTransactionsRepository()

    async def scenario():
        await repository.create(USER_ID, make_transaction("b"))
        await repository.create(USER_ID, make_transaction("a"))
        await repository.create(OTHER_USER_ID, make_transaction("c"))
        return await repository.fetch_all(USER_ID), await repository.fetch_all(OTHER_USER_ID)

    mine, theirs = asyncio.run(scenario())

    assert [t.id for t in mine] == ["b", "a"]
    assert [t.id for t in theirs] == ["c"]


def test_in_memory_repository_update_and_delete_semantics() -> None:
    repository = InMemoryTransactionsRepository(seed={USER_ID: [make_transaction("t1", label="Old")]})

    asyncio.run(repository.update(USER_ID, make_transaction("t1", label="New")))
    with pytest.raises(NotFoundError):
        asyncio.run(repository.update(USER_ID, make_transaction("t2")))
    with pytest.raises(StoreError):
        asyncio.run(repository.create(USER_ID, make_transaction("t1")))
    asyncio.run(repository.delete(USER_ID, "unknown"))

    stored = asyncio.run(repository.get_by_id(USER_ID, "t1"))
    assert stored is not None and stored.label == "New"

    asyncio.run(repository.delete(USER_ID, "t1"))

    assert asyncio.run(repository.get_by_id(USER_ID, "t1")) is None


def test_healthcheck_reflects_store_configuration() -> None:
    client = _ClientStub(rows=[])
    repository = SupabaseTransactionsRepository(client=client)

    assert asyncio.run(repository.healthcheck()) is True
    client.healthy = False
    assert asyncio.run(repository.healthcheck()) is False
    assert asyncio.run(InMemoryTransactionsRepository().healthcheck()) is True
