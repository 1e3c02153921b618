"""In-memory transaction cache with single-flight loading and derived queries.

One cache instance holds the transactions of exactly one user at a time. The
first successful fetch loads everything from the store; afterwards add, update
and delete keep memory and store in sync without refetching.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable
from uuid import uuid4

from backend.auth.session import UserSession, require_user_id
from backend.repositories.transactions_repository import TransactionsRepository
from backend.services import transaction_aggregates as aggregates
from shared.models import CategoryExpense, Transaction, TransactionFields


logger = logging.getLogger(__name__)


Listener = Callable[[], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_transaction_id() -> str:
    return str(uuid4())


class TransactionCache:
    def __init__(
        self,
        store: TransactionsRepository,
        *,
        clock: Callable[[], datetime] = _utc_now,
        recent_window_days: int = 7,
        id_factory: Callable[[], str] = _new_transaction_id,
    ) -> None:
        self._store = store
        self._clock = clock
        self._recent_window_days = recent_window_days
        self._id_factory = id_factory
        self._transactions: list[Transaction] = []
        self._user_id: str | None = None
        self._loaded = False
        self._pending: dict[str, asyncio.Task[list[Transaction]]] = {}
        self._listeners: list[Listener] = []

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def _notify_listeners(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _tracks(self, user_id: str) -> bool:
        """Return whether memory belongs to `user_id`, binding it when unowned."""

        if self._user_id is None:
            self._user_id = user_id
        return self._user_id == user_id

    async def fetch(self, user_id: str | None) -> list[Transaction]:
        """Return the user's transactions, loading them from the store once.

        Concurrent callers for the same user share a single store request and
        all receive its result or its exception.
        """

        user_id = require_user_id(user_id)
        if self._loaded and self._user_id == user_id:
            return list(self._transactions)

        task = self._pending.get(user_id)
        if task is None:
            task = asyncio.ensure_future(self._load(user_id))
            self._pending[user_id] = task
        else:
            logger.info("transactions_fetch_joined user_id=%s", user_id)

        transactions = await asyncio.shield(task)
        return list(transactions)

    async def _load(self, user_id: str) -> list[Transaction]:
        logger.info("transactions_fetch_started user_id=%s", user_id)
        try:
            transactions = await self._store.fetch_all(user_id)
        except Exception:
            logger.warning("transactions_fetch_failed user_id=%s", user_id)
            raise
        finally:
            self._pending.pop(user_id, None)

        if self._user_id is not None and self._user_id != user_id:
            logger.info("transactions_cache_user_switched previous=%s current=%s", self._user_id, user_id)
        self._transactions = list(transactions)
        self._user_id = user_id
        self._loaded = True
        logger.info("transactions_fetch_completed user_id=%s count=%s", user_id, len(self._transactions))
        self._notify_listeners()
        return self._transactions

    async def fetch_for_current_user(self, session: UserSession) -> list[Transaction]:
        return await self.fetch(session.current_user_id())

    async def add(self, user_id: str | None, fields: TransactionFields) -> Transaction:
        user_id = require_user_id(user_id)
        transaction = Transaction.from_fields(self._id_factory(), fields)
        await self._store.create(user_id, transaction)

        if self._tracks(user_id):
            self._transactions.append(transaction)
        logger.info("transaction_added user_id=%s transaction_id=%s", user_id, transaction.id)
        self._notify_listeners()
        return transaction

    async def update(self, user_id: str | None, existing_id: str, fields: TransactionFields) -> Transaction:
        """Persist a full replacement keeping `existing_id`, then swap it in memory."""

        user_id = require_user_id(user_id)
        transaction = Transaction.from_fields(existing_id, fields)
        await self._store.update(user_id, transaction)

        if not self._tracks(user_id):
            return transaction
        for index, current in enumerate(self._transactions):
            if current.id == existing_id:
                self._transactions[index] = transaction
                logger.info("transaction_updated user_id=%s transaction_id=%s", user_id, existing_id)
                self._notify_listeners()
                break
        return transaction

    async def delete(self, user_id: str | None, transaction_id: str) -> None:
        user_id = require_user_id(user_id)
        await self._store.delete(user_id, transaction_id)

        logger.info("transaction_deleted user_id=%s transaction_id=%s", user_id, transaction_id)
        if not self._tracks(user_id):
            return
        kept = [t for t in self._transactions if t.id != transaction_id]
        if len(kept) != len(self._transactions):
            self._transactions = kept
            self._notify_listeners()

    async def get_by_id(self, user_id: str | None, transaction_id: str) -> Transaction | None:
        user_id = require_user_id(user_id)
        return await self._store.get_by_id(user_id, transaction_id)

    def reset(self) -> None:
        """Drop cached transactions so the next fetch reloads from the store."""

        self._transactions = []
        self._user_id = None
        self._loaded = False
        logger.info("transactions_cache_reset")
        self._notify_listeners()

    def recent(self) -> list[Transaction]:
        return aggregates.recent_transactions(self._transactions, self._clock(), self._recent_window_days)

    async def total_balance(self, user_id: str | None) -> Decimal:
        return aggregates.total_balance(await self.fetch(user_id))

    async def total_expenses(self, user_id: str | None) -> Decimal:
        return aggregates.total_expenses(await self.fetch(user_id))

    async def total_income(self, user_id: str | None) -> Decimal:
        return aggregates.total_income(await self.fetch(user_id))

    async def expenses_for_month(self, user_id: str | None, month: int, year: int) -> Decimal:
        return aggregates.expenses_for_month(await self.fetch(user_id), month, year)

    async def income_for_month(self, user_id: str | None, month: int, year: int) -> Decimal:
        return aggregates.income_for_month(await self.fetch(user_id), month, year)

    async def expenses_for_year(self, user_id: str | None, year: int) -> Decimal:
        return aggregates.expenses_for_year(await self.fetch(user_id), year)

    async def income_for_year(self, user_id: str | None, year: int) -> Decimal:
        return aggregates.income_for_year(await self.fetch(user_id), year)

    async def transactions_for_month(self, user_id: str | None, month: int, year: int) -> list[Transaction]:
        return aggregates.transactions_for_month(await self.fetch(user_id), month, year)

    async def category_breakdown(self, user_id: str | None, month: int, year: int) -> list[CategoryExpense]:
        return aggregates.category_breakdown(await self.fetch(user_id), month, year)

    async def transactions_for_category_and_period(
        self,
        user_id: str | None,
        category: str,
        month: int,
        year: int,
    ) -> list[Transaction]:
        return aggregates.transactions_for_category_and_period(await self.fetch(user_id), category, month, year)


class TransactionCacheRegistry:
    """Hands out one cache per user id, built lazily over a shared store.

    At most `max_users` caches are kept; the least recently used one is reset
    and dropped when a new user would exceed the bound.
    """

    def __init__(self, factory: Callable[[], TransactionCache], *, max_users: int = 256) -> None:
        if max_users < 1:
            raise ValueError("max_users must be at least 1")
        self._factory = factory
        self._max_users = max_users
        self._caches: OrderedDict[str, TransactionCache] = OrderedDict()

    def __len__(self) -> int:
        return len(self._caches)

    def for_user(self, user_id: str | None) -> TransactionCache:
        user_id = require_user_id(user_id)
        cache = self._caches.get(user_id)
        if cache is not None:
            self._caches.move_to_end(user_id)
            return cache

        while len(self._caches) >= self._max_users:
            evicted_user_id, evicted = self._caches.popitem(last=False)
            logger.info("transactions_cache_evicted user_id=%s", evicted_user_id)
            evicted.reset()

        cache = self._factory()
        self._caches[user_id] = cache
        return cache

    def discard(self, user_id: str) -> None:
        cache = self._caches.pop(user_id, None)
        if cache is not None:
            cache.reset()
