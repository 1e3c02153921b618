"""Composition root for backend services."""

from __future__ import annotations

import logging

from backend.db.supabase_client import SupabaseClient, SupabaseSettings
from backend.repositories.transactions_repository import (
    InMemoryTransactionsRepository,
    SupabaseTransactionsRepository,
    TransactionsRepository,
)
from backend.services.transaction_cache import TransactionCache, TransactionCacheRegistry
from shared import config


logger = logging.getLogger(__name__)


def build_transactions_repository() -> TransactionsRepository:
    """Return the Supabase store when configured, the in-memory store otherwise."""

    supabase_url = config.supabase_url()
    supabase_key = config.supabase_service_role_key()
    if supabase_url and supabase_key:
        client = SupabaseClient(
            settings=SupabaseSettings(
                url=supabase_url,
                service_role_key=supabase_key,
                anon_key=config.supabase_anon_key(),
            )
        )
        return SupabaseTransactionsRepository(client=client, table=config.transactions_table())

    logger.info("transactions_repository_in_memory app_env=%s", config.app_env())
    return InMemoryTransactionsRepository()


def build_transaction_cache(repository: TransactionsRepository | None = None) -> TransactionCache:
    return TransactionCache(
        repository if repository is not None else build_transactions_repository(),
        recent_window_days=config.recent_window_days(),
    )


def build_cache_registry(repository: TransactionsRepository | None = None) -> TransactionCacheRegistry:
    """Build a per-user cache registry sharing a single store."""

    shared_repository = repository if repository is not None else build_transactions_repository()
    return TransactionCacheRegistry(
        lambda: build_transaction_cache(shared_repository),
        max_users=config.cache_max_users(),
    )
