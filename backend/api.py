"""FastAPI entrypoint exposing the per-user transaction cache over HTTP."""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Any

from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse, Response

from backend.auth.session import BearerTokenSession, require_user_id
from backend.auth.supabase_auth import get_user_from_bearer_token
from backend.factory import build_cache_registry, build_transactions_repository
from backend.repositories.transactions_repository import TransactionsRepository
from backend.services.transaction_cache import TransactionCache, TransactionCacheRegistry
from backend.services.transaction_form import fields_from_form
from shared import config as _config
from shared.errors import AuthenticationRequiredError, NotFoundError, StoreError
from shared.models import (
    BalanceSummary,
    CategoryExpense,
    PeriodSummary,
    Transaction,
    TransactionFields,
    TransactionFormRequest,
)


logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_transactions_repository() -> TransactionsRepository:
    return build_transactions_repository()


@lru_cache(maxsize=1)
def get_cache_registry() -> TransactionCacheRegistry:
    return build_cache_registry(get_transactions_repository())


def _extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    prefix = "Bearer "
    if not authorization.startswith(prefix):
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    token = authorization[len(prefix) :].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return token


async def _user_cache(authorization: str | None) -> tuple[str, TransactionCache]:
    """Resolve the caller's user id off the event loop and return their cache."""

    session = BearerTokenSession(token=_extract_bearer_token(authorization), resolver=get_user_from_bearer_token)
    user_id = require_user_id(await asyncio.to_thread(session.current_user_id))
    return user_id, get_cache_registry().for_user(user_id)


def _fields_from_form_request(payload: TransactionFormRequest) -> TransactionFields:
    try:
        return fields_from_form(
            type_text=payload.type,
            amount_text=payload.amount,
            label=payload.label,
            bank_name=payload.bank_name,
            date_text=payload.date,
            category=payload.category,
            selected_date=payload.selected_date,
            selected_time=payload.selected_time,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

app = FastAPI(title="Transaction Cache API")

ALLOW_ORIGINS = _config.cors_allow_origins()


@app.middleware("http")
async def log_http_requests(request: Request, call_next):
    """Log incoming requests, HTTP status codes and unexpected errors."""

    logger.info("http_request_received method=%s path=%s", request.method, request.url.path)
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "http_request_failed method=%s path=%s",
            request.method,
            request.url.path,
        )
        raise

    logger.info(
        "http_response_sent method=%s path=%s status_code=%s",
        request.method,
        request.url.path,
        response.status_code,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
    logger.warning(
        "store_error method=%s path=%s status_code=%s message=%s",
        request.method,
        request.url.path,
        exc.status_code,
        str(exc),
    )
    return JSONResponse(status_code=502, content={"detail": "Transaction store unavailable"})


@app.exception_handler(NotFoundError)
async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AuthenticationRequiredError)
async def handle_authentication_required(request: Request, exc: AuthenticationRequiredError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"detail": "Unauthorized"})


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for unhandled exceptions."""

    logger.exception(
        "unhandled_exception method=%s path=%s exception_type=%s message=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        str(exc),
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.get("/health")
async def health() -> JSONResponse:
    """Healthcheck endpoint, degraded when the transaction store is unusable."""

    if await get_transactions_repository().healthcheck():
        return JSONResponse(status_code=200, content={"status": "ok"})
    logger.warning("health_store_unavailable")
    return JSONResponse(status_code=503, content={"status": "degraded"})


@app.get("/transactions", response_model=list[Transaction])
async def list_transactions(authorization: str | None = Header(default=None)) -> Any:
    user_id, cache = await _user_cache(authorization)
    return await cache.fetch(user_id)


@app.post("/transactions", response_model=Transaction, status_code=201)
async def create_transaction(
    payload: TransactionFields,
    authorization: str | None = Header(default=None),
) -> Any:
    user_id, cache = await _user_cache(authorization)
    return await cache.add(user_id, payload)


@app.post("/transactions/form", response_model=Transaction, status_code=201)
async def create_transaction_from_form(
    payload: TransactionFormRequest,
    authorization: str | None = Header(default=None),
) -> Any:
    user_id, cache = await _user_cache(authorization)
    return await cache.add(user_id, _fields_from_form_request(payload))


@app.get("/transactions/recent", response_model=list[Transaction])
async def list_recent_transactions(authorization: str | None = Header(default=None)) -> Any:
    user_id, cache = await _user_cache(authorization)
    await cache.fetch(user_id)
    return cache.recent()


@app.get("/transactions/{transaction_id}", response_model=Transaction)
async def get_transaction(transaction_id: str, authorization: str | None = Header(default=None)) -> Any:
    user_id, cache = await _user_cache(authorization)
    transaction = await cache.get_by_id(user_id, transaction_id)
    if transaction is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction


@app.put("/transactions/{transaction_id}", response_model=Transaction)
async def replace_transaction(
    transaction_id: str,
    payload: TransactionFields,
    authorization: str | None = Header(default=None),
) -> Any:
    user_id, cache = await _user_cache(authorization)
    return await cache.update(user_id, transaction_id, payload)


@app.put("/transactions/{transaction_id}/form", response_model=Transaction)
async def replace_transaction_from_form(
    transaction_id: str,
    payload: TransactionFormRequest,
    authorization: str | None = Header(default=None),
) -> Any:
    user_id, cache = await _user_cache(authorization)
    return await cache.update(user_id, transaction_id, _fields_from_form_request(payload))


@app.delete("/transactions/{transaction_id}", status_code=204)
async def delete_transaction(transaction_id: str, authorization: str | None = Header(default=None)) -> Response:
    user_id, cache = await _user_cache(authorization)
    await cache.delete(user_id, transaction_id)
    return Response(status_code=204)


@app.get("/stats/summary", response_model=BalanceSummary)
async def balance_summary(authorization: str | None = Header(default=None)) -> Any:
    user_id, cache = await _user_cache(authorization)
    return BalanceSummary(
        balance=await cache.total_balance(user_id),
        total_income=await cache.total_income(user_id),
        total_expenses=await cache.total_expenses(user_id),
    )


@app.get("/stats/month", response_model=PeriodSummary)
async def month_summary(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=1),
    authorization: str | None = Header(default=None),
) -> Any:
    user_id, cache = await _user_cache(authorization)
    income = await cache.income_for_month(user_id, month, year)
    expenses = await cache.expenses_for_month(user_id, month, year)
    return PeriodSummary(year=year, month=month, income=income, expenses=expenses, net=income - expenses)


@app.get("/stats/year", response_model=PeriodSummary)
async def year_summary(
    year: int = Query(ge=1),
    authorization: str | None = Header(default=None),
) -> Any:
    user_id, cache = await _user_cache(authorization)
    income = await cache.income_for_year(user_id, year)
    expenses = await cache.expenses_for_year(user_id, year)
    return PeriodSummary(year=year, income=income, expenses=expenses, net=income - expenses)


@app.get("/stats/categories", response_model=list[CategoryExpense])
async def category_expenses(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=1),
    authorization: str | None = Header(default=None),
) -> Any:
    user_id, cache = await _user_cache(authorization)
    return await cache.category_breakdown(user_id, month, year)


@app.get("/stats/categories/{category}/transactions", response_model=list[Transaction])
async def category_transactions(
    category: str,
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=1),
    authorization: str | None = Header(default=None),
) -> Any:
    user_id, cache = await _user_cache(authorization)
    return await cache.transactions_for_category_and_period(user_id, category, month, year)
