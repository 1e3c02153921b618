"""Pure aggregations over an in-memory sequence of transactions.

None of these functions touch the store; the cache loads transactions first
and then delegates here.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
from decimal import Decimal

from shared.models import CategoryExpense, Transaction, TransactionType


_ZERO = Decimal("0")


def _sum_amounts(transactions: Iterable[Transaction]) -> Decimal:
    return sum((transaction.amount for transaction in transactions), _ZERO)


def _in_period(transaction: Transaction, *, year: int, month: int | None = None) -> bool:
    if transaction.date.year != year:
        return False
    return month is None or transaction.date.month == month


def recent_transactions(
    transactions: Sequence[Transaction],
    now: datetime,
    window_days: int = 7,
) -> list[Transaction]:
    """Return transactions dated strictly after `now - window_days`, in stored order."""

    threshold = now - timedelta(days=window_days)
    return [transaction for transaction in transactions if transaction.date > threshold]


def total_balance(transactions: Iterable[Transaction]) -> Decimal:
    total = _ZERO
    for transaction in transactions:
        if transaction.type == TransactionType.EXPENSE:
            total -= transaction.amount
        else:
            total += transaction.amount
    return total


def total_expenses(transactions: Iterable[Transaction]) -> Decimal:
    return _sum_amounts(t for t in transactions if t.type == TransactionType.EXPENSE)


def total_income(transactions: Iterable[Transaction]) -> Decimal:
    return _sum_amounts(t for t in transactions if t.type == TransactionType.INCOME)


def transactions_for_month(transactions: Iterable[Transaction], month: int, year: int) -> list[Transaction]:
    return [transaction for transaction in transactions if _in_period(transaction, year=year, month=month)]


def expenses_for_month(transactions: Iterable[Transaction], month: int, year: int) -> Decimal:
    return total_expenses(transactions_for_month(transactions, month, year))


def income_for_month(transactions: Iterable[Transaction], month: int, year: int) -> Decimal:
    return total_income(transactions_for_month(transactions, month, year))


def expenses_for_year(transactions: Iterable[Transaction], year: int) -> Decimal:
    return total_expenses(t for t in transactions if _in_period(t, year=year))


def income_for_year(transactions: Iterable[Transaction], year: int) -> Decimal:
    return total_income(t for t in transactions if _in_period(t, year=year))


def category_breakdown(transactions: Iterable[Transaction], month: int, year: int) -> list[CategoryExpense]:
    """Sum expenses per category for the period, largest total first.

    Uncategorized expenses are skipped. Equal totals keep the order in which
    their category was first seen.
    """

    totals: dict[str, Decimal] = {}
    for transaction in transactions_for_month(transactions, month, year):
        if transaction.type != TransactionType.EXPENSE or transaction.category is None:
            continue
        totals[transaction.category] = totals.get(transaction.category, _ZERO) + transaction.amount

    ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CategoryExpense(category=category, total=total) for category, total in ordered]


def transactions_for_category_and_period(
    transactions: Iterable[Transaction],
    category: str,
    month: int,
    year: int,
) -> list[Transaction]:
    return [
        transaction
        for transaction in transactions
        if transaction.type == TransactionType.EXPENSE
        and transaction.category == category
        and _in_period(transaction, year=year, month=month)
    ]
