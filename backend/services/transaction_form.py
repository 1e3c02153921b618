"""Helpers turning raw transaction form input into typed fields."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation

from shared.models import TransactionFields, TransactionType


def normalize_amount_text(text: str) -> str:
    """Keep only the first decimal point of a typed amount."""

    head, separator, tail = text.partition(".")
    if not separator:
        return text
    return f"{head}.{tail.replace('.', '')}"


def trim_left_label(text: str) -> str:
    return text.lstrip()


def merge_date_time(
    previous: datetime | None,
    *,
    selected_date: date | None = None,
    selected_time: time | None = None,
) -> datetime:
    """Combine a picked date and/or time with the previously entered value.

    Parts not picked are taken from `previous`, or from the current local
    time when there is no previous value. Seconds are dropped.
    """

    base = previous or datetime.now()
    return datetime(
        selected_date.year if selected_date else base.year,
        selected_date.month if selected_date else base.month,
        selected_date.day if selected_date else base.day,
        selected_time.hour if selected_time else base.hour,
        selected_time.minute if selected_time else base.minute,
        tzinfo=base.tzinfo,
    )


def _form_date(
    date_text: str | None,
    selected_date: date | None,
    selected_time: time | None,
) -> datetime:
    previous = None
    raw_date = (date_text or "").strip()
    if raw_date:
        try:
            previous = datetime.fromisoformat(raw_date)
        except ValueError as exc:
            raise ValueError(f"Invalid date: {date_text!r}") from exc

    if selected_date is None and selected_time is None:
        if previous is None:
            raise ValueError("Missing date")
        return previous
    return merge_date_time(previous, selected_date=selected_date, selected_time=selected_time)


def fields_from_form(
    *,
    type_text: str,
    amount_text: str,
    label: str,
    bank_name: str,
    date_text: str | None = None,
    category: str | None = None,
    selected_date: date | None = None,
    selected_time: time | None = None,
) -> TransactionFields:
    """Parse raw form strings into TransactionFields, raising ValueError on bad input.

    `date_text` is the previously entered ISO timestamp; a picked date or time
    replaces only its own part of it.
    """

    try:
        transaction_type = TransactionType(type_text.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid transaction type: {type_text!r}") from exc

    try:
        amount = Decimal(normalize_amount_text(amount_text.strip()))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount_text!r}") from exc
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Invalid amount: {amount_text!r}")

    parsed_date = _form_date(date_text, selected_date, selected_time)

    category_value = (category or "").strip() or None
    return TransactionFields(
        type=transaction_type,
        amount=amount,
        label=trim_left_label(label),
        date=parsed_date,
        bank_name=bank_name,
        category=category_value,
    )
