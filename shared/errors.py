"""Error taxonomy shared by the transaction store, cache and API layers."""

from __future__ import annotations


class StoreError(RuntimeError):
    """Raised when the remote transaction store rejects or fails a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationRequiredError(Exception):
    """Raised when a user-scoped operation runs without a resolved user id."""


class NotFoundError(Exception):
    """Raised when an update targets a transaction id unknown to the store."""

    def __init__(self, transaction_id: str) -> None:
        super().__init__(f"Transaction not found: {transaction_id}")
        self.transaction_id = transaction_id
