"""User session objects resolving the current user id, if any."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Protocol

from backend.auth.supabase_auth import AuthenticatedUser, UnauthorizedError, get_user_from_bearer_token
from shared.errors import AuthenticationRequiredError


class UserSession(Protocol):
    def current_user_id(self) -> str | None:
        """Return the authenticated user id, or None when signed out."""


@dataclass(slots=True)
class StaticUserSession:
    user_id: str | None = None

    def current_user_id(self) -> str | None:
        return self.user_id


@dataclass(slots=True)
class BearerTokenSession:
    """Session backed by a Supabase access token, validated on first use.

    Resolution blocks on the auth provider; async callers should run
    `current_user_id` in a worker thread.
    """

    token: str | None
    resolver: Callable[[str], AuthenticatedUser] = get_user_from_bearer_token
    _user_id: str | None = field(default=None, init=False)
    _resolved: bool = field(default=False, init=False)

    def current_user_id(self) -> str | None:
        if not self._resolved:
            self._resolved = True
            if self.token:
                try:
                    self._user_id = self.resolver(self.token).id
                except UnauthorizedError:
                    self._user_id = None
        return self._user_id


def require_user_id(user_id: str | None) -> str:
    """Return a non-blank user id or raise AuthenticationRequiredError."""

    if user_id is None or not user_id.strip():
        raise AuthenticationRequiredError("User is not authenticated")
    return user_id
