"""Resolve the signed-in user behind a Supabase access token."""

from __future__ import annotations

import json
import logging
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen
from uuid import UUID

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from shared import config


logger = logging.getLogger(__name__)


class UnauthorizedError(Exception):
    """Raised when a bearer token cannot be validated."""


class AuthenticatedUser(BaseModel):
    """Subset of the Supabase Auth user payload the transaction layer relies on."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str | None = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, value: str) -> str:
        return str(UUID(value))


def _auth_endpoint() -> tuple[str, str]:
    supabase_url = (config.supabase_url() or "").rstrip("/")
    anon_key = config.supabase_anon_key()
    if not supabase_url or not anon_key:
        raise UnauthorizedError("Supabase auth is not configured")
    return f"{supabase_url}/auth/v1/user", anon_key


def get_user_from_bearer_token(token: str) -> AuthenticatedUser:
    """Return the user owning `token`; blocking, run it off the event loop."""

    url, anon_key = _auth_endpoint()
    request = Request(
        url=url,
        headers={
            "apikey": anon_key,
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        },
        method="GET",
    )

    try:
        with urlopen(request) as response:  # noqa: S310 - trusted Supabase URL from env
            payload = json.loads(response.read().decode("utf-8"))
    except HTTPError as exc:
        logger.info("auth_token_rejected status_code=%s", exc.code)
        raise UnauthorizedError("Unauthorized") from exc
    except URLError as exc:
        logger.warning("auth_provider_unreachable reason=%s", exc.reason)
        raise UnauthorizedError("Unauthorized") from exc

    try:
        return AuthenticatedUser.model_validate(payload)
    except ValidationError as exc:
        logger.info("auth_payload_invalid")
        raise UnauthorizedError("Unauthorized") from exc
