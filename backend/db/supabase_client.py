"""Minimal Supabase PostgREST client used by backend repositories only."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from shared.errors import StoreError


Query = dict[str, str | int] | list[tuple[str, str | int]]


@dataclass(slots=True)
class SupabaseSettings:
    url: str
    service_role_key: str
    anon_key: str | None = None


class SupabaseClient:
    def __init__(self, settings: SupabaseSettings) -> None:
        self.settings = settings

    def healthcheck(self) -> bool:
        return bool(self.settings.url and self.settings.service_role_key)

    def _build_request(
        self,
        *,
        method: str,
        table: str,
        query: Query | None,
        body: object | None = None,
        prefer: str | None = None,
        use_anon_key: bool = False,
    ) -> Request:
        api_key = self.settings.anon_key if use_anon_key else self.settings.service_role_key
        if not api_key:
            raise ValueError("Missing Supabase API key for requested mode")

        url = f"{self.settings.url.rstrip('/')}/rest/v1/{table}"
        if query:
            url = f"{url}?{urlencode(query, doseq=True)}"

        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        payload = None
        if body is not None:
            payload = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if prefer:
            headers["Prefer"] = prefer

        return Request(url=url, data=payload, headers=headers, method=method)

    def _send(self, request: Request) -> tuple[list[dict[str, Any]], Any]:
        try:
            with urlopen(request) as response:  # noqa: S310 - URL comes from trusted env config
                raw_body = response.read().decode("utf-8")
                rows = json.loads(raw_body) if raw_body.strip() else []
                return rows, response.headers
        except HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")[:500]
            raise StoreError(
                f"Supabase request failed with status {exc.code}: {body}",
                status_code=exc.code,
            ) from exc
        except URLError as exc:
            raise StoreError(f"Supabase request failed: {exc.reason}") from exc

    def get_rows(
        self,
        *,
        table: str,
        query: Query,
        with_count: bool,
        use_anon_key: bool = False,
    ) -> tuple[list[dict[str, Any]], int | None]:
        """Fetch rows from PostgREST and optionally parse exact row count."""

        request = self._build_request(
            method="GET",
            table=table,
            query=query,
            prefer="count=exact" if with_count else None,
            use_anon_key=use_anon_key,
        )
        rows, headers = self._send(request)
        total: int | None = None
        if with_count:
            content_range = headers.get("content-range")
            if content_range and "/" in content_range:
                _, total_str = content_range.split("/", maxsplit=1)
                total = int(total_str)
        return rows, total

    def post_rows(
        self,
        *,
        table: str,
        payload: dict[str, object] | list[dict[str, object]],
        prefer: str = "return=representation",
    ) -> list[dict[str, Any]]:
        """Insert one or more rows and return the representation sent back."""

        request = self._build_request(method="POST", table=table, query=None, body=payload, prefer=prefer)
        rows, _ = self._send(request)
        return rows

    def patch_rows(
        self,
        *,
        table: str,
        query: Query,
        payload: dict[str, object],
    ) -> list[dict[str, Any]]:
        """Update rows matching the query and return the updated rows."""

        request = self._build_request(
            method="PATCH",
            table=table,
            query=query,
            body=payload,
            prefer="return=representation",
        )
        rows, _ = self._send(request)
        return rows

    def delete_rows(self, *, table: str, query: Query) -> list[dict[str, Any]]:
        """Delete rows matching the query and return the deleted rows."""

        request = self._build_request(
            method="DELETE",
            table=table,
            query=query,
            prefer="return=representation",
        )
        rows, _ = self._send(request)
        return rows
