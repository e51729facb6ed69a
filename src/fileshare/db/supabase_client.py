"""Async PostgREST client wrapper for Supabase.

This is the single point of Supabase HTTP interaction for the fileshare
stores. Unique-constraint conflicts (HTTP 409, Postgres code 23505) are
raised as ``UniqueViolation`` carrying the constraint name, so stores
behave exactly like the in-memory ones.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import httpx

from .errors import (
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
    UniqueViolation,
)

UNIQUE_VIOLATION_CODE = "23505"

_CONSTRAINT_RE = re.compile(r'unique constraint "([^"]+)"')
_KEY_COLUMNS_RE = re.compile(r"Key \(([^)]+)\)=")

Filters = Sequence["PostgrestFilter"] | Mapping[str, tuple[str, Any] | Any] | None


@dataclass(frozen=True, slots=True)
class PostgrestFilter:
    column: str
    op: str
    value: Any


def _encode_filter_value(op: str, value: Any) -> str:
    if op == "is":
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
    if value is None:
        raise ValueError(f"{op} does not support None; use op='is' with value=None")
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _filters_to_params(filters: Filters) -> dict[str, str]:
    if not filters:
        return {}
    params: dict[str, str] = {}
    if isinstance(filters, Mapping):
        for col, cond in filters.items():
            if col in ("or", "and"):
                # Logical groups are passed through pre-encoded.
                params[col] = str(cond)
                continue
            if isinstance(cond, tuple) and len(cond) == 2:
                op, val = cond
            else:
                op, val = "eq", cond
            params[str(col)] = f"{op}.{_encode_filter_value(str(op), val)}"
        return params
    for f in filters:
        params[f.column] = f"{f.op}.{_encode_filter_value(f.op, f.value)}"
    return params


def _parse_content_range(header: str | None) -> int | None:
    # e.g. "0-19/57" or "*/0"
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class SupabaseClient:
    """Minimal async PostgREST client (service role) with typed results."""

    def __init__(
        self,
        *,
        supabase_url: str,
        service_role_key: str,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not supabase_url:
            raise ValueError("supabase_url is required")
        if not service_role_key:
            raise ValueError("service_role_key is required")

        self._supabase_url = supabase_url.rstrip("/")
        self._service_role_key = service_role_key
        self._timeout_seconds = float(timeout_seconds)
        self._client = http_client or httpx.AsyncClient()

    @property
    def base_rest_url(self) -> str:
        return f"{self._supabase_url}/rest/v1"

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, **extra: str) -> dict[str, str]:
        # Never log these headers.
        return {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
            **extra,
        }

    def _raise_for_error(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return

        message = resp.text
        code = details = hint = None
        try:
            payload = resp.json()
            if isinstance(payload, dict):
                message = payload.get("message") or message
                code = payload.get("code")
                details = payload.get("details")
                hint = payload.get("hint")
        except ValueError:
            pass

        if resp.status_code == 409 and code in (UNIQUE_VIOLATION_CODE, None):
            match = _CONSTRAINT_RE.search(message or "")
            cols = _KEY_COLUMNS_RE.search(details or "")
            raise UniqueViolation(
                match.group(1) if match else "unknown",
                tuple(c.strip() for c in cols.group(1).split(",")) if cols else (),
            )

        err_cls: type[SupabaseError]
        if resp.status_code in (401, 403):
            err_cls = SupabaseAuthError
        elif resp.status_code == 404:
            err_cls = SupabaseNotFoundError
        elif resp.status_code == 409:
            err_cls = SupabaseConflictError
        else:
            err_cls = SupabaseError

        # Avoid including secrets in the exception string.
        raise err_cls(
            status_code=resp.status_code,
            message=message,
            code=code,
            details=details,
            hint=hint,
        )

    def _rows(self, resp: httpx.Response, op: str) -> list[dict[str, Any]]:
        self._raise_for_error(resp)
        payload = resp.json()
        if not isinstance(payload, list):
            raise SupabaseError(status_code=500, message=f"expected list response from {op}")
        return payload

    async def select(
        self,
        table: str,
        filters: Filters = None,
        *,
        columns: str = "*",
        limit: int | None = None,
        offset: int | None = None,
        order: str | None = None,
    ) -> list[dict[str, Any]]:
        rows, _ = await self._select(table, filters, columns, limit, offset, order, count=False)
        return rows

    async def select_with_count(
        self,
        table: str,
        filters: Filters = None,
        *,
        columns: str = "*",
        limit: int | None = None,
        offset: int | None = None,
        order: str | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """Select a page plus the exact total row count."""
        rows, total = await self._select(table, filters, columns, limit, offset, order, count=True)
        return rows, total if total is not None else len(rows)

    async def _select(
        self,
        table: str,
        filters: Filters,
        columns: str,
        limit: int | None,
        offset: int | None,
        order: str | None,
        *,
        count: bool,
    ) -> tuple[list[dict[str, Any]], int | None]:
        params = _filters_to_params(filters)
        params["select"] = columns
        if limit is not None:
            params["limit"] = str(int(limit))
        if offset:
            params["offset"] = str(int(offset))
        if order:
            params["order"] = order
        headers = self._headers(Prefer="count=exact") if count else self._headers()

        resp = await self._client.request(
            "GET",
            f"{self.base_rest_url}/{table}",
            params=params,
            headers=headers,
            timeout=self._timeout_seconds,
        )
        rows = self._rows(resp, "select")
        return rows, _parse_content_range(resp.headers.get("content-range"))

    async def insert(self, table: str, data: Mapping[str, Any]) -> list[dict[str, Any]]:
        resp = await self._client.request(
            "POST",
            f"{self.base_rest_url}/{table}",
            json=dict(data),
            headers=self._headers(Prefer="return=representation"),
            timeout=self._timeout_seconds,
        )
        return self._rows(resp, "insert")

    async def update(
        self,
        table: str,
        filters: Filters,
        data: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        resp = await self._client.request(
            "PATCH",
            f"{self.base_rest_url}/{table}",
            params=_filters_to_params(filters),
            json=dict(data),
            headers=self._headers(Prefer="return=representation"),
            timeout=self._timeout_seconds,
        )
        return self._rows(resp, "update")

    async def delete(self, table: str, filters: Filters) -> list[dict[str, Any]]:
        if not filters:
            raise ValueError("refusing to delete without filters")
        resp = await self._client.request(
            "DELETE",
            f"{self.base_rest_url}/{table}",
            params=_filters_to_params(filters),
            headers=self._headers(Prefer="return=representation"),
            timeout=self._timeout_seconds,
        )
        return self._rows(resp, "delete")
