"""Supabase-backed ShareRepository implementation.

Persists Shares in ``shares`` via PostgREST. The table carries the
partial unique indexes declared in ``SHARES_SCHEMA`` (provisioned by
``migrations/001_fileshare_schema.sql``). Conflicts come back as
``UniqueViolation`` and are reported under the declared constraint name,
resolved from the conflicting key columns when PostgREST does not name
the index.

Link tokens are stored in plaintext because redemption looks them up
directly; they are redacted everywhere they are logged.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from ..sharing.model import Share
from .errors import UniqueViolation
from .schema import SHARES_SCHEMA, TableSchema
from .supabase_client import SupabaseClient


def _encode(changes: dict[str, Any]) -> dict[str, Any]:
    encoded: dict[str, Any] = {}
    for key, value in changes.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif hasattr(value, "value"):
            value = value.value
        encoded[key] = value
    return encoded


class SupabaseShareRepository:
    """ShareRepository backed by the ``shares`` table."""

    TABLE = "shares"

    def __init__(self, client: SupabaseClient, schema: TableSchema = SHARES_SCHEMA) -> None:
        self._client = client
        self._schema = schema

    @property
    def schema(self) -> TableSchema:
        return self._schema

    def _renamed(self, exc: UniqueViolation) -> UniqueViolation | None:
        """Declared-name twin of ``exc``, or None if no renaming applies."""
        if any(c.name == exc.constraint for c in self._schema.constraints):
            return None
        match = self._schema.constraint_for_columns(exc.columns)
        if match is None:
            return None
        return UniqueViolation(match.name, exc.columns)

    async def create(self, share: Share) -> Share:
        try:
            rows = await self._client.insert(self.TABLE, share.to_row())
        except UniqueViolation as exc:
            renamed = self._renamed(exc)
            if renamed is None:
                raise
            raise renamed from exc
        return Share.from_row(rows[0])

    async def get(self, share_id: str) -> Share | None:
        rows = await self._client.select(
            self.TABLE, filters={"id": ("eq", share_id)}, limit=1,
        )
        return Share.from_row(rows[0]) if rows else None

    async def find_user_share(self, file_id: str, target_id: str) -> Share | None:
        rows = await self._client.select(
            self.TABLE,
            filters={
                "file_id": ("eq", file_id),
                "target_id": ("eq", target_id),
                "kind": ("eq", "user"),
            },
            limit=1,
        )
        return Share.from_row(rows[0]) if rows else None

    async def find_by_token(self, token: str) -> Share | None:
        rows = await self._client.select(
            self.TABLE,
            filters={"link_token": ("eq", token), "kind": ("eq", "link")},
            limit=1,
        )
        return Share.from_row(rows[0]) if rows else None

    async def update(self, share_id: str, **changes: Any) -> Share | None:
        try:
            rows = await self._client.update(
                self.TABLE,
                filters={"id": ("eq", share_id)},
                data=_encode(changes),
            )
        except UniqueViolation as exc:
            renamed = self._renamed(exc)
            if renamed is None:
                raise
            raise renamed from exc
        return Share.from_row(rows[0]) if rows else None

    async def list_for_file(self, file_id: str, *, active_only: bool = False) -> list[Share]:
        filters: dict[str, Any] = {"file_id": ("eq", file_id)}
        if active_only:
            filters["is_active"] = ("is", True)
        rows = await self._client.select(
            self.TABLE, filters=filters, order="created_at.desc",
        )
        return [Share.from_row(r) for r in rows]

    async def list_for_target(
        self, target_id: str, *, offset: int, limit: int, now: datetime,
    ) -> tuple[list[Share], int]:
        rows, total = await self._client.select_with_count(
            self.TABLE,
            filters={
                "target_id": ("eq", target_id),
                "kind": ("eq", "user"),
                "is_active": ("is", True),
                # Never-expiring or expiring at/after now.
                "or": f"(expires_at.is.null,expires_at.gte.{now.isoformat()})",
            },
            order="created_at.desc",
            offset=offset,
            limit=limit,
        )
        return [Share.from_row(r) for r in rows], total

    async def delete_for_file(self, file_id: str) -> int:
        rows = await self._client.delete(self.TABLE, {"file_id": ("eq", file_id)})
        return len(rows)

    async def delete_expired_before(self, cutoff: datetime) -> int:
        rows = await self._client.delete(
            self.TABLE, {"expires_at": ("lt", cutoff.isoformat())},
        )
        return len(rows)
