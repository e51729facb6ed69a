"""Supabase-backed AuditStore implementation.

Appends to ``audit_logs`` via PostgREST. The ``id`` and ``sequence``
columns are database-assigned (``sequence`` is a bigserial), which gives
the tie-break order for entries sharing a timestamp.
"""

from __future__ import annotations

from typing import Any

from ..audit.model import AuditEntry
from .supabase_client import SupabaseClient


class SupabaseAuditStore:
    """AuditStore backed by the ``audit_logs`` table."""

    TABLE = "audit_logs"

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def append(self, entry: AuditEntry) -> AuditEntry:
        row = {
            "actor_id": entry.actor_id,
            "action": entry.action.value,
            "file_id": entry.file_id,
            "share_id": entry.share_id,
            "details": entry.details,
            "ip_address": entry.ip_address,
            "user_agent": entry.user_agent,
            "created_at": entry.created_at.isoformat(),
        }
        rows = await self._client.insert(self.TABLE, row)
        return AuditEntry.from_row(rows[0])

    async def query(
        self,
        *,
        file_id: str | None = None,
        actor_id: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[AuditEntry], int]:
        filters: dict[str, Any] = {}
        if file_id is not None:
            filters["file_id"] = ("eq", file_id)
        if actor_id is not None:
            filters["actor_id"] = ("eq", actor_id)
        rows, total = await self._client.select_with_count(
            self.TABLE,
            filters=filters,
            order="created_at.desc,sequence.desc",
            offset=offset,
            limit=limit,
        )
        return [AuditEntry.from_row(r) for r in rows], total
