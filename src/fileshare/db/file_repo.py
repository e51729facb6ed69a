"""Supabase-backed FileRepository implementation."""

from __future__ import annotations

from ..files.model import File
from .supabase_client import SupabaseClient


class SupabaseFileRepository:
    """FileRepository backed by the ``files`` table."""

    TABLE = "files"

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def create(self, file: File) -> File:
        rows = await self._client.insert(self.TABLE, file.to_row())
        return File.from_row(rows[0])

    async def get(self, file_id: str) -> File | None:
        rows = await self._client.select(
            self.TABLE, filters={"id": ("eq", file_id)}, limit=1,
        )
        return File.from_row(rows[0]) if rows else None

    async def delete(self, file_id: str) -> bool:
        rows = await self._client.delete(self.TABLE, {"id": ("eq", file_id)})
        return len(rows) > 0

    async def list_for_owner(
        self, owner_id: str, *, offset: int, limit: int,
    ) -> tuple[list[File], int]:
        rows, total = await self._client.select_with_count(
            self.TABLE,
            filters={"owner_id": ("eq", owner_id)},
            order="created_at.desc",
            offset=offset,
            limit=limit,
        )
        return [File.from_row(r) for r in rows], total
