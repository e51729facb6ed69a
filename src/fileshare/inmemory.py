"""In-memory repository implementations for local development and tests.

These are used when ENVIRONMENT=local. They satisfy the protocol interfaces
but keep everything in dicts (no persistence across restarts). The share
store enforces the unique constraints of the schema it is given, so the
upsert and token-retry paths behave as they do against Postgres.
"""

from __future__ import annotations

import itertools
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any

from .audit.model import AuditEntry
from .db.errors import UniqueViolation
from .db.schema import SHARES_SCHEMA, TableSchema
from .files.model import File
from .sharing.model import Share, ShareKind


class InMemoryShareRepository:
    def __init__(self, schema: TableSchema = SHARES_SCHEMA) -> None:
        self._schema = schema
        self._shares: dict[str, Share] = {}

    def _check_constraints(self, candidate: Share) -> None:
        row = candidate.to_row()
        for constraint in self._schema.constraints:
            key = constraint.key_for(row)
            if key is None:
                continue
            for other in self._shares.values():
                if other.id == candidate.id:
                    continue
                if constraint.key_for(other.to_row()) == key:
                    raise UniqueViolation(constraint.name)

    async def create(self, share: Share) -> Share:
        if share.id in self._shares:
            raise UniqueViolation("shares_pkey")
        self._check_constraints(share)
        self._shares[share.id] = share.copy()
        return share.copy()

    async def get(self, share_id: str) -> Share | None:
        share = self._shares.get(share_id)
        return share.copy() if share else None

    async def find_user_share(self, file_id: str, target_id: str) -> Share | None:
        for share in self._shares.values():
            if (
                share.kind is ShareKind.USER
                and share.file_id == file_id
                and share.target_id == target_id
            ):
                return share.copy()
        return None

    async def find_by_token(self, token: str) -> Share | None:
        for share in self._shares.values():
            if share.kind is ShareKind.LINK and share.link_token == token:
                return share.copy()
        return None

    async def update(self, share_id: str, **changes: Any) -> Share | None:
        current = self._shares.get(share_id)
        if current is None:
            return None
        updated = replace(current, **changes)
        self._check_constraints(updated)
        self._shares[share_id] = updated
        return updated.copy()

    async def list_for_file(self, file_id: str, *, active_only: bool = False) -> list[Share]:
        result = [
            s.copy() for s in self._shares.values()
            if s.file_id == file_id and (s.is_active or not active_only)
        ]
        return sorted(result, key=lambda s: s.created_at, reverse=True)

    async def list_for_target(
        self, target_id: str, *, offset: int, limit: int, now: datetime,
    ) -> tuple[list[Share], int]:
        matching = sorted(
            (
                s for s in self._shares.values()
                if s.kind is ShareKind.USER
                and s.target_id == target_id
                and s.is_valid(now)
            ),
            key=lambda s: s.created_at,
            reverse=True,
        )
        page = [s.copy() for s in matching[offset:offset + limit]]
        return page, len(matching)

    async def delete_for_file(self, file_id: str) -> int:
        doomed = [sid for sid, s in self._shares.items() if s.file_id == file_id]
        for sid in doomed:
            del self._shares[sid]
        return len(doomed)

    async def delete_expired_before(self, cutoff: datetime) -> int:
        doomed = [
            sid for sid, s in self._shares.items()
            if s.expires_at is not None and s.expires_at < cutoff
        ]
        for sid in doomed:
            del self._shares[sid]
        return len(doomed)


class InMemoryFileRepository:
    def __init__(self) -> None:
        self._files: dict[str, File] = {}

    async def create(self, file: File) -> File:
        if file.id in self._files:
            raise UniqueViolation("files_pkey")
        self._files[file.id] = file
        return file

    async def get(self, file_id: str) -> File | None:
        return self._files.get(file_id)

    async def delete(self, file_id: str) -> bool:
        return self._files.pop(file_id, None) is not None

    async def list_for_owner(
        self, owner_id: str, *, offset: int, limit: int,
    ) -> tuple[list[File], int]:
        owned = sorted(
            (f for f in self._files.values() if f.owner_id == owner_id),
            key=lambda f: f.created_at,
            reverse=True,
        )
        return owned[offset:offset + limit], len(owned)


class InMemoryAuditStore:
    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []
        self._sequence = itertools.count(1)

    async def append(self, entry: AuditEntry) -> AuditEntry:
        stored = replace(
            entry,
            id=entry.id or f"aud_{uuid.uuid4().hex}",
            sequence=next(self._sequence),
        )
        self.entries.append(stored)
        return stored

    async def query(
        self,
        *,
        file_id: str | None = None,
        actor_id: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[AuditEntry], int]:
        matching = [
            e for e in self.entries
            if (file_id is None or e.file_id == file_id)
            and (actor_id is None or e.actor_id == actor_id)
        ]
        matching.sort(key=lambda e: e.sort_key, reverse=True)
        return matching[offset:offset + limit], len(matching)
