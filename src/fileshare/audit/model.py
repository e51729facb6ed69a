"""Audit trail data model.

Entries are immutable once written: there is no update or delete
operation. Total order is by ``created_at``, ties broken by the
insertion ``sequence`` assigned by the store.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class AuditAction(str, Enum):
    """Closed set of access-relevant actions."""

    UPLOAD = 'upload'
    DOWNLOAD = 'download'
    DELETE = 'delete'
    SHARE_TO_USER = 'share-to-user'
    SHARE_VIA_LINK = 'share-via-link'
    REVOKE = 'revoke'
    LINK_ACCESS = 'link-access'
    VIEW = 'view'

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    AuditAction.UPLOAD: 'Uploaded file',
    AuditAction.DOWNLOAD: 'Downloaded file',
    AuditAction.DELETE: 'Deleted file',
    AuditAction.SHARE_TO_USER: 'Shared with user',
    AuditAction.SHARE_VIA_LINK: 'Created share link',
    AuditAction.REVOKE: 'Revoked share',
    AuditAction.LINK_ACCESS: 'Accessed shared file',
    AuditAction.VIEW: 'Viewed file',
}


@dataclass(frozen=True, slots=True)
class RequestOrigin:
    """Where an action came from (network address, client agent)."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class AuditEntry:
    """Immutable audit entry.

    ``id`` and ``sequence`` are assigned by the store on append.
    """

    actor_id: str
    action: AuditAction
    file_id: str | None = None
    share_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    id: str | None = None
    sequence: int | None = None

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.created_at, self.sequence or 0)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dict safe for JSON logging and responses."""
        return {
            'id': self.id,
            'sequence': self.sequence,
            'actor_id': self.actor_id,
            'action': self.action.value,
            'action_display': self.action.display_name,
            'file_id': self.file_id,
            'share_id': self.share_id,
            'details': self.details,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> AuditEntry:
        created = row.get('created_at')
        if not isinstance(created, datetime):
            created = datetime.fromisoformat(str(created).replace('Z', '+00:00'))
        return cls(
            id=str(row['id']) if row.get('id') is not None else None,
            sequence=row.get('sequence'),
            actor_id=row['actor_id'],
            action=AuditAction(row['action']),
            file_id=row.get('file_id'),
            share_id=row.get('share_id'),
            details=row.get('details') or {},
            ip_address=row.get('ip_address'),
            user_agent=row.get('user_agent'),
            created_at=created,
        )


@dataclass(frozen=True, slots=True)
class AuditPage:
    """One reverse-chronological page of audit entries."""

    entries: tuple[AuditEntry, ...]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            'logs': [e.to_dict() for e in self.entries],
            'total': self.total,
            'page': self.page,
            'limit': self.limit,
            'total_pages': self.total_pages,
        }
