"""Stored file record.

``size`` and ``is_compressed`` are fixed at ingestion and never mutated;
the record is destroyed only by an owner-initiated delete.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

_SIZE_UNITS = ('Bytes', 'KB', 'MB', 'GB', 'TB')


def new_file_id() -> str:
    return f'fil_{uuid.uuid4().hex}'


def format_file_size(size: int) -> str:
    """Human readable size, e.g. ``1.5 MB``."""
    if size <= 0:
        return '0 Bytes'
    i = min(int(math.floor(math.log(size, 1024))), len(_SIZE_UNITS) - 1)
    value = round(size / (1024 ** i), 2)
    return f'{value:g} {_SIZE_UNITS[i]}'


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value is None:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


@dataclass(frozen=True)
class File:
    """One stored object.

    Attributes:
        id: File identity.
        name: Display (original upload) name.
        content_type: MIME type tag of the stored bytes.
        size: Byte size after any transform.
        location: Blob store location.
        owner_id: Owning principal.
        is_compressed: Whether a transform replaced the upload.
        original_size: Pre-transform size, set only when compressed.
    """

    id: str
    name: str
    content_type: str
    size: int
    location: str
    owner_id: str
    is_compressed: bool = False
    original_size: int | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def extension(self) -> str:
        _, dot, ext = self.name.rpartition('.')
        return ext.lower() if dot else ''

    @property
    def formatted_size(self) -> str:
        return format_file_size(self.size)

    def to_row(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'content_type': self.content_type,
            'size': self.size,
            'location': self.location,
            'owner_id': self.owner_id,
            'is_compressed': self.is_compressed,
            'original_size': self.original_size,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> File:
        return cls(
            id=row['id'],
            name=row['name'],
            content_type=row['content_type'],
            size=int(row['size']),
            location=row['location'],
            owner_id=row['owner_id'],
            is_compressed=bool(row.get('is_compressed', False)),
            original_size=row.get('original_size'),
            created_at=_parse_ts(row.get('created_at')),
        )
