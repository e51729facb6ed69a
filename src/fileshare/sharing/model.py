"""Share domain model.

A Share grants view or download rights over one file, either to a named
principal (``user`` kind) or to whoever presents an opaque link token
(``link`` kind). Two independent axes decide whether a Share confers
access at a given instant:

  - ``is_active``: cleared by revocation, restored only by a fresh grant.
  - expiration: a Share is logically expired iff ``now > expires_at``.
    The expiry instant itself is still valid. ``expires_at is None``
    means the Share never expires.

Both must hold. Physical deletion of long-expired rows happens in a
separate sweep and is never consulted here.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ── Enumerations ──────────────────────────────────────────────────────


class Permission(str, Enum):
    """Effective permission levels, totally ordered none < view < download."""

    NONE = 'none'
    VIEW = 'view'
    DOWNLOAD = 'download'

    @property
    def rank(self) -> int:
        return _RANK[self]

    def covers(self, requested: Permission) -> bool:
        """True if this level is enough for ``requested``."""
        return self.rank >= requested.rank


_RANK = {Permission.NONE: 0, Permission.VIEW: 1, Permission.DOWNLOAD: 2}

GRANTABLE_PERMISSIONS = frozenset({Permission.VIEW, Permission.DOWNLOAD})


class ShareKind(str, Enum):
    USER = 'user'
    LINK = 'link'


class GrantedVia(str, Enum):
    OWNER = 'owner'
    USER_SHARE = 'user-share'
    LINK_SHARE = 'link-share'


# ── Helpers ───────────────────────────────────────────────────────────


def new_share_id() -> str:
    return f'shr_{uuid.uuid4().hex}'


def parse_permission(value: str | Permission | None) -> Permission | None:
    """Coerce a grantable permission, rejecting ``none`` and unknown values."""
    if value is None:
        return None
    perm = Permission(value)
    if perm not in GRANTABLE_PERMISSIONS:
        raise ValueError(f'permission must be one of view, download; got {value!r}')
    return perm


def as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes are taken as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _parse_ts(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value).replace('Z', '+00:00')))


# ── Domain model ──────────────────────────────────────────────────────


@dataclass
class Share:
    """One grant of access to a File.

    Attributes:
        id: Share identity.
        file_id: Target file.
        owner_id: Granting owner (always the file owner).
        kind: ``user`` or ``link``.
        permission: ``view`` or ``download``.
        target_id: Target principal; present iff kind is ``user``.
        link_token: Opaque bearer token; present iff kind is ``link``.
        expires_at: Optional expiration instant.
        is_active: Logical-active flag, cleared by revocation.
    """

    id: str
    file_id: str
    owner_id: str
    kind: ShareKind
    permission: Permission = Permission.VIEW
    target_id: str | None = None
    link_token: str | None = None
    expires_at: datetime | None = None
    is_active: bool = True
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def __post_init__(self) -> None:
        self.kind = ShareKind(self.kind)
        self.expires_at = as_utc(self.expires_at)
        self.created_at = as_utc(self.created_at)
        self.updated_at = as_utc(self.updated_at)
        self.permission = Permission(self.permission)
        if self.permission not in GRANTABLE_PERMISSIONS:
            raise ValueError('a share cannot carry the none permission')
        if self.kind is ShareKind.USER:
            if not self.target_id or self.link_token is not None:
                raise ValueError('user shares need a target and no link token')
        elif not self.link_token or self.target_id is not None:
            raise ValueError('link shares need a link token and no target')

    def is_expired(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        return now > self.expires_at

    def is_valid(self, now: datetime) -> bool:
        return self.is_active and not self.is_expired(now)

    def copy(self, **changes: Any) -> Share:
        return replace(self, **changes)

    def to_row(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dict (also the PostgREST row shape)."""
        return {
            'id': self.id,
            'file_id': self.file_id,
            'owner_id': self.owner_id,
            'kind': self.kind.value,
            'permission': self.permission.value,
            'target_id': self.target_id,
            'link_token': self.link_token,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Share:
        return cls(
            id=row['id'],
            file_id=row['file_id'],
            owner_id=row['owner_id'],
            kind=ShareKind(row['kind']),
            permission=Permission(row.get('permission', 'view')),
            target_id=row.get('target_id'),
            link_token=row.get('link_token'),
            expires_at=_parse_ts(row.get('expires_at')),
            is_active=bool(row.get('is_active', True)),
            created_at=_parse_ts(row.get('created_at')) or datetime.now(timezone.utc),
            updated_at=_parse_ts(row.get('updated_at')) or datetime.now(timezone.utc),
        )


@dataclass(frozen=True, slots=True)
class AccessDecision:
    """Result of resolving a (principal, file, action) triple.

    ``permission`` is the effective level the principal holds, which can
    be below what was requested. ``allowed`` says whether the requested
    action is covered; a ``view`` grant never silently satisfies a
    ``download`` request.
    """

    permission: Permission
    granted_via: GrantedVia | None
    requested: Permission
    share: Share | None = None

    @property
    def allowed(self) -> bool:
        return (
            self.permission is not Permission.NONE
            and self.permission.covers(self.requested)
        )

    @classmethod
    def denied(cls, requested: Permission) -> AccessDecision:
        return cls(permission=Permission.NONE, granted_via=None, requested=requested)
