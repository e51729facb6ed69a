"""Domain error taxonomy for share resolution and lifecycle operations.

Every caller-visible failure is deterministic and non-retryable: the
core never retries them itself. Each class carries a stable ``code``
and the HTTP status the routing layer maps it to, so no transport
concept leaks into the core beyond those two attributes.

Internal-only failures:
  - ``TokenCollision`` is retried transparently by the lifecycle manager.
  - ``CompressionFailed`` is reported in the compression result.
  - ``AuditWriteFailed`` is logged by the audit sink and swallowed.
"""

from __future__ import annotations

from datetime import datetime


class ShareError(Exception):
    """Base class for fileshare domain failures."""

    code = 'share_error'
    status_code = 500
    default_message = 'File sharing operation failed'

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotOwner(ShareError):
    """Actor lacks ownership of the target file or share."""

    code = 'not_owner'
    status_code = 403
    default_message = 'Only the owner can perform this action'


class SelfShare(ShareError):
    code = 'self_share'
    status_code = 400
    default_message = 'Cannot share with yourself'


class NotFound(ShareError):
    """Referenced file, share, or link token does not exist."""

    code = 'not_found'
    status_code = 404
    default_message = 'Not found'

    def __init__(self, kind: str, ref: str | None = None) -> None:
        self.kind = kind
        self.ref = ref
        super().__init__(f'{kind} not found')


class Expired(ShareError):
    """Grant exists but its expiration instant has passed."""

    code = 'share_expired'
    status_code = 410

    def __init__(self, share_id: str, expired_at: datetime) -> None:
        self.share_id = share_id
        self.expired_at = expired_at
        super().__init__(f'Share {share_id} expired at {expired_at.isoformat()}')


class InsufficientPermission(ShareError):
    """Grant exists but its permission is too low for the requested action."""

    code = 'insufficient_permission'
    status_code = 403

    def __init__(self, granted: str, requested: str) -> None:
        self.granted = granted
        self.requested = requested
        super().__init__(
            f'{requested!r} requires more than the granted {granted!r} permission'
        )


class AccessDenied(ShareError):
    """No valid grant applies to this principal and file."""

    code = 'access_denied'
    status_code = 403
    default_message = 'Access denied'


class NotAuthenticated(ShareError):
    """Bearer links still require an authenticated principal."""

    code = 'not_authenticated'
    status_code = 401
    default_message = 'You must be logged in to access shared files'


class FileTooLarge(ShareError):
    """Upload exceeds the configured size limit."""

    code = 'file_too_large'
    status_code = 413

    def __init__(self, name: str, limit: int) -> None:
        self.name = name
        self.limit = limit
        super().__init__(f'{name} exceeds the {limit} byte upload limit')


class FileTypeNotAllowed(ShareError):
    """Upload extension is not on the allow-list."""

    code = 'file_type_not_allowed'
    status_code = 400

    def __init__(self, extension: str, allowed: tuple[str, ...]) -> None:
        self.extension = extension
        self.allowed = allowed
        super().__init__(
            f'File type {extension or "(none)"} is not allowed. '
            f'Allowed types: {", ".join(allowed)}'
        )


class TokenCollision(ShareError):
    """Issued link token clashed with a live one."""

    code = 'token_collision'
    status_code = 500

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f'Link token still colliding after {attempts} attempts')


class CompressionFailed(ShareError):
    """A transform failed; the original bytes are kept."""

    code = 'compression_failed'
    status_code = 500


class AuditWriteFailed(ShareError):
    """An audit entry could not be persisted."""

    code = 'audit_write_failed'
    status_code = 500
