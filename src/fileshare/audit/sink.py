"""Append-only audit recording and owner-scoped audit queries.

record() is fire-and-forget: store errors are logged as
``audit_write_failed`` and never propagate to the caller, so a failing
audit store can never undo or block the mutation that triggered it.
Read-side queries propagate store errors normally.

Sensitive keys are stripped from ``details`` before persistence; link
tokens are reduced to their correlation prefix.
"""

from __future__ import annotations

from typing import Any

from ..clock import Clock
from ..errors import AuditWriteFailed, NotFound, NotOwner
from ..observability import get_logger
from ..observability.metrics import AUDIT_EVENTS_TOTAL, AUDIT_WRITE_FAILURES_TOTAL
from ..observability.redaction import redact_mapping
from ..protocols import AuditStore, FileRepository
from .model import AuditAction, AuditEntry, AuditPage, RequestOrigin

logger = get_logger(__name__)


def sanitize_details(payload: dict[str, Any]) -> dict[str, Any]:
    """Copy of an audit payload safe to persist (see ``redact_mapping``)."""
    return redact_mapping(payload)


class AuditSink:
    """Records audit entries and serves paginated, reverse-chronological reads.

    Args:
        store: Append-only audit persistence.
        files: File lookup for owner checks on per-file queries.
        clock: Stamps ``created_at`` on each entry.
        default_page_size: Page size when the caller gives none.
        max_page_size: Upper clamp for requested page sizes.
    """

    def __init__(
        self,
        store: AuditStore,
        files: FileRepository,
        clock: Clock,
        *,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ) -> None:
        self._store = store
        self._files = files
        self._clock = clock
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    async def record(
        self,
        actor_id: str,
        action: AuditAction,
        *,
        file_id: str | None = None,
        share_id: str | None = None,
        details: dict[str, Any] | None = None,
        origin: RequestOrigin | None = None,
    ) -> AuditEntry | None:
        """Append one entry. Returns None when the write failed."""
        origin = origin or RequestOrigin()
        action_name = str(getattr(action, "value", action))
        try:
            entry = AuditEntry(
                actor_id=actor_id,
                action=AuditAction(action),
                file_id=file_id,
                share_id=share_id,
                details=sanitize_details(details or {}),
                ip_address=origin.ip_address,
                user_agent=origin.user_agent,
                created_at=self._clock.now(),
            )
            stored = await self._store.append(entry)
        except Exception as exc:
            AUDIT_WRITE_FAILURES_TOTAL.labels(action=action_name).inc()
            logger.error(
                AuditWriteFailed.code,
                action=action_name,
                actor_id=actor_id,
                file_id=file_id,
                share_id=share_id,
                error=type(exc).__name__,
                exc_info=True,
            )
            return None
        AUDIT_EVENTS_TOTAL.labels(action=stored.action.value).inc()
        return stored

    def _window(self, page: int, limit: int | None) -> tuple[int, int, int]:
        page = max(1, page)
        limit = limit or self._default_page_size
        limit = max(1, min(limit, self._max_page_size))
        return page, limit, (page - 1) * limit

    async def list_for_file(
        self,
        owner_id: str,
        file_id: str,
        *,
        page: int = 1,
        limit: int | None = None,
    ) -> AuditPage:
        """Audit trail for one file. Only the file owner may read it."""
        file = await self._files.get(file_id)
        if file is None:
            raise NotFound("File", file_id)
        if file.owner_id != owner_id:
            raise NotOwner("Only the owner can view file audit logs")

        page, limit, offset = self._window(page, limit)
        entries, total = await self._store.query(
            file_id=file_id, offset=offset, limit=limit,
        )
        return AuditPage(tuple(entries), total, page, limit)

    async def list_for_actor(
        self,
        actor_id: str,
        *,
        page: int = 1,
        limit: int | None = None,
    ) -> AuditPage:
        """Everything ``actor_id`` did, newest first."""
        page, limit, offset = self._window(page, limit)
        entries, total = await self._store.query(
            actor_id=actor_id, offset=offset, limit=limit,
        )
        return AuditPage(tuple(entries), total, page, limit)
