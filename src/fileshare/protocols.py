"""Repository and collaborator protocol interfaces for dependency injection.

These protocols define the contracts that concrete implementations (InMemory
for local dev and tests, Supabase for non-local) must satisfy. The app
factory accepts any implementation that matches these protocols.

Lookups return records regardless of active/expiry state. Validity is
always decided by the caller at read time against an injected clock.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .audit.model import AuditEntry
    from .files.model import File
    from .identity import Principal
    from .sharing.model import Share


@runtime_checkable
class ShareRepository(Protocol):
    """Share persistence. Raises ``UniqueViolation`` on constraint conflicts."""

    async def create(self, share: Share) -> Share: ...
    async def get(self, share_id: str) -> Share | None: ...
    async def find_user_share(self, file_id: str, target_id: str) -> Share | None: ...
    async def find_by_token(self, token: str) -> Share | None: ...
    async def update(self, share_id: str, **changes: Any) -> Share | None: ...
    async def list_for_file(self, file_id: str, *, active_only: bool = False) -> list[Share]: ...
    async def list_for_target(
        self, target_id: str, *, offset: int, limit: int, now: datetime,
    ) -> tuple[list[Share], int]: ...
    async def delete_for_file(self, file_id: str) -> int: ...
    async def delete_expired_before(self, cutoff: datetime) -> int: ...


@runtime_checkable
class FileRepository(Protocol):
    """File record persistence."""

    async def create(self, file: File) -> File: ...
    async def get(self, file_id: str) -> File | None: ...
    async def delete(self, file_id: str) -> bool: ...
    async def list_for_owner(
        self, owner_id: str, *, offset: int, limit: int,
    ) -> tuple[list[File], int]: ...


@runtime_checkable
class AuditStore(Protocol):
    """Append-only audit persistence."""

    async def append(self, entry: AuditEntry) -> AuditEntry: ...
    async def query(
        self,
        *,
        file_id: str | None = None,
        actor_id: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[AuditEntry], int]: ...


@runtime_checkable
class BlobStore(Protocol):
    """Opaque byte storage keyed by location."""

    def write(self, data: bytes, *, suffix: str = "") -> str: ...
    def read(self, location: str) -> bytes: ...
    def delete(self, location: str) -> None: ...
    def exists(self, location: str) -> bool: ...


@runtime_checkable
class PrincipalResolver(Protocol):
    """Maps request credentials to a stable principal, or None."""

    def resolve(self, authorization: str | None) -> Principal | None: ...
