"""File ingestion, retrieval, deletion, and listing.

Ingestion runs the compression pipeline and the blob write on a worker
thread, then commits the File record. If the commit fails the blob is
removed again, so no orphaned bytes are left behind.
"""

from __future__ import annotations

import asyncio
import math
from collections import Counter
from dataclasses import dataclass
from typing import Any

from ..audit.model import AuditAction, RequestOrigin
from ..audit.sink import AuditSink
from ..clock import Clock
from ..errors import NotFound, NotOwner
from ..observability import get_logger
from ..protocols import BlobStore, FileRepository, ShareRepository
from ..sharing.model import Permission, Share
from ..sharing.resolver import PermissionResolver
from .compression import ZIP_CONTENT_TYPE, CompressionPipeline
from .model import File, new_file_id
from .policy import UploadPolicy

logger = get_logger(__name__)

STATS_TOP_N = 5


@dataclass(frozen=True, slots=True)
class FilePage:
    files: tuple[File, ...]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass(frozen=True, slots=True)
class SharedFile:
    """A file reachable through a valid user Share."""

    file: File
    share: Share


@dataclass(frozen=True, slots=True)
class SharedFilePage:
    items: tuple[SharedFile, ...]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass(frozen=True, slots=True)
class FileStats:
    total_files: int
    total_size: int
    by_type: tuple[tuple[str, int], ...]
    recent: tuple[File, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_files": self.total_files,
            "total_size": self.total_size,
            "by_type": [{"content_type": t, "count": n} for t, n in self.by_type],
            "recent_files": [f.to_row() for f in self.recent],
        }


class FileService:
    """Coordinates stored files with access checks and the audit trail."""

    def __init__(
        self,
        files: FileRepository,
        shares: ShareRepository,
        blobs: BlobStore,
        audit: AuditSink,
        resolver: PermissionResolver,
        pipeline: CompressionPipeline,
        clock: Clock,
        *,
        policy: UploadPolicy | None = None,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ) -> None:
        self._files = files
        self._shares = shares
        self._blobs = blobs
        self._audit = audit
        self._resolver = resolver
        self._pipeline = pipeline
        self._clock = clock
        self._policy = policy or UploadPolicy()
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    @property
    def policy(self) -> UploadPolicy:
        return self._policy

    def _window(self, page: int, limit: int | None) -> tuple[int, int, int]:
        page = max(1, page)
        limit = max(1, min(limit or self._default_page_size, self._max_page_size))
        return page, limit, (page - 1) * limit

    async def _existing(self, file_id: str) -> File:
        file = await self._files.get(file_id)
        if file is None:
            raise NotFound("File", file_id)
        return file

    # ── Ingestion ─────────────────────────────────────────────────────

    async def ingest(
        self,
        owner_id: str,
        name: str,
        content_type: str,
        data: bytes,
        *,
        origin: RequestOrigin | None = None,
    ) -> File:
        """Admit, compress (when worthwhile), store, and record an upload.

        Raises:
            FileTypeNotAllowed: Extension not on the allow-list.
            FileTooLarge: Upload exceeds the size limit.
        """
        self._policy.check(name, len(data))
        content_type = content_type or "application/octet-stream"
        result = await asyncio.to_thread(
            self._pipeline.compress, data, content_type, filename=name,
        )
        if result.content_type == ZIP_CONTENT_TYPE and content_type != ZIP_CONTENT_TYPE:
            suffix = ".zip"
        else:
            _, dot, ext = name.rpartition(".")
            suffix = f".{ext}" if dot else ""
        location = await asyncio.to_thread(self._blobs.write, result.data, suffix=suffix)

        file = File(
            id=new_file_id(),
            name=name,
            content_type=result.content_type,
            size=result.final_size,
            location=location,
            owner_id=owner_id,
            is_compressed=result.kept,
            original_size=result.original_size if result.kept else None,
            created_at=self._clock.now(),
        )
        try:
            file = await self._files.create(file)
        except Exception:
            await asyncio.to_thread(self._blobs.delete, location)
            raise

        logger.info(
            "file_ingested",
            file_id=file.id,
            owner_id=owner_id,
            size=file.size,
            compressed=file.is_compressed,
            compression_error=result.error,
        )
        await self._audit.record(
            owner_id,
            AuditAction.UPLOAD,
            file_id=file.id,
            details={
                "filename": name,
                "size": file.size,
                "compressed": result.kept,
                "compression_ratio": round(result.ratio, 4),
            },
            origin=origin,
        )
        return file

    # ── Access ────────────────────────────────────────────────────────

    async def get(
        self,
        principal_id: str,
        file_id: str,
        *,
        origin: RequestOrigin | None = None,
    ) -> File:
        """Return file metadata for a principal holding at least ``view``."""
        file = await self._existing(file_id)
        await self._resolver.require(principal_id, file, Permission.VIEW)
        await self._audit.record(
            principal_id, AuditAction.VIEW, file_id=file.id, origin=origin,
        )
        return file

    async def download(
        self,
        principal_id: str,
        file_id: str,
        *,
        origin: RequestOrigin | None = None,
    ) -> tuple[File, bytes]:
        file = await self._existing(file_id)
        await self._resolver.require(principal_id, file, Permission.DOWNLOAD)
        data = await self.read_blob(file)
        await self._audit.record(
            principal_id, AuditAction.DOWNLOAD, file_id=file.id, origin=origin,
        )
        return file, data

    async def read_blob(self, file: File) -> bytes:
        """Read a file's bytes; ``NotFound`` if the blob is gone."""
        if not await asyncio.to_thread(self._blobs.exists, file.location):
            logger.warning("blob_missing", file_id=file.id, location=file.location)
            raise NotFound("File on disk", file.id)
        return await asyncio.to_thread(self._blobs.read, file.location)

    async def delete(
        self,
        owner_id: str,
        file_id: str,
        *,
        origin: RequestOrigin | None = None,
    ) -> None:
        """Delete every Share of the file, the record, then the blob.

        The blob goes last so a failed store write never leaves a listed
        file without bytes. A blob that cannot be removed afterwards is
        logged as orphaned.
        """
        file = await self._existing(file_id)
        if file.owner_id != owner_id:
            raise NotOwner("Only the owner can delete this file")

        removed = await self._shares.delete_for_file(file_id)
        await self._files.delete(file_id)
        try:
            await asyncio.to_thread(self._blobs.delete, file.location)
        except OSError:
            logger.warning(
                "blob_orphaned", file_id=file_id, location=file.location, exc_info=True,
            )

        logger.info("file_deleted", file_id=file_id, shares_removed=removed)
        await self._audit.record(
            owner_id,
            AuditAction.DELETE,
            file_id=file_id,
            details={"filename": file.name},
            origin=origin,
        )

    # ── Listings ──────────────────────────────────────────────────────

    async def list_owned(
        self, owner_id: str, *, page: int = 1, limit: int | None = None,
    ) -> FilePage:
        page, limit, offset = self._window(page, limit)
        files, total = await self._files.list_for_owner(
            owner_id, offset=offset, limit=limit,
        )
        return FilePage(tuple(files), total, page, limit)

    async def list_shared_with(
        self, principal_id: str, *, page: int = 1, limit: int | None = None,
    ) -> SharedFilePage:
        """Files shared with ``principal_id`` through valid user Shares."""
        page, limit, offset = self._window(page, limit)
        shares, total = await self._shares.list_for_target(
            principal_id, offset=offset, limit=limit, now=self._clock.now(),
        )
        items: list[SharedFile] = []
        for share in shares:
            file = await self._files.get(share.file_id)
            if file is not None:
                items.append(SharedFile(file=file, share=share))
        return SharedFilePage(tuple(items), total, page, limit)

    async def stats(self, owner_id: str) -> FileStats:
        owned: list[File] = []
        offset = 0
        while True:
            batch, total = await self._files.list_for_owner(
                owner_id, offset=offset, limit=self._max_page_size,
            )
            owned.extend(batch)
            offset += len(batch)
            if not batch or offset >= total:
                break

        by_type = Counter(f.content_type for f in owned)
        return FileStats(
            total_files=len(owned),
            total_size=sum(f.size for f in owned),
            by_type=tuple(by_type.most_common(STATS_TOP_N)),
            recent=tuple(owned[:STATS_TOP_N]),
        )
