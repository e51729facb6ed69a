"""Share lifecycle: grant, re-grant, revoke, expiration updates, link redemption.

Every mutating operation checks ownership first and records an audit
entry only after the mutation succeeded. Audit failures never affect
the outcome (see ``AuditSink.record``).

Race safety:
  - User grants are an upsert keyed by ``ux_shares_user_target``. A
    concurrent create that loses the race gets ``UniqueViolation`` and
    falls back to updating the winner's row, so two concurrent grants
    to the same (file, target) never produce two Shares.
  - Link tokens are checked by ``ux_shares_link_token``; a collision is
    retried with a fresh token up to ``max_token_attempts`` times.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..audit.model import AuditAction, RequestOrigin
from ..audit.sink import AuditSink
from ..clock import Clock
from ..db.errors import UniqueViolation
from ..db.schema import LINK_TOKEN_CONSTRAINT, USER_TARGET_CONSTRAINT
from ..errors import Expired, NotAuthenticated, NotFound, NotOwner, SelfShare, TokenCollision
from ..files.model import File
from ..identity import Principal
from ..observability import get_logger, redact_token
from ..observability.metrics import (
    LINK_TOKEN_COLLISIONS_TOTAL,
    SHARE_GRANTS_TOTAL,
    SHARE_REVOCATIONS_TOTAL,
)
from ..protocols import FileRepository, ShareRepository
from .model import (
    AccessDecision,
    Permission,
    Share,
    ShareKind,
    as_utc,
    new_share_id,
    parse_permission,
)
from .resolver import PermissionResolver
from .tokens import LinkTokenIssuer

logger = get_logger(__name__)

DEFAULT_MAX_TOKEN_ATTEMPTS = 5


@dataclass(frozen=True, slots=True)
class LinkResolution:
    """A successfully redeemed link: the Share, its File, and the decision."""

    share: Share
    file: File
    decision: AccessDecision


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class ShareLifecycleManager:
    """Owns creation, re-grant, revocation, and expiration updates of Shares.

    Args:
        shares: Share store (enforces the declared unique constraints).
        files: File lookup for ownership checks.
        audit: Fire-and-forget audit sink.
        clock: Time source.
        issuer: Link token issuer.
        resolver: Permission resolver; built from ``shares`` and
            ``clock`` when omitted.
        public_url: Base for full share-link URLs.
        max_token_attempts: Link token retry budget.
    """

    def __init__(
        self,
        shares: ShareRepository,
        files: FileRepository,
        audit: AuditSink,
        clock: Clock,
        issuer: LinkTokenIssuer | None = None,
        *,
        resolver: PermissionResolver | None = None,
        public_url: str = "http://localhost:5173",
        max_token_attempts: int = DEFAULT_MAX_TOKEN_ATTEMPTS,
    ) -> None:
        self._shares = shares
        self._files = files
        self._audit = audit
        self._clock = clock
        self._issuer = issuer or LinkTokenIssuer()
        self._resolver = resolver or PermissionResolver(shares, clock)
        self._public_url = public_url.rstrip("/")
        self._max_token_attempts = max(1, max_token_attempts)

    @property
    def resolver(self) -> PermissionResolver:
        return self._resolver

    # ── Helpers ───────────────────────────────────────────────────────

    async def _owned_file(self, owner_id: str, file_id: str) -> File:
        file = await self._files.get(file_id)
        if file is None:
            raise NotFound("File", file_id)
        if file.owner_id != owner_id:
            raise NotOwner("Only the owner can share this file")
        return file

    async def _owned_share(self, owner_id: str, share_id: str) -> Share:
        share = await self._shares.get(share_id)
        if share is None:
            raise NotFound("Share", share_id)
        if share.owner_id != owner_id:
            raise NotOwner("Only the owner can manage this share")
        return share

    async def _apply(self, share_id: str, **changes: Any) -> Share:
        updated = await self._shares.update(
            share_id, updated_at=self._clock.now(), **changes,
        )
        if updated is None:
            raise NotFound("Share", share_id)
        return updated

    async def _regrant(
        self,
        existing: Share,
        permission: Permission | None,
        expires_at: datetime | None,
    ) -> Share:
        changes: dict[str, Any] = {"is_active": True}
        if permission is not None:
            changes["permission"] = permission
        if expires_at is not None:
            changes["expires_at"] = expires_at
        return await self._apply(existing.id, **changes)

    # ── Grants ────────────────────────────────────────────────────────

    async def grant_to_user(
        self,
        owner_id: str,
        file_id: str,
        target_id: str,
        permission: Permission | str | None = None,
        expires_at: datetime | None = None,
        *,
        origin: RequestOrigin | None = None,
    ) -> Share:
        """Grant ``target_id`` access, updating the existing user Share if any.

        Re-granting replaces permission/expiration only when supplied
        and always re-activates the Share.

        Raises:
            NotFound: Unknown file.
            NotOwner: ``owner_id`` does not own the file.
            SelfShare: ``target_id`` is the owner.
        """
        await self._owned_file(owner_id, file_id)
        if target_id == owner_id:
            raise SelfShare()
        perm = parse_permission(permission)
        expires_at = as_utc(expires_at)

        existing = await self._shares.find_user_share(file_id, target_id)
        regranted = existing is not None
        if existing is not None:
            share = await self._regrant(existing, perm, expires_at)
        else:
            now = self._clock.now()
            candidate = Share(
                id=new_share_id(),
                file_id=file_id,
                owner_id=owner_id,
                kind=ShareKind.USER,
                permission=perm or Permission.VIEW,
                target_id=target_id,
                expires_at=expires_at,
                created_at=now,
                updated_at=now,
            )
            try:
                share = await self._shares.create(candidate)
            except UniqueViolation as exc:
                if exc.constraint != USER_TARGET_CONSTRAINT:
                    raise
                # Lost a concurrent create; update the winner instead.
                winner = await self._shares.find_user_share(file_id, target_id)
                if winner is None:
                    raise
                logger.info(
                    "share_grant_race_resolved",
                    file_id=file_id,
                    target_id=target_id,
                    share_id=winner.id,
                )
                regranted = True
                share = await self._regrant(winner, perm, expires_at)

        SHARE_GRANTS_TOTAL.labels(kind=ShareKind.USER.value).inc()
        logger.info(
            "share_granted_to_user",
            share_id=share.id,
            file_id=file_id,
            target_id=target_id,
            permission=share.permission.value,
            regranted=regranted,
        )
        await self._audit.record(
            owner_id,
            AuditAction.SHARE_TO_USER,
            file_id=file_id,
            share_id=share.id,
            details={
                "shared_with": target_id,
                "permission": share.permission.value,
                "expires_at": _iso(share.expires_at),
                "regranted": regranted,
            },
            origin=origin,
        )
        return share

    async def grant_via_link(
        self,
        owner_id: str,
        file_id: str,
        permission: Permission | str | None = None,
        expires_at: datetime | None = None,
        *,
        origin: RequestOrigin | None = None,
    ) -> Share:
        """Create a new bearer-link Share with a freshly issued token.

        Link Shares are never deduplicated.

        Raises:
            NotFound: Unknown file.
            NotOwner: ``owner_id`` does not own the file.
            TokenCollision: Every attempt in the retry budget collided.
        """
        await self._owned_file(owner_id, file_id)
        perm = parse_permission(permission) or Permission.VIEW
        expires_at = as_utc(expires_at)

        share: Share | None = None
        for attempt in range(1, self._max_token_attempts + 1):
            now = self._clock.now()
            token = self._issuer.issue()
            candidate = Share(
                id=new_share_id(),
                file_id=file_id,
                owner_id=owner_id,
                kind=ShareKind.LINK,
                permission=perm,
                link_token=token,
                expires_at=expires_at,
                created_at=now,
                updated_at=now,
            )
            try:
                share = await self._shares.create(candidate)
                break
            except UniqueViolation as exc:
                if exc.constraint != LINK_TOKEN_CONSTRAINT:
                    raise
                LINK_TOKEN_COLLISIONS_TOTAL.inc()
                logger.warning(
                    "link_token_collision",
                    file_id=file_id,
                    attempt=attempt,
                    token_prefix=redact_token(token),
                )
        if share is None:
            logger.error(
                TokenCollision.code,
                file_id=file_id,
                attempts=self._max_token_attempts,
            )
            raise TokenCollision(self._max_token_attempts)

        SHARE_GRANTS_TOTAL.labels(kind=ShareKind.LINK.value).inc()
        logger.info(
            "share_link_created",
            share_id=share.id,
            file_id=file_id,
            permission=perm.value,
            token_prefix=redact_token(share.link_token),
        )
        await self._audit.record(
            owner_id,
            AuditAction.SHARE_VIA_LINK,
            file_id=file_id,
            share_id=share.id,
            details={
                "permission": perm.value,
                "expires_at": _iso(expires_at),
                "link_token": share.link_token,
            },
            origin=origin,
        )
        return share

    # ── Mutations ─────────────────────────────────────────────────────

    async def revoke(
        self,
        owner_id: str,
        share_id: str,
        *,
        origin: RequestOrigin | None = None,
    ) -> Share:
        """Deactivate a Share. Idempotent; there is no un-revoke.

        Raises:
            NotFound: Unknown share.
            NotOwner: ``owner_id`` did not grant the share.
        """
        share = await self._owned_share(owner_id, share_id)
        was_active = share.is_active
        if was_active:
            share = await self._apply(share_id, is_active=False)

        SHARE_REVOCATIONS_TOTAL.labels(was_active=str(was_active).lower()).inc()
        logger.info("share_revoked", share_id=share_id, was_active=was_active)
        await self._audit.record(
            owner_id,
            AuditAction.REVOKE,
            file_id=share.file_id,
            share_id=share_id,
            details={"kind": share.kind.value, "was_active": was_active},
            origin=origin,
        )
        return share

    async def update_expiration(
        self,
        owner_id: str,
        share_id: str,
        expires_at: datetime | None,
    ) -> Share:
        """Replace the expiry instant. ``None`` means never expires.

        The active flag is left untouched.
        """
        await self._owned_share(owner_id, share_id)
        share = await self._apply(share_id, expires_at=as_utc(expires_at))
        logger.info(
            "share_expiration_updated",
            share_id=share_id,
            expires_at=_iso(expires_at),
        )
        return share

    # ── Queries ───────────────────────────────────────────────────────

    async def list_file_shares(self, owner_id: str, file_id: str) -> list[Share]:
        """Active Shares of a file, newest first. Owner only."""
        file = await self._files.get(file_id)
        if file is None:
            raise NotFound("File", file_id)
        if file.owner_id != owner_id:
            raise NotOwner("Only the owner can view shares")
        return await self._shares.list_for_file(file_id, active_only=True)

    def share_url(self, share: Share) -> str | None:
        if share.kind is not ShareKind.LINK or not share.link_token:
            return None
        return f"{self._public_url}/shared/{share.link_token}"

    # ── Link redemption ───────────────────────────────────────────────

    async def _resolve_link(
        self,
        principal: Principal | None,
        token: str,
        requested: Permission,
    ) -> LinkResolution:
        if principal is None:
            raise NotAuthenticated()
        share = await self._shares.find_by_token(token)
        if share is None or share.kind is not ShareKind.LINK or not share.is_active:
            raise NotFound("Share link")
        # A dead link is dead for every holder, the file owner included.
        if share.is_expired(self._clock.now()):
            raise Expired(share.id, share.expires_at)
        file = await self._files.get(share.file_id)
        if file is None:
            raise NotFound("File", share.file_id)
        decision = await self._resolver.require(
            principal.id, file, requested, link_token=token,
        )
        return LinkResolution(share=share, file=file, decision=decision)

    async def resolve_link_access(
        self,
        principal: Principal | None,
        token: str,
        *,
        origin: RequestOrigin | None = None,
    ) -> LinkResolution:
        """Redeem a link for viewing. Requires an authenticated principal.

        Raises:
            NotAuthenticated: ``principal`` is None.
            NotFound: Unknown or revoked token, or the file is gone.
            Expired: The link is past its expiry instant.
        """
        resolution = await self._resolve_link(principal, token, Permission.VIEW)
        await self._audit.record(
            principal.id,
            AuditAction.LINK_ACCESS,
            file_id=resolution.file.id,
            share_id=resolution.share.id,
            details={
                "link_token": token,
                "permission": resolution.share.permission.value,
            },
            origin=origin,
        )
        return resolution

    async def resolve_link_download(
        self,
        principal: Principal | None,
        token: str,
        *,
        origin: RequestOrigin | None = None,
    ) -> LinkResolution:
        """Redeem a link for download; the link must grant ``download``.

        Raises:
            NotAuthenticated, NotFound, Expired: As for ``resolve_link_access``.
            InsufficientPermission: The link only grants ``view``.
        """
        resolution = await self._resolve_link(principal, token, Permission.DOWNLOAD)
        await self._audit.record(
            principal.id,
            AuditAction.DOWNLOAD,
            file_id=resolution.file.id,
            share_id=resolution.share.id,
            details={"via": "link", "link_token": token},
            origin=origin,
        )
        return resolution
