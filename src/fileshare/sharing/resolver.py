"""Effective-permission resolution for (principal, file, action) triples.

Resolution order:
  1. The file owner always holds ``download`` via ``owner``; no Share
     lookup happens.
  2. Otherwise the single applicable Share is looked up: the user Share
     for (file, principal), or the link Share for a presented token.
  3. A missing, revoked, or logically expired Share yields ``none``.
  4. Otherwise the Share's permission applies. A ``view`` grant never
     satisfies a ``download`` request.

Active flag and expiry are re-checked against the clock on every call;
physical absence of expired rows is never relied on.
"""

from __future__ import annotations

from datetime import datetime

from ..clock import Clock
from ..errors import AccessDenied, Expired, InsufficientPermission, NotFound, ShareError
from ..files.model import File
from ..protocols import ShareRepository
from .model import AccessDecision, GrantedVia, Permission, Share, ShareKind


def evaluate_share(
    share: Share | None,
    requested: Permission,
    now: datetime,
    via: GrantedVia,
) -> tuple[AccessDecision, ShareError | None]:
    """Pure decision for one candidate Share.

    Returns the decision and, when access is refused, the failure a
    strict caller should raise.
    """
    if share is None or not share.is_active:
        failure = NotFound('Share link') if via is GrantedVia.LINK_SHARE else AccessDenied()
        return AccessDecision.denied(requested), failure
    if share.is_expired(now):
        return AccessDecision.denied(requested), Expired(share.id, share.expires_at)

    decision = AccessDecision(
        permission=share.permission,
        granted_via=via,
        requested=requested,
        share=share,
    )
    if not decision.allowed:
        return decision, InsufficientPermission(
            share.permission.value, requested.value,
        )
    return decision, None


class PermissionResolver:
    """Computes effective permissions from ownership and Share state.

    Args:
        shares: Share store used for the single applicable-Share lookup.
        clock: Time source for expiry checks.
    """

    def __init__(self, shares: ShareRepository, clock: Clock) -> None:
        self._shares = shares
        self._clock = clock

    async def _evaluate(
        self,
        principal_id: str,
        file: File,
        requested: Permission,
        link_token: str | None,
    ) -> tuple[AccessDecision, ShareError | None]:
        if principal_id == file.owner_id:
            return AccessDecision(
                permission=Permission.DOWNLOAD,
                granted_via=GrantedVia.OWNER,
                requested=requested,
            ), None

        if link_token is not None:
            share = await self._shares.find_by_token(link_token)
            if share is not None and (
                share.kind is not ShareKind.LINK or share.file_id != file.id
            ):
                share = None
            via = GrantedVia.LINK_SHARE
        else:
            share = await self._shares.find_user_share(file.id, principal_id)
            via = GrantedVia.USER_SHARE

        return evaluate_share(share, requested, self._clock.now(), via)

    async def resolve(
        self,
        principal_id: str,
        file: File,
        requested: Permission = Permission.VIEW,
        *,
        link_token: str | None = None,
    ) -> AccessDecision:
        """Return the effective permission; never raises for refusals."""
        decision, _ = await self._evaluate(principal_id, file, requested, link_token)
        return decision

    async def require(
        self,
        principal_id: str,
        file: File,
        requested: Permission = Permission.VIEW,
        *,
        link_token: str | None = None,
    ) -> AccessDecision:
        """Like ``resolve`` but raise the matching ShareError on refusal.

        Raises:
            AccessDenied: No valid user Share applies.
            NotFound: Unknown or revoked link token.
            Expired: The applicable Share is past its expiry instant.
            InsufficientPermission: The Share grants less than requested.
        """
        decision, failure = await self._evaluate(principal_id, file, requested, link_token)
        if failure is not None:
            raise failure
        return decision
