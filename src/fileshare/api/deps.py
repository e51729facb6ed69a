"""Shared wiring for the HTTP routers.

Routers receive a ``FileShareServices`` container at construction time
(router factories, no module globals) and resolve the caller through
the injected ``PrincipalResolver``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from fastapi import Depends, Header, Request

from ..audit.model import RequestOrigin
from ..audit.sink import AuditSink
from ..errors import NotAuthenticated
from ..files.service import FileService
from ..identity import Principal
from ..protocols import PrincipalResolver
from ..settings import ShareSettings
from ..sharing.lifecycle import ShareLifecycleManager
from ..sharing.model import Share, as_utc


@dataclass(frozen=True)
class FileShareServices:
    """Core services exposed to the routing layer."""

    settings: ShareSettings
    files: FileService
    lifecycle: ShareLifecycleManager
    audit: AuditSink
    principals: PrincipalResolver


def request_origin(request: Request) -> RequestOrigin:
    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() if forwarded else None
    if not ip and request.client is not None:
        ip = request.client.host
    return RequestOrigin(ip_address=ip, user_agent=request.headers.get("user-agent"))


def principal_dependencies(
    resolver: PrincipalResolver,
) -> tuple[
    Callable[..., Awaitable[Principal | None]],
    Callable[..., Awaitable[Principal]],
]:
    """Build (optional, required) principal dependencies for ``resolver``."""

    async def optional_principal(
        authorization: str | None = Header(default=None),
    ) -> Principal | None:
        return resolver.resolve(authorization)

    async def current_principal(
        principal: Principal | None = Depends(optional_principal),
    ) -> Principal:
        if principal is None:
            raise NotAuthenticated("Not authenticated")
        return principal

    return optional_principal, current_principal


def share_payload(share: Share, lifecycle: ShareLifecycleManager) -> dict[str, Any]:
    payload = share.to_row()
    payload["share_url"] = lifecycle.share_url(share)
    return payload
