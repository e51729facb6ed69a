"""Share management and link redemption endpoints.

  POST   /api/shares/user                    -> grant to a user (upsert)
  POST   /api/shares/link                    -> create a bearer link
  GET    /api/shares/link/{token}            -> redeem a link (view)
  GET    /api/shares/link/{token}/download   -> redeem a link (download)
  GET    /api/shares/file/{file_id}          -> active shares of a file
  DELETE /api/shares/{share_id}              -> revoke
  PATCH  /api/shares/{share_id}/expiration   -> replace expiry

Domain failures propagate as ShareError and are rendered by the app's
exception handler.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field

from ..identity import Principal
from .deps import (
    FileShareServices,
    as_utc,
    principal_dependencies,
    request_origin,
    share_payload,
)


# ── Request schemas ──────────────────────────────────────────────────


class ShareWithUserRequest(BaseModel):
    file_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    permission: Literal['view', 'download'] | None = None
    expires_at: datetime | None = None


class ShareViaLinkRequest(BaseModel):
    file_id: str = Field(..., min_length=1)
    permission: Literal['view', 'download'] | None = None
    expires_at: datetime | None = None


class UpdateExpirationRequest(BaseModel):
    expires_at: datetime | None = Field(
        default=None, description='New expiry; null means never expires',
    )


# ── Route factory ────────────────────────────────────────────────────


def create_shares_router(services: FileShareServices) -> APIRouter:
    """Create the share router bound to ``services``."""
    router = APIRouter(prefix='/api/shares', tags=['shares'])
    optional_principal, current_principal = principal_dependencies(services.principals)
    lifecycle = services.lifecycle

    @router.post('/user', status_code=201)
    async def share_with_user(
        body: ShareWithUserRequest,
        request: Request,
        principal: Principal = Depends(current_principal),
    ):
        share = await lifecycle.grant_to_user(
            principal.id,
            body.file_id,
            body.user_id,
            body.permission,
            as_utc(body.expires_at),
            origin=request_origin(request),
        )
        return {'share': share_payload(share, lifecycle)}

    @router.post('/link', status_code=201)
    async def share_via_link(
        body: ShareViaLinkRequest,
        request: Request,
        principal: Principal = Depends(current_principal),
    ):
        share = await lifecycle.grant_via_link(
            principal.id,
            body.file_id,
            body.permission,
            as_utc(body.expires_at),
            origin=request_origin(request),
        )
        return {
            'share': share_payload(share, lifecycle),
            'share_url': lifecycle.share_url(share),
        }

    @router.get('/link/{token}')
    async def access_via_link(
        token: str,
        request: Request,
        principal: Principal | None = Depends(optional_principal),
    ):
        resolution = await lifecycle.resolve_link_access(
            principal, token, origin=request_origin(request),
        )
        file = resolution.file
        return {
            'file': {
                'id': file.id,
                'name': file.name,
                'content_type': file.content_type,
                'size': file.size,
                'formatted_size': file.formatted_size,
                'created_at': file.created_at.isoformat(),
            },
            'permission': resolution.share.permission.value,
            'expires_at': (
                resolution.share.expires_at.isoformat()
                if resolution.share.expires_at else None
            ),
        }

    @router.get('/link/{token}/download')
    async def download_via_link(
        token: str,
        request: Request,
        principal: Principal | None = Depends(optional_principal),
    ):
        resolution = await lifecycle.resolve_link_download(
            principal, token, origin=request_origin(request),
        )
        data = await services.files.read_blob(resolution.file)
        return Response(
            content=data,
            media_type=resolution.file.content_type,
            headers={
                'Content-Disposition': (
                    f"attachment; filename*=UTF-8''{quote(resolution.file.name)}"
                ),
            },
        )

    @router.get('/file/{file_id}')
    async def get_file_shares(
        file_id: str,
        principal: Principal = Depends(current_principal),
    ):
        shares = await lifecycle.list_file_shares(principal.id, file_id)
        return {'shares': [share_payload(s, lifecycle) for s in shares]}

    @router.delete('/{share_id}')
    async def revoke_share(
        share_id: str,
        request: Request,
        principal: Principal = Depends(current_principal),
    ):
        share = await lifecycle.revoke(
            principal.id, share_id, origin=request_origin(request),
        )
        return {'share': share_payload(share, lifecycle)}

    @router.patch('/{share_id}/expiration')
    async def update_share_expiration(
        share_id: str,
        body: UpdateExpirationRequest,
        principal: Principal = Depends(current_principal),
    ):
        share = await lifecycle.update_expiration(
            principal.id, share_id, as_utc(body.expires_at),
        )
        return {'share': share_payload(share, lifecycle)}

    return router
