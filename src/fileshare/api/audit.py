"""Audit trail read endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..identity import Principal
from .deps import FileShareServices, principal_dependencies


def create_audit_router(services: FileShareServices) -> APIRouter:
    router = APIRouter(prefix='/api/audit', tags=['audit'])
    _, current_principal = principal_dependencies(services.principals)
    max_limit = services.settings.max_page_size

    @router.get('/file/{file_id}')
    async def file_audit_logs(
        file_id: str,
        page: int = Query(1, ge=1),
        limit: int | None = Query(None, ge=1, le=max_limit),
        principal: Principal = Depends(current_principal),
    ):
        result = await services.audit.list_for_file(
            principal.id, file_id, page=page, limit=limit,
        )
        return result.to_dict()

    @router.get('/me')
    async def my_audit_logs(
        page: int = Query(1, ge=1),
        limit: int | None = Query(None, ge=1, le=max_limit),
        principal: Principal = Depends(current_principal),
    ):
        result = await services.audit.list_for_actor(principal.id, page=page, limit=limit)
        return result.to_dict()

    return router
