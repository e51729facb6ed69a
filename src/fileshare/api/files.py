"""File upload, listing, retrieval, and deletion endpoints."""

from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile
from fastapi.responses import JSONResponse

from ..identity import Principal
from .deps import FileShareServices, principal_dependencies, request_origin, share_payload

MAX_FILES_PER_UPLOAD = 10


def create_files_router(services: FileShareServices) -> APIRouter:
    """Create the file router bound to ``services``."""
    router = APIRouter(prefix='/api/files', tags=['files'])
    _, current_principal = principal_dependencies(services.principals)
    file_service = services.files
    max_limit = services.settings.max_page_size

    @router.post('/upload', status_code=201)
    async def upload_files(
        request: Request,
        files: list[UploadFile] = File(...),
        principal: Principal = Depends(current_principal),
    ):
        if len(files) > MAX_FILES_PER_UPLOAD:
            return JSONResponse(
                status_code=400,
                content={
                    'error': 'too_many_files',
                    'detail': f'Maximum {MAX_FILES_PER_UPLOAD} files allowed per upload.',
                },
            )
        policy = file_service.policy
        names = [upload.filename or 'file' for upload in files]
        for name in names:
            policy.check_name(name)

        # Bounded reads; nothing is stored unless every upload fits.
        payloads = []
        for name, upload in zip(names, files):
            data = await upload.read(policy.max_file_size + 1)
            policy.check_size(name, len(data))
            payloads.append(data)

        origin = request_origin(request)
        stored = []
        for name, upload, data in zip(names, files, payloads):
            stored.append(await file_service.ingest(
                principal.id,
                name,
                upload.content_type or 'application/octet-stream',
                data,
                origin=origin,
            ))
        return {'files': [f.to_row() for f in stored]}

    @router.get('')
    async def list_my_files(
        page: int = Query(1, ge=1),
        limit: int | None = Query(None, ge=1, le=max_limit),
        principal: Principal = Depends(current_principal),
    ):
        result = await file_service.list_owned(principal.id, page=page, limit=limit)
        return {
            'files': [f.to_row() for f in result.files],
            'total': result.total,
            'page': result.page,
            'limit': result.limit,
            'total_pages': result.total_pages,
        }

    @router.get('/shared')
    async def list_shared_with_me(
        page: int = Query(1, ge=1),
        limit: int | None = Query(None, ge=1, le=max_limit),
        principal: Principal = Depends(current_principal),
    ):
        result = await file_service.list_shared_with(principal.id, page=page, limit=limit)
        return {
            'files': [
                {
                    'file': item.file.to_row(),
                    'share': share_payload(item.share, services.lifecycle),
                }
                for item in result.items
            ],
            'total': result.total,
            'page': result.page,
            'limit': result.limit,
            'total_pages': result.total_pages,
        }

    @router.get('/stats')
    async def file_stats(principal: Principal = Depends(current_principal)):
        stats = await file_service.stats(principal.id)
        return stats.to_dict()

    @router.get('/{file_id}')
    async def get_file(
        file_id: str,
        request: Request,
        principal: Principal = Depends(current_principal),
    ):
        file = await file_service.get(principal.id, file_id, origin=request_origin(request))
        return {
            'file': {
                **file.to_row(),
                'formatted_size': file.formatted_size,
                'extension': file.extension,
            },
        }

    @router.get('/{file_id}/download')
    async def download_file(
        file_id: str,
        request: Request,
        principal: Principal = Depends(current_principal),
    ):
        file, data = await file_service.download(
            principal.id, file_id, origin=request_origin(request),
        )
        return Response(
            content=data,
            media_type=file.content_type,
            headers={
                'Content-Disposition': f"attachment; filename*=UTF-8''{quote(file.name)}",
            },
        )

    @router.delete('/{file_id}')
    async def delete_file(
        file_id: str,
        request: Request,
        principal: Principal = Depends(current_principal),
    ):
        await file_service.delete(principal.id, file_id, origin=request_origin(request))
        return {'status': 'deleted', 'id': file_id}

    return router
