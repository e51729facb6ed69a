"""Fileshare FastAPI application factory.

The create_app() factory is the single entry point for building the ASGI
application. It wires the observability middleware, the ShareError handler,
the routers, and injects store implementations.

Usage:
    # Local development (in-memory stores, local blob directory)
    from fileshare import create_app, ShareSettings
    app = create_app(ShareSettings())

    # Non-local (Supabase stores from the environment)
    uvicorn fileshare.main:create_app_from_env --factory

    # Testing (full DI control)
    app = create_app(settings, share_repo=repo, clock=FrozenClock(), ...)
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .api.audit import create_audit_router
from .api.deps import FileShareServices
from .api.files import create_files_router
from .api.shares import create_shares_router
from .audit.sink import AuditSink
from .clock import Clock, SystemClock
from .errors import ShareError
from .files.compression import CompressionPipeline
from .files.policy import UploadPolicy
from .files.service import FileService
from .identity import JwtPrincipalResolver
from .observability import configure_logging, get_logger, metrics_text
from .observability.middleware import (
    MetricsMiddleware,
    RequestIdMiddleware,
    RequestLoggingMiddleware,
)
from .protocols import AuditStore, BlobStore, FileRepository, PrincipalResolver, ShareRepository
from .settings import ShareSettings
from .sharing.lifecycle import ShareLifecycleManager
from .sharing.resolver import PermissionResolver
from .sharing.sweep import ExpiredShareSweeper
from .sharing.tokens import LinkTokenIssuer

logger = get_logger(__name__)

# Used only when ENVIRONMENT=local and no JWT_SECRET is configured.
LOCAL_DEV_JWT_SECRET = "fileshare-local-dev-secret-do-not-deploy"


@dataclass(frozen=True)
class AppDependencies:
    """Container for all injected store/collaborator instances.

    Stored on ``app.state.deps`` so tests and tooling can reach them.
    """

    share_repo: ShareRepository
    file_repo: FileRepository
    audit_store: AuditStore
    blob_store: BlobStore
    principal_resolver: PrincipalResolver
    clock: Clock


def _build_local_deps(settings: ShareSettings) -> AppDependencies:
    """Construct in-memory stores plus a local blob directory."""
    from .files.blob_store import LocalBlobStore
    from .inmemory import InMemoryAuditStore, InMemoryFileRepository, InMemoryShareRepository

    return AppDependencies(
        share_repo=InMemoryShareRepository(),
        file_repo=InMemoryFileRepository(),
        audit_store=InMemoryAuditStore(),
        blob_store=LocalBlobStore(settings.upload_path),
        principal_resolver=JwtPrincipalResolver(settings.jwt_secret or LOCAL_DEV_JWT_SECRET),
        clock=SystemClock(),
    )


def build_services(settings: ShareSettings, deps: AppDependencies) -> FileShareServices:
    """Assemble the core services over ``deps``."""
    audit = AuditSink(
        deps.audit_store,
        deps.file_repo,
        deps.clock,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )
    resolver = PermissionResolver(deps.share_repo, deps.clock)
    lifecycle = ShareLifecycleManager(
        deps.share_repo,
        deps.file_repo,
        audit,
        deps.clock,
        LinkTokenIssuer(settings.link_token_bytes),
        resolver=resolver,
        public_url=settings.public_url,
        max_token_attempts=settings.link_token_max_attempts,
    )
    files = FileService(
        deps.file_repo,
        deps.share_repo,
        deps.blob_store,
        audit,
        resolver,
        CompressionPipeline.from_settings(settings),
        deps.clock,
        policy=UploadPolicy.from_settings(settings),
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )
    return FileShareServices(
        settings=settings,
        files=files,
        lifecycle=lifecycle,
        audit=audit,
        principals=deps.principal_resolver,
    )


# ── Error rendering ─────────────────────────────────────────────────


async def share_error_handler(request: Request, exc: ShareError) -> JSONResponse:
    logger.info(
        "share_error",
        code=exc.code,
        status=exc.status_code,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


# ── Factory ─────────────────────────────────────────────────────────


def create_app(
    settings: ShareSettings | None = None,
    *,
    share_repo: ShareRepository | None = None,
    file_repo: FileRepository | None = None,
    audit_store: AuditStore | None = None,
    blob_store: BlobStore | None = None,
    principal_resolver: PrincipalResolver | None = None,
    clock: Clock | None = None,
    run_sweeper: bool = True,
) -> FastAPI:
    """Create a configured fileshare FastAPI application.

    Args:
        settings: Application settings. Defaults to local-dev settings.
        share_repo..clock: Store/collaborator overrides. When None, local
            mode uses in-memory implementations. Non-local mode raises
            if stores are not provided.
        run_sweeper: Start the expired-share sweep in the app lifespan.

    Raises:
        ValueError: If settings validation fails.
        ValueError: If a non-local environment is missing stores.
    """
    if settings is None:
        settings = ShareSettings()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "Fileshare settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    if settings.is_local:
        defaults = _build_local_deps(settings) if (
            None in (share_repo, file_repo, audit_store, blob_store, principal_resolver)
        ) else None
        deps = AppDependencies(
            share_repo=share_repo or defaults.share_repo,
            file_repo=file_repo or defaults.file_repo,
            audit_store=audit_store or defaults.audit_store,
            blob_store=blob_store or defaults.blob_store,
            principal_resolver=principal_resolver or defaults.principal_resolver,
            clock=clock or SystemClock(),
        )
    else:
        provided = {
            "share_repo": share_repo,
            "file_repo": file_repo,
            "audit_store": audit_store,
            "blob_store": blob_store,
        }
        missing = [name for name, value in provided.items() if value is None]
        if missing:
            raise ValueError(
                f"Non-local environment ({settings.environment}) requires all "
                f"stores to be explicitly provided. Missing: {', '.join(missing)}"
            )
        deps = AppDependencies(
            share_repo=share_repo,  # type: ignore[arg-type]
            file_repo=file_repo,  # type: ignore[arg-type]
            audit_store=audit_store,  # type: ignore[arg-type]
            blob_store=blob_store,  # type: ignore[arg-type]
            principal_resolver=principal_resolver or JwtPrincipalResolver(settings.jwt_secret),
            clock=clock or SystemClock(),
        )

    services = build_services(settings, deps)
    sweeper = ExpiredShareSweeper(deps.share_repo, deps.clock, settings.share_retention)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("fileshare_startup", environment=settings.environment)
        task = None
        if run_sweeper and settings.sweep_interval_seconds > 0:
            task = asyncio.create_task(
                sweeper.run_forever(settings.sweep_interval_seconds),
            )
        yield
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("fileshare_shutdown")

    app = FastAPI(
        title="Fileshare",
        description="File sharing with access control and audit trail",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.deps = deps
    app.state.settings = settings
    app.state.services = services
    app.state.sweeper = sweeper

    app.add_exception_handler(ShareError, share_error_handler)
    # Last added runs outermost, so the request id is bound for the others.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)

    @app.get("/health")
    async def health():
        return {"status": "ok", "environment": settings.environment}

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        body, content_type = metrics_text()
        return Response(content=body, media_type=content_type)

    app.include_router(create_files_router(services))
    app.include_router(create_shares_router(services))
    app.include_router(create_audit_router(services))

    return app


def create_app_from_env() -> FastAPI:
    """Production entry point: configure logging and wire Supabase stores."""
    configure_logging()
    settings = ShareSettings.from_env()
    if settings.is_local:
        return create_app(settings)

    from .db.audit_store import SupabaseAuditStore
    from .db.file_repo import SupabaseFileRepository
    from .db.migrations import missing_declarations
    from .db.schema import SHARES_SCHEMA
    from .db.share_repo import SupabaseShareRepository
    from .db.supabase_client import SupabaseClient
    from .files.blob_store import LocalBlobStore

    missing = missing_declarations()
    if missing:
        raise RuntimeError(
            "Shipped migrations do not create declared indexes:\n"
            + "\n".join(f"  - {stmt}" for stmt in missing)
        )

    client = SupabaseClient(
        supabase_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
    )
    return create_app(
        settings,
        share_repo=SupabaseShareRepository(client, SHARES_SCHEMA),
        file_repo=SupabaseFileRepository(client),
        audit_store=SupabaseAuditStore(client),
        blob_store=LocalBlobStore(settings.upload_path),
    )


# For uvicorn, use --factory flag:
#   uvicorn fileshare.main:create_app_from_env --factory
