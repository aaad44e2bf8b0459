from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from fieldcopilot.apps.api.errors import (
    copilot_exception_handler,
    starlette_http_exception_handler,
    tenant_predicate_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fieldcopilot.apps.api.routes.chat import router as chat_router
from fieldcopilot.apps.api.routes.clients import router as clients_router
from fieldcopilot.apps.api.routes.context import router as context_router
from fieldcopilot.apps.api.routes.health import router as health_router
from fieldcopilot.apps.api.routes.ingest import router as ingest_router
from fieldcopilot.apps.api.routes.reindex import router as reindex_router
from fieldcopilot.apps.api.routes.search import router as search_router
from fieldcopilot.apps.api.routes.session import router as session_router
from fieldcopilot.apps.api.routes.technicians import router as technicians_router
from fieldcopilot.core.config import get_settings
from fieldcopilot.core.errors import FieldCopilotError
from fieldcopilot.core.logging import configure_logging
from fieldcopilot.persistence.guards import TenantPredicateError
from fieldcopilot.providers.registry import ProviderRegistry
from fieldcopilot.services.auth.access import JwksCache
from fieldcopilot.services.background import build_task_runner


logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Release pooled provider connections on shutdown.
        await app.state.providers.aclose()

    app = FastAPI(title="Field Copilot API", lifespan=lifespan)
    # Per-app state so tests can swap the cache, runner, or providers.
    app.state.providers = ProviderRegistry()
    app.state.jwks_cache = JwksCache(ttl_s=settings.access_jwks_cache_ttl_s)
    app.state.task_runner = build_task_runner(settings.reindex_execution_mode)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        latency_ms = (time.monotonic() - start) * 1000.0
        logger.info(
            "request method=%s path=%s status=%s latency_ms=%.1f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
            request_id,
        )
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    @app.exception_handler(FieldCopilotError)
    async def _copilot_exception_handler(request: Request, exc: FieldCopilotError):
        return await copilot_exception_handler(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await starlette_http_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        return await validation_exception_handler(request, exc)

    @app.exception_handler(TenantPredicateError)
    async def _tenant_predicate_exception_handler(request: Request, exc: TenantPredicateError):
        return await tenant_predicate_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return await unhandled_exception_handler(request, exc)

    app.include_router(health_router)
    # Search is registered before the job-scoped routers so /jobs/search is never read as a job id.
    app.include_router(search_router)
    app.include_router(context_router)
    app.include_router(session_router)
    app.include_router(chat_router)
    app.include_router(ingest_router)
    app.include_router(reindex_router)
    app.include_router(clients_router)
    app.include_router(technicians_router)
    return app


app = create_app()
