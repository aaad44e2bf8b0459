from __future__ import annotations

import hmac
import json
from typing import Any, AsyncGenerator

from fastapi import Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.core.config import get_settings
from fieldcopilot.core.errors import AccessAuthError, AuthError, ValidationError
from fieldcopilot.persistence.db import get_session
from fieldcopilot.providers.registry import ProviderRegistry
from fieldcopilot.services.auth.access import JwksCache, authenticate_access_token
from fieldcopilot.services.background import TaskRunner


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


class TenantContext(BaseModel):
    # Tenant scope and acting user attached to every tenant-scoped request.
    tenant_id: str
    user_id: str | None = None
    role: str | None = None
    auth_method: str = "access"


def get_jwks_cache(request: Request) -> JwksCache:
    return request.app.state.jwks_cache


def get_task_runner(request: Request) -> TaskRunner:
    return request.app.state.task_runner


def get_providers(request: Request) -> ProviderRegistry:
    return request.app.state.providers


def chat_provider(providers: ProviderRegistry = Depends(get_providers)):
    return providers.chat()


def embedding_provider(providers: ProviderRegistry = Depends(get_providers)):
    return providers.embeddings()


def vector_index(providers: ProviderRegistry = Depends(get_providers)):
    return providers.vector_index()


def _access_token(request: Request, header_name: str) -> str | None:
    authorization = request.headers.get("Authorization") or ""
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return request.headers.get(header_name) or None


async def get_tenant_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    jwks_cache: JwksCache = Depends(get_jwks_cache),
) -> TenantContext:
    tenant_id = (request.headers.get("x-tenant-id") or "").strip()
    if not tenant_id:
        raise ValidationError("Missing x-tenant-id header")

    settings = get_settings()
    if not settings.access_auth_enabled:
        # Development mode: trust the tenant header and optional acting user.
        user_id = (request.headers.get("x-user-id") or "").strip() or None
        return TenantContext(tenant_id=tenant_id, user_id=user_id, auth_method="header")

    identity = await authenticate_access_token(
        db,
        token=_access_token(request, settings.access_token_header),
        jwks_url=settings.access_jwks_url,
        audience=settings.access_audience,
        issuer=settings.access_issuer,
        jwks_cache=jwks_cache,
    )
    if identity.tenant_id != tenant_id:
        raise AccessAuthError("Tenant mismatch", 403)
    return TenantContext(
        tenant_id=tenant_id,
        user_id=identity.user_id,
        role=identity.role,
        auth_method="access",
    )


def require_admin_key(request: Request) -> None:
    expected = get_settings().admin_api_token
    provided = request.headers.get("x-api-key") or ""
    if not expected or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise AuthError("Unauthorized")


def is_debug_request(request: Request) -> bool:
    return request.headers.get("x-debug") == "1"


async def read_json_object(request: Request) -> dict[str, Any]:
    try:
        payload = json.loads(await request.body())
    except ValueError as exc:
        raise ValidationError("Invalid JSON") from exc
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON")
    return payload
