from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.apps.api.deps import TenantContext, get_db, get_tenant_context
from fieldcopilot.core.errors import NotFoundError
from fieldcopilot.persistence.repos import clients as clients_repo
from fieldcopilot.persistence.repos.properties import property_to_dict

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("")
async def list_clients(
    search: str | None = None,
    city: str | None = None,
    state: str | None = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    items = await clients_repo.list_clients(
        db, ctx.tenant_id, search=search, city=city, state=state
    )
    return {"items": items, "total": len(items)}


@router.get("/{client_id}")
async def get_client(
    client_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    client = await clients_repo.get_client(db, ctx.tenant_id, client_id)
    if client is None:
        raise NotFoundError("Client not found")
    properties = await clients_repo.list_client_properties(db, ctx.tenant_id, client_id)
    payload = clients_repo.client_to_dict(client)
    payload["properties"] = [property_to_dict(prop) for prop in properties]
    return payload
