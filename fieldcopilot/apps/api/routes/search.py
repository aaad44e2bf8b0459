from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.apps.api.deps import TenantContext, get_db, get_tenant_context
from fieldcopilot.services.search_index import search_job_ids

router = APIRouter(tags=["search"])


@router.get("/jobs/search")
async def search_jobs(
    q: str = "",
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return {"job_ids": await search_job_ids(db, ctx.tenant_id, q)}
