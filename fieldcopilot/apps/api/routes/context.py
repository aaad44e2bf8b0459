from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.apps.api.deps import TenantContext, get_db, get_tenant_context
from fieldcopilot.domain.context import JobSnapshot
from fieldcopilot.services.job_context import get_job_snapshot

router = APIRouter(prefix="/jobs", tags=["context"])


@router.get("/{job_id}/ai/context", response_model=JobSnapshot)
async def get_context(
    job_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> JobSnapshot:
    return await get_job_snapshot(db, ctx.tenant_id, job_id)
