from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.apps.api.deps import TenantContext, get_db, get_tenant_context
from fieldcopilot.core.errors import JobNotFoundError
from fieldcopilot.persistence.repos.jobs import job_exists

router = APIRouter(prefix="/jobs", tags=["session"])


@router.post("/{job_id}/ai/session")
async def start_session(
    job_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    if not await job_exists(db, ctx.tenant_id, job_id):
        raise JobNotFoundError(ctx.tenant_id, job_id)
    # Sessions are derived from the job; conversations carry the real state.
    return {
        "sessionId": f"session_{job_id}",
        "jobId": job_id,
        "tenantId": ctx.tenant_id,
        "status": "active",
    }
