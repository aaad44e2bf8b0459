from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.apps.api.deps import (
    TenantContext,
    embedding_provider,
    get_db,
    get_tenant_context,
    require_admin_key,
    vector_index,
)
from fieldcopilot.core.config import get_settings
from fieldcopilot.core.errors import ProviderConfigError
from fieldcopilot.services.search_index import reindex_jobs_for_tenant
from fieldcopilot.services.vector_retrieval import reindex_job_evidence

router = APIRouter(tags=["reindex"])


@router.post("/search/reindex", dependencies=[Depends(require_admin_key)])
async def reindex_search(
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    count = await reindex_jobs_for_tenant(db, ctx.tenant_id)
    await db.commit()
    return {"status": "ok", "jobs": count}


@router.post("/vectorize/reindex/job/{job_id}")
async def reindex_job_vectors(
    job_id: str,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
    embeddings=Depends(embedding_provider),
    index=Depends(vector_index),
) -> dict:
    if index is None or embeddings is None or not embeddings.configured:
        raise ProviderConfigError("Vector reindex is not configured")
    # Configuration errors take precedence over credential errors.
    require_admin_key(request)
    result = await reindex_job_evidence(
        db,
        tenant_id=ctx.tenant_id,
        job_id=job_id,
        embeddings=embeddings,
        index=index,
        limit=get_settings().vector_reindex_limit,
    )
    return {"status": "ok", **result}
