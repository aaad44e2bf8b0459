from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.apps.api.deps import (
    TenantContext,
    embedding_provider,
    get_db,
    get_task_runner,
    get_tenant_context,
    read_json_object,
    vector_index,
)
from fieldcopilot.core.config import get_settings
from fieldcopilot.services.background import TaskRunner
from fieldcopilot.services.ingestion import (
    ClientPayload,
    JobPayload,
    NotePayload,
    PropertyPayload,
    ingest_client,
    ingest_job,
    ingest_note,
    ingest_property,
)

router = APIRouter(prefix="/ingest", tags=["ingest"])


@router.post("/clients", status_code=201)
async def create_client(
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
    runner: TaskRunner = Depends(get_task_runner),
) -> dict:
    payload = ClientPayload.model_validate(await read_json_object(request))
    return {"id": await ingest_client(db, ctx.tenant_id, payload, runner)}


@router.post("/properties", status_code=201)
async def create_property(
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
    runner: TaskRunner = Depends(get_task_runner),
) -> dict:
    payload = PropertyPayload.model_validate(await read_json_object(request))
    return {"id": await ingest_property(db, ctx.tenant_id, payload, runner)}


@router.post("/jobs", status_code=201)
async def create_job(
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
    runner: TaskRunner = Depends(get_task_runner),
) -> dict:
    payload = JobPayload.model_validate(await read_json_object(request))
    return {"id": await ingest_job(db, ctx.tenant_id, payload, runner)}


@router.post("/notes", status_code=201)
async def create_note(
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
    runner: TaskRunner = Depends(get_task_runner),
    embeddings=Depends(embedding_provider),
    index=Depends(vector_index),
):
    payload = NotePayload.model_validate(await read_json_object(request))
    result = await ingest_note(
        db,
        ctx.tenant_id,
        payload,
        runner,
        author_user_id=ctx.user_id,
        idempotency_key=request.headers.get("Idempotency-Key"),
        embeddings=embeddings,
        index=index,
        vector_reindex_limit=get_settings().vector_reindex_limit,
    )
    if result.idempotent:
        # Replays answer 200 with the original id instead of 201.
        return JSONResponse(content={"id": result.id, "idempotent": True}, status_code=200)
    return {"id": result.id}
