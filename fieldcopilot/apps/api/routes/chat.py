from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.apps.api.deps import (
    TenantContext,
    chat_provider,
    embedding_provider,
    get_db,
    get_tenant_context,
    is_debug_request,
    read_json_object,
    vector_index,
)
from fieldcopilot.core.config import get_settings
from fieldcopilot.core.errors import MethodNotAllowedError, ValidationError
from fieldcopilot.services.copilot import answer_job_question, load_conversation

router = APIRouter(prefix="/jobs", tags=["chat"])


@router.post("/{job_id}/ai/chat")
async def chat(
    job_id: str,
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
    llm=Depends(chat_provider),
    embeddings=Depends(embedding_provider),
    index=Depends(vector_index),
) -> dict:
    body = await read_json_object(request)
    message = body.get("message")
    if not isinstance(message, str) or not message.strip():
        raise ValidationError("Missing message")
    conversation_id = body.get("conversation_id") or body.get("conversationId")
    if conversation_id is not None and not isinstance(conversation_id, str):
        raise ValidationError("Invalid conversation_id")

    debug = is_debug_request(request)
    result = await answer_job_question(
        db,
        tenant_id=ctx.tenant_id,
        job_id=job_id,
        user_id=ctx.user_id,
        message=message.strip(),
        conversation_id=conversation_id,
        llm=llm,
        embeddings=embeddings,
        vector_index=index,
        settings=get_settings(),
        debug=debug,
    )
    payload = {
        "answer": result.answer,
        "citations": result.citations,
        "follow_ups": result.follow_ups,
        "conversation_id": result.conversation_id,
    }
    if debug:
        payload["debug"] = result.debug
    return payload


@router.get("/{job_id}/ai/chat")
async def chat_get(job_id: str) -> dict:
    raise MethodNotAllowedError("Method not allowed")


@router.get("/{job_id}/ai/conversation")
async def get_conversation(
    job_id: str,
    conversation_id: str | None = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await load_conversation(
        db,
        tenant_id=ctx.tenant_id,
        job_id=job_id,
        user_id=ctx.user_id,
        conversation_id=conversation_id,
    )
