from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.domain.models import CopilotConversation, CopilotMessage
from fieldcopilot.persistence.guards import tenant_predicate


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


async def get_conversation(
    session: AsyncSession, tenant_id: str, conversation_id: str
) -> CopilotConversation | None:
    result = await session.execute(
        select(CopilotConversation).where(
            tenant_predicate(CopilotConversation, tenant_id),
            CopilotConversation.id == conversation_id,
        )
    )
    return result.scalar_one_or_none()


async def get_latest_conversation(
    session: AsyncSession, tenant_id: str, job_id: str, user_id: str | None = None
) -> CopilotConversation | None:
    stmt = select(CopilotConversation).where(
        tenant_predicate(CopilotConversation, tenant_id),
        CopilotConversation.job_id == job_id,
    )
    if user_id is not None:
        stmt = stmt.where(CopilotConversation.user_id == user_id)
    result = await session.execute(
        stmt
        .order_by(CopilotConversation.updated_at.desc(), CopilotConversation.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_conversation(
    session: AsyncSession, tenant_id: str, job_id: str, user_id: str | None
) -> CopilotConversation:
    conversation = CopilotConversation(
        id=str(uuid4()), tenant_id=tenant_id, job_id=job_id, user_id=user_id
    )
    session.add(conversation)
    await session.flush()
    return conversation


async def touch_conversation(session: AsyncSession, conversation_id: str) -> None:
    await session.execute(
        update(CopilotConversation)
        .where(CopilotConversation.id == conversation_id)
        .values(updated_at=func.now())
    )


async def add_message(
    session: AsyncSession,
    *,
    conversation_id: str,
    tenant_id: str,
    job_id: str,
    user_id: str | None,
    role: str,
    content: str,
    model: str | None = None,
    prompt_version: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> CopilotMessage:
    message = CopilotMessage(
        id=str(uuid4()),
        conversation_id=conversation_id,
        tenant_id=tenant_id,
        job_id=job_id,
        user_id=user_id,
        role=role,
        content=content,
        source="app",
        model=model,
        prompt_version=prompt_version,
        metadata_json=metadata,
        content_hash=content_hash(content),
        # Client-side timestamp keeps user/assistant order stable within one request.
        created_at=datetime.now(timezone.utc),
    )
    session.add(message)
    return message


async def list_messages(
    session: AsyncSession, tenant_id: str, conversation_id: str
) -> list[CopilotMessage]:
    result = await session.execute(
        select(CopilotMessage)
        .where(
            tenant_predicate(CopilotMessage, tenant_id),
            CopilotMessage.conversation_id == conversation_id,
        )
        .order_by(CopilotMessage.created_at.asc(), CopilotMessage.id)
    )
    return list(result.scalars().all())


async def list_recent_messages(
    session: AsyncSession, tenant_id: str, conversation_id: str, limit: int
) -> list[CopilotMessage]:
    # Newest N, returned oldest first for prompt assembly.
    result = await session.execute(
        select(CopilotMessage)
        .where(
            tenant_predicate(CopilotMessage, tenant_id),
            CopilotMessage.conversation_id == conversation_id,
        )
        .order_by(CopilotMessage.created_at.desc(), CopilotMessage.id.desc())
        .limit(limit)
    )
    messages = list(result.scalars().all())
    messages.reverse()
    return messages


def message_to_dict(message: CopilotMessage) -> dict[str, Any]:
    return {
        "id": message.id,
        "role": message.role,
        "content": message.content,
        "model": message.model,
        "prompt_version": message.prompt_version,
        "metadata": message.metadata_json,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }
