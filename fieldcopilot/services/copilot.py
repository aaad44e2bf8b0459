from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.agent.graph import run_graph
from fieldcopilot.core.config import Settings
from fieldcopilot.core.errors import JobNotFoundError, ValidationError
from fieldcopilot.domain.evidence import EvidenceItem, VectorRetrieval
from fieldcopilot.persistence.repos import conversations as conversations_repo
from fieldcopilot.persistence.repos.jobs import job_exists


logger = logging.getLogger(__name__)

FALLBACK_ANSWER = "Information not available in the job history."
CITATION_SNIPPET_LIMIT = 240


@dataclass
class CopilotAnswer:
    answer: str
    citations: list[Any]
    follow_ups: list[str]
    conversation_id: str
    debug: dict[str, Any] | None = None


def _is_structured_citation(citation: Any) -> bool:
    return (
        isinstance(citation, dict)
        and isinstance(citation.get("doc_id"), str)
        and isinstance(citation.get("snippet"), str)
        and isinstance(citation.get("type"), str)
    )


def _evidence_citation(item: EvidenceItem) -> dict[str, Any]:
    return {
        "doc_id": item.doc_id,
        "date": item.date,
        "type": item.type,
        "snippet": item.snippet[:CITATION_SNIPPET_LIMIT],
        "author": item.author,
    }


def normalize_citations(citations: list[Any], evidence: list[EvidenceItem]) -> list[dict[str, Any]]:
    """Citations stored for audit: model citations when well formed, evidence otherwise."""
    by_doc_id = {item.doc_id: _evidence_citation(item) for item in evidence}
    if citations and all(_is_structured_citation(citation) for citation in citations):
        return [{**by_doc_id.get(citation["doc_id"], {}), **citation} for citation in citations]
    return [_evidence_citation(item) for item in evidence]


def _debug_payload(vector: VectorRetrieval | None, evidence: list[EvidenceItem]) -> dict[str, Any]:
    vector = vector or VectorRetrieval()
    return {
        "vector_enabled": vector.enabled,
        "vector_match_count": vector.match_count,
        "vector_fallback_used": vector.fallback_used,
        "vector_error": vector.error,
        "evidence_count": len(evidence),
        "unfiltered_matches": vector.unfiltered_matches,
        "vector_metadata": vector.vector_metadata,
    }


async def answer_job_question(
    session: AsyncSession,
    *,
    tenant_id: str,
    job_id: str,
    user_id: str | None,
    message: str,
    conversation_id: str | None,
    llm,
    embeddings,
    vector_index,
    settings: Settings,
    debug: bool = False,
) -> CopilotAnswer:
    if not await job_exists(session, tenant_id, job_id):
        raise JobNotFoundError(tenant_id, job_id)

    conversation = None
    if conversation_id:
        conversation = await conversations_repo.get_conversation(session, tenant_id, conversation_id)
        if conversation is not None and conversation.job_id != job_id:
            raise ValidationError("Conversation does not belong to this job")

    history: list[dict[str, str]] = []
    if conversation is not None:
        recent = await conversations_repo.list_recent_messages(
            session, tenant_id, conversation.id, settings.history_limit
        )
        history = [{"role": item.role, "content": item.content} for item in recent]

    state = await run_graph(
        session=session,
        llm=llm,
        embeddings=embeddings,
        vector_index=vector_index,
        settings=settings,
        state={
            "tenant_id": tenant_id,
            "job_id": job_id,
            "user_message": message,
            "history": history,
            "debug": debug,
        },
    )

    evidence: list[EvidenceItem] = state.get("evidence", [])
    answer = state.get("answer") or FALLBACK_ANSWER
    citations = state.get("citations", [])
    follow_ups = state.get("follow_ups", [])

    if conversation is None:
        conversation = await conversations_repo.create_conversation(
            session, tenant_id, job_id, user_id
        )
    await conversations_repo.add_message(
        session,
        conversation_id=conversation.id,
        tenant_id=tenant_id,
        job_id=job_id,
        user_id=user_id,
        role="user",
        content=message,
    )
    await conversations_repo.add_message(
        session,
        conversation_id=conversation.id,
        tenant_id=tenant_id,
        job_id=job_id,
        user_id=user_id,
        role="assistant",
        content=answer,
        model=state.get("model"),
        prompt_version=settings.prompt_version,
        metadata={
            "citations": normalize_citations(citations, evidence),
            "follow_ups": follow_ups,
            "evidence_doc_ids": [item.doc_id for item in evidence],
        },
    )
    await conversations_repo.touch_conversation(session, conversation.id)
    await session.commit()
    logger.info(
        "copilot_answered tenant_id=%s job_id=%s conversation_id=%s",
        tenant_id,
        job_id,
        conversation.id,
    )

    return CopilotAnswer(
        answer=answer,
        citations=citations,
        follow_ups=follow_ups,
        conversation_id=conversation.id,
        debug=_debug_payload(state.get("vector"), evidence) if debug else None,
    )


async def load_conversation(
    session: AsyncSession,
    *,
    tenant_id: str,
    job_id: str,
    user_id: str | None,
    conversation_id: str | None,
) -> dict[str, Any]:
    if conversation_id:
        conversation = await conversations_repo.get_conversation(session, tenant_id, conversation_id)
        if conversation is not None and conversation.job_id != job_id:
            conversation = None
    else:
        conversation = await conversations_repo.get_latest_conversation(
            session, tenant_id, job_id, user_id
        )
    if conversation is None:
        return {"conversation_id": None, "messages": []}
    messages = await conversations_repo.list_messages(session, tenant_id, conversation.id)
    return {
        "conversation_id": conversation.id,
        "messages": [conversations_repo.message_to_dict(message) for message in messages],
    }
