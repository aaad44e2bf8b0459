from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.core.errors import JobNotFoundError
from fieldcopilot.domain.evidence import EvidenceItem, VectorMatch, VectorRecord, VectorRetrieval
from fieldcopilot.persistence.repos.jobs import get_job, list_job_events
from fieldcopilot.persistence.repos.notes import list_scoped_notes
from fieldcopilot.providers.embeddings.base import EmbeddingProvider
from fieldcopilot.providers.vector.base import VectorIndex
from fieldcopilot.services.job_context import iso_utc
from fieldcopilot.services.job_evidence import event_snippet


logger = logging.getLogger(__name__)


def _belongs_to(match: VectorMatch, tenant_id: str, job_id: str) -> bool:
    metadata = match.metadata or {}
    return metadata.get("tenant_id") == tenant_id and metadata.get("job_id") == job_id


def match_to_evidence(match: VectorMatch) -> EvidenceItem:
    metadata = match.metadata or {}
    created_at = metadata.get("created_at")
    return EvidenceItem(
        doc_id=str(metadata.get("doc_id") or match.id),
        type=str(metadata.get("type") or "vector"),
        date=str(created_at) if created_at else None,
        snippet=str(metadata.get("text") or ""),
        scope="vector",
        score=match.score,
    )


def _match_summary(match: VectorMatch) -> dict[str, Any]:
    return {"id": match.id, "score": match.score, "metadata": match.metadata}


async def retrieve_vector_evidence(
    *,
    tenant_id: str,
    job_id: str,
    query: str,
    embeddings: EmbeddingProvider | None,
    index: VectorIndex | None,
    top_k: int,
    fallback_top_k: int,
    debug: bool = False,
    debug_top_k: int = 3,
) -> VectorRetrieval:
    """Nearest-neighbour evidence for one job, degrading to empty on any backend failure."""
    outcome = VectorRetrieval()
    if index is None or embeddings is None or not embeddings.configured:
        return outcome
    outcome.enabled = True

    try:
        vector = await embeddings.embed(query)
        scoped = await index.query(vector, top_k, {"tenant_id": tenant_id, "job_id": job_id})
        # Indexes can ignore unknown filter keys; only trust metadata that matches.
        matches = [match for match in scoped if _belongs_to(match, tenant_id, job_id)]
        if not matches:
            candidates = await index.query(vector, fallback_top_k, None)
            matches = [match for match in candidates if _belongs_to(match, tenant_id, job_id)]
            outcome.fallback_used = True
            logger.warning(
                "vector_fallback_used tenant_id=%s job_id=%s candidates=%s accepted=%s",
                tenant_id,
                job_id,
                len(candidates),
                len(matches),
            )
        outcome.match_count = len(matches)
        outcome.evidence = [match_to_evidence(match) for match in matches]
    except Exception as exc:  # noqa: BLE001 - vector evidence is optional
        logger.warning(
            "vector_retrieval_failed tenant_id=%s job_id=%s error=%s",
            tenant_id,
            job_id,
            type(exc).__name__,
        )
        outcome.error = str(exc)
        outcome.evidence = []
        outcome.match_count = 0
        return outcome

    if debug:
        await _collect_diagnostics(outcome, index, vector, debug_top_k)
    return outcome


async def _collect_diagnostics(
    outcome: VectorRetrieval, index: VectorIndex, vector: list[float], top_k: int
) -> None:
    # Diagnostics only; failures here leave the answer evidence untouched.
    try:
        unfiltered = await index.query(vector, top_k, None)
        outcome.unfiltered_matches = [_match_summary(match) for match in unfiltered]
        getter = getattr(index, "get", None)
        if getter is not None and unfiltered:
            outcome.vector_metadata = await getter([match.id for match in unfiltered])
    except Exception as exc:  # noqa: BLE001 - diagnostics are best effort
        logger.warning("vector_diagnostics_failed error=%s", type(exc).__name__)
        outcome.error = str(exc)


async def reindex_job_evidence(
    session: AsyncSession,
    *,
    tenant_id: str,
    job_id: str,
    embeddings: EmbeddingProvider,
    index: VectorIndex,
    limit: int,
) -> dict[str, int]:
    job = await get_job(session, tenant_id, job_id)
    if job is None:
        raise JobNotFoundError(tenant_id, job_id)

    base_metadata = {
        "tenant_id": tenant_id,
        "job_id": job.id,
        "property_id": job.property_id,
        "client_id": job.client_id,
    }
    sources: list[tuple[str, str, str, str | None]] = []
    for event in await list_job_events(session, tenant_id, job.id, limit=limit):
        text = event_snippet(event.event_type, event.issue, event.resolution)
        sources.append(("job_event", event.id, text, iso_utc(event.created_at)))
    notes = await list_scoped_notes(
        session,
        tenant_id,
        job_id=job.id,
        client_id=job.client_id,
        property_id=job.property_id,
        limit=limit,
    )
    for note in notes:
        sources.append(("note", note.id, note.content, iso_utc(note.created_at)))

    records: list[VectorRecord] = []
    for doc_type, doc_id, text, created_at in sources:
        if not text.strip():
            continue
        values = await embeddings.embed(text)
        records.append(
            VectorRecord(
                id=f"{doc_type}_{doc_id}",
                values=values,
                metadata={
                    **base_metadata,
                    "type": doc_type,
                    "doc_id": doc_id,
                    "created_at": created_at,
                    "text": text,
                },
            )
        )

    indexed = await index.upsert(records)
    logger.info("vector_reindex_complete tenant_id=%s job_id=%s indexed=%s", tenant_id, job_id, indexed)
    return {"indexed": indexed}
