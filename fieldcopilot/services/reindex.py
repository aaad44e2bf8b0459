from __future__ import annotations

import logging

from fieldcopilot.core.errors import JobNotFoundError
from fieldcopilot.persistence.db import session_scope
from fieldcopilot.providers.embeddings.base import EmbeddingProvider
from fieldcopilot.providers.vector.base import VectorIndex
from fieldcopilot.services import search_index
from fieldcopilot.services.vector_retrieval import reindex_job_evidence


logger = logging.getLogger(__name__)

# Background reindex jobs run after the request session is gone, so each opens its own.


async def reindex_client_jobs(tenant_id: str, client_id: str) -> int:
    async with session_scope() as session:
        count = await search_index.reindex_jobs_by_client(session, tenant_id, client_id)
    logger.info("search_reindex_client tenant_id=%s client_id=%s jobs=%s", tenant_id, client_id, count)
    return count


async def reindex_property_jobs(tenant_id: str, property_id: str) -> int:
    async with session_scope() as session:
        count = await search_index.reindex_jobs_by_property(session, tenant_id, property_id)
    logger.info(
        "search_reindex_property tenant_id=%s property_id=%s jobs=%s", tenant_id, property_id, count
    )
    return count


async def reindex_job(tenant_id: str, job_id: str) -> None:
    async with session_scope() as session:
        await search_index.upsert_job_search_index(session, tenant_id, job_id)


async def reindex_note_job(
    tenant_id: str,
    job_id: str,
    *,
    embeddings: EmbeddingProvider | None,
    index: VectorIndex | None,
    limit: int,
) -> None:
    await reindex_job(tenant_id, job_id)
    if index is None or embeddings is None or not embeddings.configured:
        return
    async with session_scope() as session:
        try:
            await reindex_job_evidence(
                session,
                tenant_id=tenant_id,
                job_id=job_id,
                embeddings=embeddings,
                index=index,
                limit=limit,
            )
        except JobNotFoundError:
            logger.warning("vector_reindex_job_missing tenant_id=%s job_id=%s", tenant_id, job_id)
