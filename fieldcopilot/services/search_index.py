from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.domain.models import Client, Equipment, Job, JobSearchIndexEntry, Property, User
from fieldcopilot.persistence.guards import tenant_predicate
from fieldcopilot.persistence.repos.jobs import list_job_events, list_job_ids
from fieldcopilot.persistence.repos.notes import list_scoped_notes
from fieldcopilot.services.job_context import iso_utc


logger = logging.getLogger(__name__)

# Postgres text search configuration; "simple" avoids stemming part numbers and serials.
TS_CONFIG = "simple"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_content(value: str) -> str:
    return _WHITESPACE.sub(" ", value.lower()).strip()


def _combine(parts: Iterable[str | None]) -> str:
    return normalize_content(" ".join(part for part in parts if part and part.strip()))


def build_search_query(raw: str) -> str | None:
    """Translate free text into a prefix-matching AND tsquery, or None when empty."""
    tokens = [token for token in _NON_ALNUM.sub(" ", raw.lower()).split() if token]
    if not tokens:
        return None
    return " & ".join(f"{token}:*" for token in tokens)


def _search_document():
    return func.to_tsvector(TS_CONFIG, JobSearchIndexEntry.content)


async def build_job_search_content(
    session: AsyncSession, tenant_id: str, job_id: str
) -> str | None:
    # Outer joins so a job with dangling references still gets indexed.
    stmt = (
        select(Job, Client, Property, User)
        .outerjoin(Client, and_(Client.id == Job.client_id, Client.tenant_id == Job.tenant_id))
        .outerjoin(
            Property, and_(Property.id == Job.property_id, Property.tenant_id == Job.tenant_id)
        )
        .outerjoin(
            User, and_(User.id == Job.assigned_user_id, User.tenant_id == Job.tenant_id)
        )
        .where(tenant_predicate(Job, tenant_id), Job.id == job_id)
        .limit(1)
    )
    row = (await session.execute(stmt)).first()
    if row is None:
        return None
    job, client, prop, user = row[0], row[1], row[2], row[3]

    equipment_rows = await session.execute(
        select(Equipment).where(
            tenant_predicate(Equipment, tenant_id), Equipment.property_id == job.property_id
        )
    )
    equipment_text = " ".join(
        " ".join(part for part in (item.type, item.brand, item.model, item.serial) if part)
        for item in equipment_rows.scalars().all()
    )
    notes = await list_scoped_notes(
        session,
        tenant_id,
        job_id=job.id,
        client_id=job.client_id,
        property_id=job.property_id,
    )
    notes_text = " ".join(note.content for note in notes)
    events = await list_job_events(session, tenant_id, job.id)
    events_text = " ".join(
        " ".join(
            part
            for part in (
                event.event_type,
                event.issue,
                event.resolution,
                json.dumps(event.parts_used_json) if event.parts_used_json else None,
            )
            if part
        )
        for event in events
    )

    assigned_name = None
    if user is not None:
        assigned_name = " ".join(part for part in (user.first_name, user.last_name) if part) or None

    content = _combine(
        [
            job.job_type,
            job.status,
            job.summary,
            iso_utc(job.scheduled_at),
            iso_utc(job.created_at),
            iso_utc(job.updated_at),
            assigned_name,
            user.email if user else None,
            client.name if client else None,
            client.primary_phone if client else None,
            client.email if client else None,
            prop.address_line1 if prop else None,
            prop.address_line2 if prop else None,
            prop.city if prop else None,
            prop.state if prop else None,
            prop.zip if prop else None,
            prop.access_notes if prop else None,
            equipment_text,
            notes_text,
            events_text,
        ]
    )
    return content or None


async def upsert_job_search_index(session: AsyncSession, tenant_id: str, job_id: str) -> None:
    # Delete-then-insert keeps repeated calls idempotent.
    content = await build_job_search_content(session, tenant_id, job_id)
    await session.execute(
        delete(JobSearchIndexEntry).where(
            tenant_predicate(JobSearchIndexEntry, tenant_id),
            JobSearchIndexEntry.job_id == job_id,
        )
    )
    if content:
        session.add(
            JobSearchIndexEntry(
                tenant_id=tenant_id,
                job_id=job_id,
                content=content,
                updated_at=datetime.now(timezone.utc),
            )
        )
    await session.flush()


async def get_job_search_content(
    session: AsyncSession, tenant_id: str, job_id: str
) -> str | None:
    result = await session.execute(
        select(JobSearchIndexEntry.content).where(
            tenant_predicate(JobSearchIndexEntry, tenant_id),
            JobSearchIndexEntry.job_id == job_id,
        )
    )
    return result.scalar_one_or_none()


async def search_job_ids(session: AsyncSession, tenant_id: str, raw_query: str) -> list[str]:
    query = build_search_query(raw_query or "")
    if query is None:
        return []
    ts_query = func.to_tsquery(TS_CONFIG, query)
    document = _search_document()
    stmt = (
        select(JobSearchIndexEntry.job_id)
        .where(
            tenant_predicate(JobSearchIndexEntry, tenant_id),
            document.op("@@")(ts_query),
        )
        .order_by(func.ts_rank_cd(document, ts_query).desc(), JobSearchIndexEntry.job_id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _reindex(session: AsyncSession, tenant_id: str, job_ids: list[str]) -> int:
    for job_id in job_ids:
        await upsert_job_search_index(session, tenant_id, job_id)
    return len(job_ids)


async def reindex_jobs_by_client(session: AsyncSession, tenant_id: str, client_id: str) -> int:
    job_ids = await list_job_ids(session, tenant_id, client_id=client_id)
    return await _reindex(session, tenant_id, job_ids)


async def reindex_jobs_by_property(
    session: AsyncSession, tenant_id: str, property_id: str
) -> int:
    job_ids = await list_job_ids(session, tenant_id, property_id=property_id)
    return await _reindex(session, tenant_id, job_ids)


async def reindex_jobs_for_tenant(session: AsyncSession, tenant_id: str) -> int:
    job_ids = await list_job_ids(session, tenant_id)
    count = await _reindex(session, tenant_id, job_ids)
    logger.info("search_reindex_complete tenant_id=%s jobs=%s", tenant_id, count)
    return count