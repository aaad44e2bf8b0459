from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.domain.evidence import EvidenceItem
from fieldcopilot.persistence.repos.jobs import get_job, list_job_events
from fieldcopilot.persistence.repos.notes import list_scoped_notes
from fieldcopilot.services.job_context import iso_utc


def event_snippet(event_type: str | None, issue: str | None, resolution: str | None) -> str:
    return " - ".join(part for part in (event_type, issue, resolution) if part)


def _sort_key(item: EvidenceItem) -> str:
    # ISO-8601 UTC strings sort chronologically; undated items sink to the end.
    return item.date or ""


async def get_job_evidence(
    session: AsyncSession, tenant_id: str, job_id: str, limit: int
) -> list[EvidenceItem]:
    """Collect notes in job, client, and property scope plus job events, newest first."""
    job = await get_job(session, tenant_id, job_id)
    if job is None:
        return []

    items: list[EvidenceItem] = []
    notes = await list_scoped_notes(
        session,
        tenant_id,
        job_id=job.id,
        client_id=job.client_id,
        property_id=job.property_id,
        limit=limit,
    )
    for note in notes:
        items.append(
            EvidenceItem(
                doc_id=note.id,
                type="note",
                date=iso_utc(note.created_at),
                snippet=note.content,
                author=note.author_user_id,
                scope=note.entity_type,
            )
        )

    events = await list_job_events(session, tenant_id, job.id, limit=limit)
    for event in events:
        items.append(
            EvidenceItem(
                doc_id=event.id,
                type="job_event",
                date=iso_utc(event.created_at),
                snippet=event_snippet(event.event_type, event.issue, event.resolution),
                scope="job",
            )
        )

    # Stable sort: on equal timestamps notes stay ahead of events.
    ordered = sorted(items, key=_sort_key, reverse=True)
    return ordered[: max(0, limit)]
