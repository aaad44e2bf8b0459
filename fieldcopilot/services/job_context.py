from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.core.errors import JobNotFoundError
from fieldcopilot.domain.context import (
    AssignedUser,
    ClientInfo,
    EquipmentInfo,
    JobInfo,
    JobSnapshot,
    PropertyInfo,
    RecentEvent,
)
from fieldcopilot.persistence.repos.jobs import (
    list_equipment_for_property,
    list_job_events,
    load_job_context,
)


RECENT_EVENT_LIMIT = 3


def iso_utc(value: datetime | None) -> str | None:
    if value is None:
        return None
    # SQLite hands back naive datetimes; treat them as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


async def get_job_snapshot(session: AsyncSession, tenant_id: str, job_id: str) -> JobSnapshot:
    loaded = await load_job_context(session, tenant_id, job_id)
    if loaded is None:
        raise JobNotFoundError(tenant_id, job_id)
    job, client, prop, user = loaded

    equipment = await list_equipment_for_property(session, tenant_id, prop.id)
    events = await list_job_events(session, tenant_id, job.id, limit=RECENT_EVENT_LIMIT)

    assigned = None
    if user is not None:
        assigned = AssignedUser(id=user.id, first_name=user.first_name, last_name=user.last_name)

    return JobSnapshot(
        job=JobInfo(
            id=job.id,
            job_type=job.job_type,
            scheduled_at=iso_utc(job.scheduled_at),
            status=job.status,
            summary=job.summary,
            assigned_user=assigned,
        ),
        client=ClientInfo(
            id=client.id,
            name=client.name,
            type=client.type,
            primary_phone=client.primary_phone,
            email=client.email,
        ),
        property=PropertyInfo(
            id=prop.id,
            address_line1=prop.address_line1,
            address_line2=prop.address_line2,
            city=prop.city,
            state=prop.state,
            zip=prop.zip,
            access_notes=prop.access_notes,
        ),
        equipment=[
            EquipmentInfo(
                id=item.id,
                type=item.type,
                brand=item.brand,
                model=item.model,
                serial=item.serial,
                installed_at=iso_utc(item.installed_at),
                warranty_expires_at=iso_utc(item.warranty_expires_at),
            )
            for item in equipment
        ],
        recent_events=[
            RecentEvent(
                id=event.id,
                event_type=event.event_type,
                issue=event.issue,
                resolution=event.resolution,
                equipment_id=event.equipment_id,
                created_at=iso_utc(event.created_at) or "",
            )
            for event in events
        ],
        generated_at=datetime.now(timezone.utc).isoformat(),
    )
