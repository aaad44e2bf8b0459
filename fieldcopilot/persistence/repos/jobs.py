from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.domain.models import Client, Equipment, Job, JobEvent, Property, User
from fieldcopilot.persistence.guards import tenant_predicate


async def create_job(
    session: AsyncSession,
    *,
    job_id: str,
    tenant_id: str,
    client_id: str,
    property_id: str,
    job_type: str,
    status: str,
    scheduled_at: datetime | None,
    assigned_user_id: str | None,
    summary: str | None,
) -> Job:
    job = Job(
        id=job_id,
        tenant_id=tenant_id,
        client_id=client_id,
        property_id=property_id,
        job_type=job_type,
        status=status,
        scheduled_at=scheduled_at,
        assigned_user_id=assigned_user_id,
        summary=summary,
    )
    session.add(job)
    return job


async def get_job(session: AsyncSession, tenant_id: str, job_id: str) -> Job | None:
    # Return None for tenant mismatch to keep 404 semantics.
    result = await session.execute(
        select(Job).where(tenant_predicate(Job, tenant_id), Job.id == job_id)
    )
    return result.scalar_one_or_none()


async def job_exists(session: AsyncSession, tenant_id: str, job_id: str) -> bool:
    result = await session.execute(
        select(Job.id).where(tenant_predicate(Job, tenant_id), Job.id == job_id).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def list_job_ids(
    session: AsyncSession,
    tenant_id: str,
    *,
    client_id: str | None = None,
    property_id: str | None = None,
) -> list[str]:
    stmt = select(Job.id).where(tenant_predicate(Job, tenant_id))
    if client_id is not None:
        stmt = stmt.where(Job.client_id == client_id)
    if property_id is not None:
        stmt = stmt.where(Job.property_id == property_id)
    result = await session.execute(stmt.order_by(Job.id))
    return list(result.scalars().all())


async def load_job_context(
    session: AsyncSession, tenant_id: str, job_id: str
) -> tuple[Job, Client, Property, User | None] | None:
    # Single tenant-scoped join; client/property must share the job's tenant.
    stmt = (
        select(Job, Client, Property, User)
        .join(Client, (Client.id == Job.client_id) & (Client.tenant_id == Job.tenant_id))
        .join(Property, (Property.id == Job.property_id) & (Property.tenant_id == Job.tenant_id))
        .outerjoin(
            User, (User.id == Job.assigned_user_id) & (User.tenant_id == Job.tenant_id)
        )
        .where(tenant_predicate(Job, tenant_id), Job.id == job_id)
        .limit(1)
    )
    result = await session.execute(stmt)
    row = result.first()
    if row is None:
        return None
    return row[0], row[1], row[2], row[3]


async def list_equipment_for_property(
    session: AsyncSession, tenant_id: str, property_id: str
) -> list[Equipment]:
    result = await session.execute(
        select(Equipment)
        .where(tenant_predicate(Equipment, tenant_id), Equipment.property_id == property_id)
        .order_by(Equipment.installed_at.desc(), Equipment.id)
    )
    return list(result.scalars().all())


async def list_job_events(
    session: AsyncSession, tenant_id: str, job_id: str, limit: int | None = None
) -> list[JobEvent]:
    stmt = (
        select(JobEvent)
        .where(tenant_predicate(JobEvent, tenant_id), JobEvent.job_id == job_id)
        .order_by(JobEvent.created_at.desc(), JobEvent.id)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
