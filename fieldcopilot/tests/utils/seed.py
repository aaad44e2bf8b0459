from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from fieldcopilot.domain.models import (
    AccessIdentity,
    Client,
    Equipment,
    Job,
    JobEvent,
    Note,
    Property,
    User,
)
from fieldcopilot.persistence.db import SessionLocal


def utc(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@dataclass(frozen=True)
class SeededJob:
    tenant_id: str
    job_id: str
    client_id: str
    property_id: str
    user_id: str


async def seed_job(tenant_id: str = "t1", *, suffix: str = "1") -> SeededJob:
    # Provision one client/property/technician/job chain for a tenant.
    seeded = SeededJob(
        tenant_id=tenant_id,
        job_id=f"job-{tenant_id}-{suffix}",
        client_id=f"client-{tenant_id}-{suffix}",
        property_id=f"property-{tenant_id}-{suffix}",
        user_id=f"user-{tenant_id}-{suffix}",
    )
    async with SessionLocal() as session:
        session.add(
            User(
                id=seeded.user_id,
                tenant_id=tenant_id,
                first_name="Dana",
                last_name="Reyes",
                email=f"dana-{suffix}@{tenant_id}.example.com",
                role="technician",
            )
        )
        session.add(
            Client(
                id=seeded.client_id,
                tenant_id=tenant_id,
                name="Harbor View Apartments",
                type="commercial",
                primary_phone="555-0100",
                email="office@harborview.example.com",
            )
        )
        await session.flush()
        session.add(
            Property(
                id=seeded.property_id,
                tenant_id=tenant_id,
                client_id=seeded.client_id,
                address_line1="42 Harbor Way",
                city="Portland",
                state="OR",
                zip="97201",
                access_notes="Gate code 4411",
            )
        )
        await session.flush()
        session.add(
            Job(
                id=seeded.job_id,
                tenant_id=tenant_id,
                client_id=seeded.client_id,
                property_id=seeded.property_id,
                job_type="hvac_repair",
                status="scheduled",
                scheduled_at=utc(2024, 3, 10, 9),
                assigned_user_id=seeded.user_id,
                summary="Rooftop unit short-cycling",
            )
        )
        await session.commit()
    return seeded


async def add_equipment(
    seeded: SeededJob,
    equipment_id: str,
    *,
    equipment_type: str = "rooftop_unit",
    serial: str | None = None,
    installed_at: datetime | None = None,
) -> None:
    async with SessionLocal() as session:
        session.add(
            Equipment(
                id=equipment_id,
                tenant_id=seeded.tenant_id,
                property_id=seeded.property_id,
                type=equipment_type,
                brand="Carrier",
                model="48FC",
                serial=serial,
                installed_at=installed_at,
            )
        )
        await session.commit()


async def add_note(
    tenant_id: str,
    note_id: str,
    *,
    entity_type: str,
    entity_id: str,
    content: str,
    created_at: datetime,
    author_user_id: str | None = None,
) -> None:
    async with SessionLocal() as session:
        session.add(
            Note(
                id=note_id,
                tenant_id=tenant_id,
                entity_type=entity_type,
                entity_id=entity_id,
                note_type="tech",
                content=content,
                author_user_id=author_user_id,
                created_at=created_at,
            )
        )
        await session.commit()


async def add_event(
    seeded: SeededJob,
    event_id: str,
    *,
    event_type: str,
    created_at: datetime,
    issue: str | None = None,
    resolution: str | None = None,
    parts_used: list | None = None,
) -> None:
    async with SessionLocal() as session:
        session.add(
            JobEvent(
                id=event_id,
                tenant_id=seeded.tenant_id,
                job_id=seeded.job_id,
                property_id=seeded.property_id,
                client_id=seeded.client_id,
                event_type=event_type,
                issue=issue,
                resolution=resolution,
                parts_used_json=parts_used,
                created_at=created_at,
            )
        )
        await session.commit()


async def map_access_identity(user_id: str, *, issuer: str, subject: str) -> None:
    async with SessionLocal() as session:
        session.add(
            AccessIdentity(
                id=f"identity-{subject}",
                user_id=user_id,
                issuer=issuer,
                subject=subject,
            )
        )
        await session.commit()
