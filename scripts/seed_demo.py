from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timedelta, timezone

from fieldcopilot.domain.models import Equipment, JobEvent, Note, Tenant, User
from fieldcopilot.persistence.db import dispose_engine, session_scope
from fieldcopilot.persistence.repos.clients import create_client, get_client
from fieldcopilot.persistence.repos.jobs import create_job
from fieldcopilot.persistence.repos.properties import create_property
from fieldcopilot.services.search_index import reindex_jobs_for_tenant


DEMO_TENANT_ID = "t1"
DEMO_CLIENT_ID = "client-demo-1"
DEMO_PROPERTY_ID = "property-demo-1"
DEMO_JOB_ID = "job-demo-1"
DEMO_TECH_ID = "user-demo-tech"


async def seed_demo() -> int:
    # Use the shared session factory so env config matches the API container.
    async with session_scope() as session:
        if await get_client(session, DEMO_TENANT_ID, DEMO_CLIENT_ID) is not None:
            print("Demo tenant already seeded; skipping.")
            return 0

        now = datetime.now(timezone.utc)
        session.add(Tenant(id=DEMO_TENANT_ID, name="Demo Services", copilot_enabled=True))
        session.add(
            User(
                id=DEMO_TECH_ID,
                tenant_id=DEMO_TENANT_ID,
                first_name="Dana",
                last_name="Reyes",
                email="dana@example.com",
                role="technician",
            )
        )
        await create_client(
            session,
            client_id=DEMO_CLIENT_ID,
            tenant_id=DEMO_TENANT_ID,
            name="Harbor View Apartments",
            client_type="commercial",
            primary_phone="555-0100",
            email="office@harborview.example.com",
        )
        await create_property(
            session,
            property_id=DEMO_PROPERTY_ID,
            tenant_id=DEMO_TENANT_ID,
            client_id=DEMO_CLIENT_ID,
            address_line1="42 Harbor Way",
            address_line2=None,
            city="Portland",
            state="OR",
            zip_code="97201",
            access_notes="Gate code 4411; roof hatch key at front desk.",
        )
        session.add(
            Equipment(
                id="equipment-demo-1",
                tenant_id=DEMO_TENANT_ID,
                property_id=DEMO_PROPERTY_ID,
                type="rooftop_unit",
                brand="Carrier",
                model="48FC",
                serial="RTU-2291",
                installed_at=now - timedelta(days=365 * 6),
            )
        )
        await create_job(
            session,
            job_id=DEMO_JOB_ID,
            tenant_id=DEMO_TENANT_ID,
            client_id=DEMO_CLIENT_ID,
            property_id=DEMO_PROPERTY_ID,
            job_type="hvac_repair",
            status="scheduled",
            scheduled_at=now + timedelta(days=1),
            assigned_user_id=DEMO_TECH_ID,
            summary="Rooftop unit short-cycling on hot afternoons.",
        )
        await session.flush()
        session.add_all(
            [
                JobEvent(
                    id="event-demo-1",
                    tenant_id=DEMO_TENANT_ID,
                    job_id=DEMO_JOB_ID,
                    property_id=DEMO_PROPERTY_ID,
                    client_id=DEMO_CLIENT_ID,
                    equipment_id="equipment-demo-1",
                    event_type="diagnosis",
                    issue="Compressor tripping on high head pressure",
                    resolution="Cleaned condenser coil",
                    parts_used_json=[{"part": "coil cleaner", "qty": 1}],
                    created_at=now - timedelta(days=30),
                ),
                Note(
                    id="note-demo-1",
                    tenant_id=DEMO_TENANT_ID,
                    entity_type="property",
                    entity_id=DEMO_PROPERTY_ID,
                    note_type="tech",
                    content="Condenser fan motor bearings noisy; replacement recommended.",
                    author_user_id=DEMO_TECH_ID,
                    created_at=now - timedelta(days=29),
                ),
                Note(
                    id="note-demo-2",
                    tenant_id=DEMO_TENANT_ID,
                    entity_type="client",
                    entity_id=DEMO_CLIENT_ID,
                    note_type="office",
                    content="Property manager prefers morning visits before 10am.",
                    created_at=now - timedelta(days=90),
                ),
            ]
        )
        await session.flush()
        jobs = await reindex_jobs_for_tenant(session, DEMO_TENANT_ID)
        print(f"Seeded demo tenant {DEMO_TENANT_ID} with {jobs} indexed job(s).")
        return 0


async def _run() -> int:
    try:
        return await seed_demo()
    finally:
        await dispose_engine()


def main() -> int:
    # Surface clear failures and exit non-zero so CI/dev scripts can detect issues.
    try:
        return asyncio.run(_run())
    except Exception as exc:  # noqa: BLE001 - surface any setup or DB errors
        print(f"seed_demo failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
