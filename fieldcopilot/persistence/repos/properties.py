from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.domain.models import Property
from fieldcopilot.persistence.guards import tenant_predicate


async def create_property(
    session: AsyncSession,
    *,
    property_id: str,
    tenant_id: str,
    client_id: str,
    address_line1: str,
    address_line2: str | None,
    city: str,
    state: str,
    zip_code: str,
    access_notes: str | None,
) -> Property:
    prop = Property(
        id=property_id,
        tenant_id=tenant_id,
        client_id=client_id,
        address_line1=address_line1,
        address_line2=address_line2,
        city=city,
        state=state,
        zip=zip_code,
        access_notes=access_notes,
    )
    session.add(prop)
    return prop


async def get_property(
    session: AsyncSession, tenant_id: str, property_id: str
) -> Property | None:
    result = await session.execute(
        select(Property).where(tenant_predicate(Property, tenant_id), Property.id == property_id)
    )
    return result.scalar_one_or_none()


def property_to_dict(prop: Property) -> dict[str, Any]:
    return {
        "id": prop.id,
        "client_id": prop.client_id,
        "address_line1": prop.address_line1,
        "address_line2": prop.address_line2,
        "city": prop.city,
        "state": prop.state,
        "zip": prop.zip,
        "access_notes": prop.access_notes,
    }
