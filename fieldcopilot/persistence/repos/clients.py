from __future__ import annotations

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.domain.models import Client, Property
from fieldcopilot.persistence.guards import tenant_predicate


async def create_client(
    session: AsyncSession,
    *,
    client_id: str,
    tenant_id: str,
    name: str,
    client_type: str,
    primary_phone: str | None,
    email: str | None,
) -> Client:
    client = Client(
        id=client_id,
        tenant_id=tenant_id,
        name=name,
        type=client_type,
        primary_phone=primary_phone,
        email=email,
    )
    session.add(client)
    return client


async def get_client(session: AsyncSession, tenant_id: str, client_id: str) -> Client | None:
    result = await session.execute(
        select(Client).where(tenant_predicate(Client, tenant_id), Client.id == client_id)
    )
    return result.scalar_one_or_none()


async def client_exists(session: AsyncSession, tenant_id: str, client_id: str) -> bool:
    result = await session.execute(
        select(Client.id).where(tenant_predicate(Client, tenant_id), Client.id == client_id).limit(1)
    )
    return result.scalar_one_or_none() is not None


def _first_property_column(column):
    # Oldest property stands in as the client's display address.
    return (
        select(column)
        .where(Property.client_id == Client.id, Property.tenant_id == Client.tenant_id)
        .order_by(Property.created_at, Property.id)
        .limit(1)
        .correlate(Client)
        .scalar_subquery()
    )


async def list_clients(
    session: AsyncSession,
    tenant_id: str,
    *,
    search: str | None = None,
    city: str | None = None,
    state: str | None = None,
) -> list[dict[str, Any]]:
    address_line1 = _first_property_column(Property.address_line1)
    city_col = _first_property_column(Property.city)
    state_col = _first_property_column(Property.state)
    zip_col = _first_property_column(Property.zip)
    stmt = select(
        Client,
        address_line1.label("address_line1"),
        city_col.label("city"),
        state_col.label("state"),
        zip_col.label("zip"),
    ).where(tenant_predicate(Client, tenant_id))
    if search:
        pattern = f"%{search.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Client.name).like(pattern),
                func.lower(func.coalesce(Client.email, "")).like(pattern),
                func.lower(func.coalesce(Client.primary_phone, "")).like(pattern),
            )
        )
    if city:
        stmt = stmt.where(func.lower(city_col) == city.lower())
    if state:
        stmt = stmt.where(func.lower(state_col) == state.lower())
    result = await session.execute(stmt.order_by(Client.name, Client.id))
    items: list[dict[str, Any]] = []
    for client, line1, client_city, client_state, client_zip in result.all():
        payload = client_to_dict(client)
        payload.update(
            {
                "address_line1": line1,
                "city": client_city,
                "state": client_state,
                "zip": client_zip,
            }
        )
        items.append(payload)
    return items


async def list_client_properties(
    session: AsyncSession, tenant_id: str, client_id: str
) -> list[Property]:
    result = await session.execute(
        select(Property)
        .where(tenant_predicate(Property, tenant_id), Property.client_id == client_id)
        .order_by(Property.created_at, Property.id)
    )
    return list(result.scalars().all())


def client_to_dict(client: Client) -> dict[str, Any]:
    return {
        "id": client.id,
        "name": client.name,
        "type": client.type,
        "primary_phone": client.primary_phone,
        "email": client.email,
        "created_at": client.created_at.isoformat() if client.created_at else None,
    }
