from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fieldcopilot.domain.models import Property
from fieldcopilot.persistence.db import SessionLocal
from fieldcopilot.tests.utils.seed import seed_job

TENANT = {"x-tenant-id": "t1"}


async def test_list_clients_with_first_property_address(client) -> None:
    seeded = await seed_job("t1")
    await seed_job("t2")
    async with SessionLocal() as session:
        session.add(
            Property(
                id="property-later",
                tenant_id="t1",
                client_id=seeded.client_id,
                address_line1="9 Later Lane",
                city="Salem",
                state="OR",
                zip="97301",
                created_at=datetime.now(timezone.utc) + timedelta(days=1),
            )
        )
        await session.commit()

    response = await client.get("/clients", headers=TENANT)
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    item = body["items"][0]
    assert item["id"] == seeded.client_id
    assert item["address_line1"] == "42 Harbor Way"
    assert item["city"] == "Portland"

    response = await client.get("/clients", headers=TENANT, params={"search": "HARBOR"})
    assert response.json()["total"] == 1
    response = await client.get("/clients", headers=TENANT, params={"search": "nobody"})
    assert response.json() == {"items": [], "total": 0}
    response = await client.get("/clients", headers=TENANT, params={"city": "portland", "state": "or"})
    assert response.json()["total"] == 1


async def test_get_client_with_properties(client) -> None:
    seeded = await seed_job("t1")
    response = await client.get(f"/clients/{seeded.client_id}", headers=TENANT)
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Harbor View Apartments"
    assert [prop["id"] for prop in body["properties"]] == [seeded.property_id]

    response = await client.get(f"/clients/{seeded.client_id}", headers={"x-tenant-id": "t2"})
    assert response.status_code == 404
    assert response.json() == {"error": "Client not found"}


async def test_technician_lifecycle(client) -> None:
    await seed_job("t1")
    response = await client.post(
        "/technicians",
        headers=TENANT,
        json={"email": "sam@t1.example.com", "firstName": "Sam", "lastName": "Ortiz", "role": "lead_tech"},
    )
    assert response.status_code == 201
    technician_id = response.json()["id"]

    response = await client.get(f"/technicians/{technician_id}", headers=TENANT)
    assert response.status_code == 200
    assert response.json()["role"] == "lead_tech"

    response = await client.get("/technicians", headers=TENANT, params={"role": "lead_tech"})
    body = response.json()
    assert body["total"] == 1
    assert body["technicians"][0]["email"] == "sam@t1.example.com"

    response = await client.get("/technicians", headers=TENANT, params={"search": "reyes"})
    assert response.json()["total"] == 1

    response = await client.get(f"/technicians/{technician_id}", headers={"x-tenant-id": "t2"})
    assert response.status_code == 404
    assert response.json() == {"error": "Technician not found"}


async def test_technician_validation(client) -> None:
    response = await client.post("/technicians", headers=TENANT, json={"email": "a@b.c", "first_name": "A"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing email, firstName, or lastName"}

    response = await client.post(
        "/technicians",
        headers=TENANT,
        json={"email": "a@b.c", "first_name": "A", "last_name": "B", "role": "owner"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid role"}

    payload = {"email": "dup@b.c", "first_name": "A", "last_name": "B"}
    assert (await client.post("/technicians", headers=TENANT, json=payload)).status_code == 201
    response = await client.post("/technicians", headers=TENANT, json=payload)
    assert response.status_code == 409
