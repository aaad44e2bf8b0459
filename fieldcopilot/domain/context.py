from __future__ import annotations

from pydantic import BaseModel


class AssignedUser(BaseModel):
    id: str
    first_name: str | None
    last_name: str | None


class JobInfo(BaseModel):
    id: str
    job_type: str
    scheduled_at: str | None
    status: str
    summary: str | None
    assigned_user: AssignedUser | None = None


class ClientInfo(BaseModel):
    id: str
    name: str
    type: str
    primary_phone: str | None
    email: str | None


class PropertyInfo(BaseModel):
    id: str
    address_line1: str
    address_line2: str | None
    city: str
    state: str
    zip: str
    access_notes: str | None


class EquipmentInfo(BaseModel):
    id: str
    type: str
    brand: str | None
    model: str | None
    serial: str | None
    installed_at: str | None
    warranty_expires_at: str | None


class RecentEvent(BaseModel):
    id: str
    event_type: str
    issue: str | None
    resolution: str | None
    equipment_id: str | None
    created_at: str


class JobSnapshot(BaseModel):
    # Structured context handed to the model alongside unstructured evidence.
    job: JobInfo
    client: ClientInfo
    property: PropertyInfo
    equipment: list[EquipmentInfo]
    recent_events: list[RecentEvent]
    generated_at: str
