from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.core.errors import ConflictError, NotFoundError, ValidationError
from fieldcopilot.domain.models import NOTE_ENTITY_TYPES
from fieldcopilot.persistence.repos import clients as clients_repo
from fieldcopilot.persistence.repos import jobs as jobs_repo
from fieldcopilot.persistence.repos import notes as notes_repo
from fieldcopilot.persistence.repos import properties as properties_repo
from fieldcopilot.persistence.repos import technicians as technicians_repo
from fieldcopilot.providers.embeddings.base import EmbeddingProvider
from fieldcopilot.providers.vector.base import VectorIndex
from fieldcopilot.services import reindex
from fieldcopilot.services.background import TaskRunner


logger = logging.getLogger(__name__)


class _IngestPayload(BaseModel):
    # Mobile clients send camelCase; scripts may send snake_case.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        # Non-string and blank values count as absent.
        if not isinstance(value, str):
            return None
        value = value.strip()
        return value or None

    def require(self, field: str) -> str:
        value = getattr(self, field)
        if not value:
            raise ValidationError(f"Missing {to_camel(field)}")
        return value


class ClientPayload(_IngestPayload):
    name: str | None = None
    type: str | None = None
    primary_phone: str | None = None
    email: str | None = None


class PropertyPayload(_IngestPayload):
    client_id: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    access_notes: str | None = None


class JobPayload(_IngestPayload):
    job_type: str | None = None
    client_id: str | None = None
    property_id: str | None = None
    status: str | None = None
    scheduled_at: str | None = None
    assigned_user_id: str | None = None
    summary: str | None = None


class NotePayload(_IngestPayload):
    entity_type: str | None = None
    entity_id: str | None = None
    content: str | None = None
    job_id: str | None = None
    note_type: str | None = None


@dataclass(frozen=True)
class NoteIngestResult:
    id: str
    idempotent: bool = False


def _parse_timestamp(value: str | None, field: str) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(f"Invalid {to_camel(field)}") from exc


async def _commit(session: AsyncSession, entity: str) -> None:
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        logger.info("ingest_conflict entity=%s", entity)
        raise ConflictError(f"{entity} already exists") from exc


async def ingest_client(
    session: AsyncSession, tenant_id: str, payload: ClientPayload, runner: TaskRunner
) -> str:
    name = payload.require("name")
    client_id = payload.id or str(uuid4())
    await clients_repo.create_client(
        session,
        client_id=client_id,
        tenant_id=tenant_id,
        name=name,
        client_type=payload.type or "residential",
        primary_phone=payload.primary_phone,
        email=payload.email,
    )
    await _commit(session, "Client")
    # No-op for a brand-new client; issued so replays and updates converge.
    await runner.submit(
        f"reindex_client:{client_id}",
        lambda: reindex.reindex_client_jobs(tenant_id, client_id),
    )
    return client_id


async def ingest_property(
    session: AsyncSession, tenant_id: str, payload: PropertyPayload, runner: TaskRunner
) -> str:
    client_id = payload.require("client_id")
    address_line1 = payload.require("address_line1")
    city = payload.require("city")
    state = payload.require("state")
    zip_code = payload.require("zip")
    if not await clients_repo.client_exists(session, tenant_id, client_id):
        raise NotFoundError("Client not found")

    property_id = payload.id or str(uuid4())
    await properties_repo.create_property(
        session,
        property_id=property_id,
        tenant_id=tenant_id,
        client_id=client_id,
        address_line1=address_line1,
        address_line2=payload.address_line2,
        city=city,
        state=state,
        zip_code=zip_code,
        access_notes=payload.access_notes,
    )
    await _commit(session, "Property")
    await runner.submit(
        f"reindex_property:{property_id}",
        lambda: reindex.reindex_property_jobs(tenant_id, property_id),
    )
    return property_id


async def ingest_job(
    session: AsyncSession, tenant_id: str, payload: JobPayload, runner: TaskRunner
) -> str:
    job_type = payload.require("job_type")
    client_id = payload.require("client_id")
    property_id = payload.require("property_id")
    scheduled_at = _parse_timestamp(payload.scheduled_at, "scheduled_at")
    if not await clients_repo.client_exists(session, tenant_id, client_id):
        raise NotFoundError("Client not found")
    prop = await properties_repo.get_property(session, tenant_id, property_id)
    if prop is None:
        raise NotFoundError("Property not found")
    if prop.client_id != client_id:
        raise ValidationError("Property does not belong to client")
    if payload.assigned_user_id is not None and (
        await technicians_repo.get_technician(session, tenant_id, payload.assigned_user_id) is None
    ):
        raise NotFoundError("Assigned user not found")

    job_id = payload.id or str(uuid4())
    await jobs_repo.create_job(
        session,
        job_id=job_id,
        tenant_id=tenant_id,
        client_id=client_id,
        property_id=property_id,
        job_type=job_type,
        status=payload.status or "scheduled",
        scheduled_at=scheduled_at,
        assigned_user_id=payload.assigned_user_id,
        summary=payload.summary,
    )
    await _commit(session, "Job")
    await runner.submit(f"reindex_job:{job_id}", lambda: reindex.reindex_job(tenant_id, job_id))
    return job_id


async def ingest_note(
    session: AsyncSession,
    tenant_id: str,
    payload: NotePayload,
    runner: TaskRunner,
    *,
    author_user_id: str | None,
    idempotency_key: str | None,
    embeddings: EmbeddingProvider | None,
    index: VectorIndex | None,
    vector_reindex_limit: int,
) -> NoteIngestResult:
    entity_type = payload.require("entity_type")
    entity_id = payload.require("entity_id")
    content = payload.require("content")
    job_id = payload.require("job_id")
    if entity_type not in NOTE_ENTITY_TYPES:
        raise ValidationError("Invalid entityType")
    if not await jobs_repo.job_exists(session, tenant_id, job_id):
        raise NotFoundError("Job not found")

    idempotency_key = (idempotency_key or "").strip() or None
    note_id = payload.id or str(uuid4())
    try:
        inserted = await notes_repo.insert_note(
            session,
            note_id=note_id,
            tenant_id=tenant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            note_type=payload.note_type or "tech",
            content=content,
            author_user_id=author_user_id,
            idempotency_key=idempotency_key,
        )
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("Note already exists") from exc

    if not inserted:
        await session.rollback()
        existing = await notes_repo.get_note_by_idempotency_key(
            session, tenant_id, idempotency_key or ""
        )
        if existing is not None:
            logger.info("note_idempotent_replay tenant_id=%s note_id=%s", tenant_id, existing.id)
            return NoteIngestResult(id=existing.id, idempotent=True)
        raise ConflictError("Idempotency key already used")

    await _commit(session, "Note")
    await runner.submit(
        f"reindex_note:{note_id}",
        lambda: reindex.reindex_note_job(
            tenant_id,
            job_id,
            embeddings=embeddings,
            index=index,
            limit=vector_reindex_limit,
        ),
    )
    return NoteIngestResult(id=note_id)
