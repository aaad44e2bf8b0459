from __future__ import annotations

from sqlalchemy import and_, insert, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.domain.models import Note
from fieldcopilot.persistence.guards import tenant_predicate


def _conflict_insert(session: AsyncSession):
    # ON CONFLICT DO NOTHING is dialect specific; tests run on SQLite.
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite_insert(Note)
    return pg_insert(Note)


async def insert_note(
    session: AsyncSession,
    *,
    note_id: str,
    tenant_id: str,
    entity_type: str,
    entity_id: str,
    note_type: str,
    content: str,
    author_user_id: str | None,
    idempotency_key: str | None,
) -> bool:
    """Insert a note; returns False when the idempotency key already exists."""
    values = {
        "id": note_id,
        "tenant_id": tenant_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "note_type": note_type,
        "content": content,
        "author_user_id": author_user_id,
        "idempotency_key": idempotency_key,
    }
    if idempotency_key is None:
        await session.execute(insert(Note).values(**values))
        return True
    # No conflict target: a duplicate primary key is reported the same way and
    # resolved by the caller through the key lookup.
    result = await session.execute(
        _conflict_insert(session).values(**values).on_conflict_do_nothing()
    )
    return bool(result.rowcount)


async def get_note_by_idempotency_key(
    session: AsyncSession, tenant_id: str, idempotency_key: str
) -> Note | None:
    result = await session.execute(
        select(Note).where(
            tenant_predicate(Note, tenant_id), Note.idempotency_key == idempotency_key
        )
    )
    return result.scalar_one_or_none()


async def list_scoped_notes(
    session: AsyncSession,
    tenant_id: str,
    *,
    job_id: str,
    client_id: str,
    property_id: str,
    limit: int | None = None,
) -> list[Note]:
    # One query across the three scopes so a note is never returned twice.
    stmt = (
        select(Note)
        .where(
            tenant_predicate(Note, tenant_id),
            or_(
                and_(Note.entity_type == "job", Note.entity_id == job_id),
                and_(Note.entity_type == "client", Note.entity_id == client_id),
                and_(Note.entity_type == "property", Note.entity_id == property_id),
            ),
        )
        .order_by(Note.created_at.desc(), Note.id)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
