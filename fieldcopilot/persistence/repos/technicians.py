from __future__ import annotations

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.domain.models import User
from fieldcopilot.persistence.guards import tenant_predicate


async def list_technicians(
    session: AsyncSession,
    tenant_id: str,
    *,
    search: str | None = None,
    role: str | None = None,
) -> list[User]:
    stmt = select(User).where(tenant_predicate(User, tenant_id))
    if search:
        pattern = f"%{search.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(func.coalesce(User.first_name, "")).like(pattern),
                func.lower(func.coalesce(User.last_name, "")).like(pattern),
                func.lower(User.email).like(pattern),
            )
        )
    if role:
        stmt = stmt.where(User.role == role)
    result = await session.execute(stmt.order_by(User.last_name, User.first_name, User.id))
    return list(result.scalars().all())


async def get_technician(session: AsyncSession, tenant_id: str, user_id: str) -> User | None:
    result = await session.execute(
        select(User).where(tenant_predicate(User, tenant_id), User.id == user_id)
    )
    return result.scalar_one_or_none()


async def create_technician(
    session: AsyncSession,
    *,
    user_id: str,
    tenant_id: str,
    email: str,
    first_name: str,
    last_name: str,
    role: str,
    phone: str | None,
) -> User:
    user = User(
        id=user_id,
        tenant_id=tenant_id,
        email=email,
        first_name=first_name,
        last_name=last_name,
        role=role,
        phone=phone,
    )
    session.add(user)
    return user


def technician_to_dict(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role,
        "phone": user.phone,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }
