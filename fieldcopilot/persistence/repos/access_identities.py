from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.domain.models import AccessIdentity, User


@dataclass(frozen=True)
class ResolvedIdentity:
    user_id: str
    tenant_id: str
    role: str
    email: str


async def resolve_identity(
    session: AsyncSession, issuer: str, subject: str
) -> ResolvedIdentity | None:
    # Identities are global; the tenant comes from the mapped user row.
    result = await session.execute(
        select(User.id, User.tenant_id, User.role, User.email)
        .join(AccessIdentity, AccessIdentity.user_id == User.id)
        .where(AccessIdentity.issuer == issuer, AccessIdentity.subject == subject)
        .limit(1)
    )
    row = result.first()
    if row is None:
        return None
    return ResolvedIdentity(user_id=row[0], tenant_id=row[1], role=row[2], email=row[3])
