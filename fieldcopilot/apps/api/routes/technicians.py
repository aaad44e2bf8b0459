from __future__ import annotations

from uuid import uuid4

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcopilot.apps.api.deps import TenantContext, get_db, get_tenant_context, read_json_object
from fieldcopilot.core.errors import ConflictError, NotFoundError, ValidationError
from fieldcopilot.domain.models import USER_ROLES
from fieldcopilot.persistence.repos import technicians as technicians_repo

router = APIRouter(prefix="/technicians", tags=["technicians"])


def _text(body: dict, *keys: str) -> str | None:
    for key in keys:
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


@router.get("")
async def list_technicians(
    search: str | None = None,
    role: str | None = None,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    users = await technicians_repo.list_technicians(db, ctx.tenant_id, search=search, role=role)
    technicians = [technicians_repo.technician_to_dict(user) for user in users]
    return {"technicians": technicians, "total": len(technicians)}


@router.get("/{user_id}")
async def get_technician(
    user_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    user = await technicians_repo.get_technician(db, ctx.tenant_id, user_id)
    if user is None:
        raise NotFoundError("Technician not found")
    return technicians_repo.technician_to_dict(user)


@router.post("", status_code=201)
async def create_technician(
    request: Request,
    ctx: TenantContext = Depends(get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> dict:
    body = await read_json_object(request)
    email = _text(body, "email")
    first_name = _text(body, "first_name", "firstName")
    last_name = _text(body, "last_name", "lastName")
    if not email or not first_name or not last_name:
        raise ValidationError("Missing email, firstName, or lastName")
    role = _text(body, "role") or "technician"
    if role not in USER_ROLES:
        raise ValidationError("Invalid role")

    user_id = str(uuid4())
    await technicians_repo.create_technician(
        db,
        user_id=user_id,
        tenant_id=ctx.tenant_id,
        email=email,
        first_name=first_name,
        last_name=last_name,
        role=role,
        phone=_text(body, "phone"),
    )
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("Technician email already exists") from exc
    return {"id": user_id}
