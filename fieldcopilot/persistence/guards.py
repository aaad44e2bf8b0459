from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TenantPredicateError(RuntimeError):
    # Raised when a tenant-scoped query is built without a tenant.
    message: str


def require_tenant_id(tenant_id: str | None) -> None:
    if not tenant_id:
        raise TenantPredicateError("Tenant predicate required but tenant_id is missing")


def tenant_predicate(model, tenant_id: str) -> object:
    # Build tenant predicates through a single helper to guarantee guard coverage.
    require_tenant_id(tenant_id)
    return model.tenant_id == tenant_id
