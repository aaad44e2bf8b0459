from __future__ import annotations

import pytest

from fieldcopilot.persistence.guards import TenantPredicateError
from fieldcopilot.persistence.repos import conversations as conversations_repo
from fieldcopilot.persistence.repos import jobs as jobs_repo
from fieldcopilot.persistence.repos import notes as notes_repo


async def test_job_repo_requires_tenant_predicate() -> None:
    with pytest.raises(TenantPredicateError):
        await jobs_repo.get_job(None, "", "job-1")  # type: ignore[arg-type]
    with pytest.raises(TenantPredicateError):
        await jobs_repo.list_job_ids(None, "")  # type: ignore[arg-type]


async def test_note_repo_requires_tenant_predicate() -> None:
    with pytest.raises(TenantPredicateError):
        await notes_repo.list_scoped_notes(
            None,  # type: ignore[arg-type]
            "",
            job_id="job-1",
            client_id="client-1",
            property_id="property-1",
        )


async def test_conversation_repo_requires_tenant_predicate() -> None:
    with pytest.raises(TenantPredicateError):
        await conversations_repo.get_conversation(None, None, "conv-1")  # type: ignore[arg-type]
