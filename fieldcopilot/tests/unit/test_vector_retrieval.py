from __future__ import annotations

import logging

from fieldcopilot.core.errors import RetrievalError
from fieldcopilot.persistence.db import SessionLocal
from fieldcopilot.services.vector_retrieval import reindex_job_evidence, retrieve_vector_evidence
from fieldcopilot.tests.utils.fakes import FakeEmbeddings, FakeVectorIndex, vector_match
from fieldcopilot.tests.utils.seed import add_event, add_note, seed_job, utc


async def _retrieve(index, embeddings=None, **kwargs):
    return await retrieve_vector_evidence(
        tenant_id="t1",
        job_id="job-1",
        query="why is the compressor tripping",
        embeddings=embeddings or FakeEmbeddings(),
        index=index,
        top_k=4,
        fallback_top_k=10,
        **kwargs,
    )


async def test_scoped_query_returns_job_matches() -> None:
    index = FakeVectorIndex(
        [
            vector_match("note_n1", tenant_id="t1", job_id="job-1", text="Cap replaced"),
            vector_match("note_n2", tenant_id="t1", job_id="job-2", text="Other job"),
        ]
    )
    outcome = await _retrieve(index)

    assert outcome.enabled is True
    assert outcome.fallback_used is False
    assert outcome.match_count == 1
    assert index.queries[0] == (4, {"tenant_id": "t1", "job_id": "job-1"})
    item = outcome.evidence[0]
    assert item.doc_id == "n1"
    assert item.scope == "vector"
    assert item.snippet == "Cap replaced"
    assert item.score == 0.9


async def test_fallback_filters_unscoped_matches_locally(caplog) -> None:
    # An index that cannot filter returns nothing scoped, then everything unscoped.
    index = FakeVectorIndex(
        [
            vector_match("note_x", tenant_id="t2", job_id="job-1", text="Other tenant"),
            vector_match("note_y", tenant_id="t1", job_id="job-9", text="Other job"),
            vector_match("note_z", tenant_id="t1", job_id="job-1", text="Mine"),
        ],
        ignore_filter=True,
    )

    async def _scoped_then_unscoped(vector, top_k, filter=None):
        index.queries.append((top_k, filter))
        return [] if filter else list(index.matches)

    index.query = _scoped_then_unscoped  # type: ignore[method-assign]
    with caplog.at_level(logging.WARNING):
        outcome = await _retrieve(index)

    assert outcome.fallback_used is True
    assert [item.snippet for item in outcome.evidence] == ["Mine"]
    assert index.queries[1] == (10, None)
    assert "vector_fallback_used" in caplog.text


async def test_cross_tenant_matches_never_accepted_from_scoped_query() -> None:
    # A backend ignoring the filter still cannot leak another tenant's rows.
    index = FakeVectorIndex(
        [vector_match("note_x", tenant_id="t2", job_id="job-1", text="Other tenant")],
        ignore_filter=True,
    )
    outcome = await _retrieve(index)
    assert outcome.evidence == []
    assert outcome.match_count == 0


async def test_index_failure_degrades_to_empty_evidence() -> None:
    index = FakeVectorIndex(fail_with=RetrievalError("vector index query error: 503"))
    outcome = await _retrieve(index)
    assert outcome.enabled is True
    assert outcome.evidence == []
    assert outcome.error == "vector index query error: 503"


async def test_disabled_without_index_or_configured_embeddings() -> None:
    outcome = await _retrieve(None)
    assert outcome.enabled is False
    embeddings = FakeEmbeddings()
    embeddings.configured = False
    outcome = await _retrieve(FakeVectorIndex(), embeddings=embeddings)
    assert outcome.enabled is False
    assert embeddings.texts == []


async def test_debug_collects_unfiltered_diagnostics() -> None:
    index = FakeVectorIndex(
        [
            vector_match("note_n1", tenant_id="t1", job_id="job-1", text="Mine"),
            vector_match("note_n2", tenant_id="t2", job_id="job-7", text="Theirs"),
        ]
    )
    outcome = await _retrieve(index, debug=True, debug_top_k=3)
    assert [item.doc_id for item in outcome.evidence] == ["n1"]
    assert [match["id"] for match in outcome.unfiltered_matches] == ["note_n1", "note_n2"]
    assert [item["id"] for item in outcome.vector_metadata] == ["note_n1", "note_n2"]


class _NoLookupIndex(FakeVectorIndex):
    async def get(self, ids):
        raise RetrievalError("vector index get_by_ids error: 404")


async def test_debug_lookup_failure_keeps_answer_evidence() -> None:
    matches = [vector_match("note_n1", tenant_id="t1", job_id="job-1", text="Mine")]

    plain = await _retrieve(_NoLookupIndex(matches))
    debugged = await _retrieve(_NoLookupIndex(matches), debug=True)

    assert [item.doc_id for item in plain.evidence] == ["n1"]
    assert [item.doc_id for item in debugged.evidence] == ["n1"]
    assert debugged.match_count == 1
    assert [match["id"] for match in debugged.unfiltered_matches] == ["note_n1"]
    assert debugged.error == "vector index get_by_ids error: 404"


async def test_reindex_job_evidence_builds_records() -> None:
    seeded = await seed_job("t1")
    await add_event(seeded, "event-1", event_type="diagnosis", issue="Tripping", created_at=utc(2024, 3, 2))
    await add_note("t1", "note-1", entity_type="client", entity_id=seeded.client_id, content="Prefers mornings", created_at=utc(2024, 3, 1))
    await add_note("t1", "note-2", entity_type="job", entity_id=seeded.job_id, content="   ", created_at=utc(2024, 3, 3))
    index = FakeVectorIndex()

    async with SessionLocal() as session:
        result = await reindex_job_evidence(
            session,
            tenant_id="t1",
            job_id=seeded.job_id,
            embeddings=FakeEmbeddings(),
            index=index,
            limit=50,
        )

    # Blank notes are skipped.
    assert result == {"indexed": 2}
    records = {record.id: record for record in index.upserted}
    assert set(records) == {"job_event_event-1", "note_note-1"}
    metadata = records["note_note-1"].metadata
    assert metadata == {
        "tenant_id": "t1",
        "job_id": seeded.job_id,
        "property_id": seeded.property_id,
        "client_id": seeded.client_id,
        "type": "note",
        "doc_id": "note-1",
        "created_at": "2024-03-01T12:00:00+00:00",
        "text": "Prefers mornings",
    }
    assert records["job_event_event-1"].metadata["text"] == "diagnosis - Tripping"
