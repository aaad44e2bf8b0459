from __future__ import annotations

import json

from fieldcopilot.apps.api.deps import chat_provider, vector_index
from fieldcopilot.providers.llm.fake import FakeChatProvider
from fieldcopilot.tests.utils.fakes import FakeVectorIndex, vector_match
from fieldcopilot.tests.utils.seed import add_equipment, add_note, seed_job, utc


def _headers(tenant_id: str = "t1", user_id: str = "user-t1-1") -> dict[str, str]:
    return {"x-tenant-id": tenant_id, "x-user-id": user_id}


async def test_context_snapshot(client) -> None:
    seeded = await seed_job("t1")
    await add_equipment(seeded, "eq-1", serial="RTU-2291", installed_at=utc(2020, 1, 1))

    response = await client.get(f"/jobs/{seeded.job_id}/ai/context", headers=_headers())
    assert response.status_code == 200
    body = response.json()
    assert body["job"]["id"] == seeded.job_id
    assert body["job"]["assigned_user"]["last_name"] == "Reyes"
    assert body["client"]["name"] == "Harbor View Apartments"
    assert body["property"]["zip"] == "97201"
    assert body["equipment"][0]["serial"] == "RTU-2291"
    assert body["recent_events"] == []


async def test_context_is_tenant_isolated(client) -> None:
    seeded = await seed_job("t1")
    response = await client.get(f"/jobs/{seeded.job_id}/ai/context", headers=_headers("t2"))
    assert response.status_code == 404
    assert response.json() == {"error": "Job not found"}


async def test_session_descriptor(client) -> None:
    seeded = await seed_job("t1")
    response = await client.post(f"/jobs/{seeded.job_id}/ai/session", headers=_headers())
    assert response.status_code == 200
    assert response.json() == {
        "sessionId": f"session_{seeded.job_id}",
        "jobId": seeded.job_id,
        "tenantId": "t1",
        "status": "active",
    }
    response = await client.post("/jobs/job-missing/ai/session", headers=_headers())
    assert response.status_code == 404


async def test_chat_round_trip_and_conversation(client, llm) -> None:
    seeded = await seed_job("t1")
    await add_note("t1", "n1", entity_type="property", entity_id=seeded.property_id, content="Roof hatch key at desk", created_at=utc(2024, 3, 1))

    response = await client.post(
        f"/jobs/{seeded.job_id}/ai/chat", headers=_headers(), json={"message": "Where is the roof key?"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["answer"] == "This is a fake response."
    assert body["citations"] == []
    assert body["follow_ups"] == []
    assert "debug" not in body
    conversation_id = body["conversation_id"]
    assert "Property Notes:" in llm.calls[0][-1]["content"]

    response = await client.post(
        f"/jobs/{seeded.job_id}/ai/chat",
        headers=_headers(),
        json={"message": "And the gate code?", "conversationId": conversation_id},
    )
    assert response.json()["conversation_id"] == conversation_id

    response = await client.get(f"/jobs/{seeded.job_id}/ai/conversation", headers=_headers())
    assert response.status_code == 200
    conversation = response.json()
    assert conversation["conversation_id"] == conversation_id
    assert [message["role"] for message in conversation["messages"]] == ["user", "assistant", "user", "assistant"]
    assert conversation["messages"][0]["content"] == "Where is the roof key?"
    assert conversation["messages"][1]["metadata"]["evidence_doc_ids"] == ["n1"]


async def test_chat_validation(client) -> None:
    seeded = await seed_job("t1")
    response = await client.post(f"/jobs/{seeded.job_id}/ai/chat", headers=_headers(), json={"message": "  "})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing message"}

    response = await client.post("/jobs/job-missing/ai/chat", headers=_headers(), json={"message": "hi"})
    assert response.status_code == 404

    response = await client.get(f"/jobs/{seeded.job_id}/ai/chat", headers=_headers())
    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


async def test_chat_debug_reports_vector_diagnostics(app, client, llm) -> None:
    seeded = await seed_job("t1")
    index = FakeVectorIndex(
        [
            vector_match("note_v1", tenant_id="t1", job_id=seeded.job_id, text="Coil cleaned last spring"),
            vector_match("note_v2", tenant_id="t2", job_id="job-t2-1", text="Other tenant"),
        ]
    )
    app.dependency_overrides[vector_index] = lambda: index

    response = await client.post(
        f"/jobs/{seeded.job_id}/ai/chat",
        headers={**_headers(), "x-debug": "1"},
        json={"message": "When was the coil cleaned?"},
    )
    assert response.status_code == 200
    debug = response.json()["debug"]
    assert debug["vector_enabled"] is True
    assert debug["vector_match_count"] == 1
    assert debug["vector_fallback_used"] is False
    assert debug["vector_error"] is None
    assert debug["evidence_count"] == 1
    assert len(debug["unfiltered_matches"]) == 2
    prompt = llm.calls[0][-1]["content"]
    assert "Related Vector Matches:" in prompt
    assert "Other tenant" not in prompt


async def test_chat_survives_vector_outage(app, client) -> None:
    seeded = await seed_job("t1")
    app.dependency_overrides[vector_index] = lambda: FakeVectorIndex(fail_with=RuntimeError("down"))
    response = await client.post(
        f"/jobs/{seeded.job_id}/ai/chat",
        headers={**_headers(), "x-debug": "1"},
        json={"message": "Anything?"},
    )
    assert response.status_code == 200
    assert response.json()["debug"]["vector_error"] == "down"


async def test_chat_returns_structured_model_output(app, client) -> None:
    seeded = await seed_job("t1")
    content = json.dumps(
        {
            "answer": "Gate code is 4411.",
            "citations": [{"doc_id": seeded.property_id, "type": "property", "snippet": "Gate code 4411"}],
            "followUps": ["Confirm with office"],
        }
    )
    app.dependency_overrides[chat_provider] = lambda: FakeChatProvider(content)
    response = await client.post(f"/jobs/{seeded.job_id}/ai/chat", headers=_headers(), json={"message": "Gate?"})
    body = response.json()
    assert body["answer"] == "Gate code is 4411."
    assert body["citations"][0]["snippet"] == "Gate code 4411"
    assert body["follow_ups"] == ["Confirm with office"]


async def test_health_and_unknown_route(client) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-Id"]

    response = await client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}
