from __future__ import annotations

import json

import httpx
import pytest

from fieldcopilot.apps.api.main import create_app
from fieldcopilot.core.config import EMBED_DIM, get_settings
from fieldcopilot.core.errors import ProviderConfigError, RetrievalError, UpstreamError
from fieldcopilot.domain.evidence import VectorRecord
from fieldcopilot.providers.embeddings.local_hash import hash_embedding
from fieldcopilot.providers.llm.openai_chat import OpenAIChatProvider
from fieldcopilot.providers.registry import ProviderRegistry
from fieldcopilot.providers.vector.factory import get_vector_index
from fieldcopilot.providers.vector.http_index import HttpVectorIndex


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _use_openai(monkeypatch, api_key: str | None = "sk-test") -> None:
    if api_key:
        monkeypatch.setenv("OPENAI_API_KEY", api_key)
    else:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("COPILOT_MAX_TOKENS", "400")
    get_settings.cache_clear()


async def test_chat_provider_posts_completion_request(monkeypatch) -> None:
    _use_openai(monkeypatch)
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"model": "gpt-4o-2024", "choices": [{"message": {"content": '{"answer": "ok"}'}}]},
        )

    provider = OpenAIChatProvider(client=_client(handler))
    completion = await provider.complete([{"role": "user", "content": "hi"}])

    assert completion.content == '{"answer": "ok"}'
    assert completion.model == "gpt-4o-2024"
    assert seen["url"].endswith("/chat/completions")
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["max_tokens"] == 400
    assert seen["body"]["response_format"] == {"type": "json_object"}


async def test_chat_provider_error_does_not_echo_body(monkeypatch) -> None:
    _use_openai(monkeypatch)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="secret prompt echo")

    provider = OpenAIChatProvider(client=_client(handler))
    with pytest.raises(UpstreamError) as exc_info:
        await provider.complete([{"role": "user", "content": "hi"}])
    assert "secret" not in exc_info.value.message


async def test_chat_provider_requires_api_key(monkeypatch) -> None:
    _use_openai(monkeypatch, api_key=None)
    provider = OpenAIChatProvider(client=_client(lambda request: httpx.Response(200)))
    with pytest.raises(ProviderConfigError):
        await provider.complete([{"role": "user", "content": "hi"}])


async def test_http_index_query_unwraps_result() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(
            200,
            json={
                "success": True,
                "result": {"matches": [{"id": "note_n1", "score": 0.75, "metadata": {"job_id": "job-1"}}]},
            },
        )

    index = HttpVectorIndex("https://vectors.example/v2/indexes/jobs/", "tok", client=_client(handler))
    matches = await index.query([0.1, 0.2], 5, {"tenant_id": "t1", "job_id": "job-1"})

    assert seen["path"] == "/v2/indexes/jobs/query"
    assert seen["body"] == {
        "vector": [0.1, 0.2],
        "topK": 5,
        "returnMetadata": "all",
        "filter": {"tenant_id": "t1", "job_id": "job-1"},
    }
    assert seen["auth"] == "Bearer tok"
    assert matches[0].id == "note_n1"
    assert matches[0].score == 0.75


async def test_http_index_upsert_sends_ndjson() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["type"] = request.headers["Content-Type"]
        seen["lines"] = request.content.decode().splitlines()
        return httpx.Response(200, json={"result": {"mutationId": "m1"}})

    index = HttpVectorIndex("https://vectors.example", client=_client(handler))
    records = [
        VectorRecord(id="note_a", values=[0.1], metadata={"job_id": "job-1"}),
        VectorRecord(id="note_b", values=[0.2], metadata={"job_id": "job-1"}),
    ]
    assert await index.upsert(records) == 2
    assert seen["type"] == "application/x-ndjson"
    assert [json.loads(line)["id"] for line in seen["lines"]] == ["note_a", "note_b"]


async def test_http_index_error_status_raises_retrieval_error() -> None:
    index = HttpVectorIndex(
        "https://vectors.example", client=_client(lambda request: httpx.Response(503))
    )
    with pytest.raises(RetrievalError):
        await index.get(["note_a"])


def test_vector_index_factory_disabled_by_default() -> None:
    assert get_vector_index() is None


def test_hash_embedding_is_deterministic_and_full_width() -> None:
    assert hash_embedding("Compressor tripping") == hash_embedding("compressor TRIPPING")
    assert len(hash_embedding("alpha")) == EMBED_DIM
    assert hash_embedding("alpha") != hash_embedding("beta")


def _use_remote_providers(monkeypatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    monkeypatch.setenv("EMBEDDING_PROVIDER", "openai")
    monkeypatch.setenv("VECTOR_PROVIDER", "http")
    monkeypatch.setenv("VECTOR_INDEX_URL", "https://vectors.example")
    _use_openai(monkeypatch)


async def test_provider_registry_reuses_and_closes_clients(monkeypatch) -> None:
    _use_remote_providers(monkeypatch)
    registry = ProviderRegistry()

    chat = registry.chat()
    embeddings = registry.embeddings()
    index = registry.vector_index()
    assert registry.chat() is chat
    assert registry.embeddings() is embeddings
    assert registry.vector_index() is index

    clients = [chat._get_client(), embeddings._get_client(), index._get_client()]
    await registry.aclose()
    assert all(client.is_closed for client in clients)


async def test_provider_registry_caches_disabled_vector_index() -> None:
    registry = ProviderRegistry()
    assert registry.vector_index() is None
    assert registry.vector_index() is None
    await registry.aclose()


async def test_injected_client_is_left_open(monkeypatch) -> None:
    _use_openai(monkeypatch)
    client = _client(lambda request: httpx.Response(200))
    provider = OpenAIChatProvider(client=client)

    await provider.aclose()
    assert not client.is_closed
    await client.aclose()


async def test_app_shutdown_closes_provider_clients(monkeypatch) -> None:
    _use_remote_providers(monkeypatch)
    app = create_app()

    async with app.router.lifespan_context(app):
        provider = app.state.providers.chat()
        client = provider._get_client()
        assert not client.is_closed
    assert client.is_closed
