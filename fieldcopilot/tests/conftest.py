from __future__ import annotations

import os
import tempfile
from pathlib import Path

# Settings are read at import time by the persistence layer; pin the test env first.
_TEST_DB = Path(tempfile.gettempdir()) / f"fieldcopilot_test_{os.getpid()}.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB}"
os.environ["ACCESS_AUTH_ENABLED"] = "false"
os.environ["LLM_PROVIDER"] = "fake"
os.environ["EMBEDDING_PROVIDER"] = "local"
os.environ["VECTOR_PROVIDER"] = "none"
os.environ["ADMIN_API_TOKEN"] = "admin-test-token"
os.environ["REINDEX_EXECUTION_MODE"] = "inline"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from fieldcopilot.apps.api.deps import (  # noqa: E402
    chat_provider,
    embedding_provider,
    get_task_runner,
    vector_index,
)
from fieldcopilot.apps.api.main import create_app  # noqa: E402
from fieldcopilot.core.config import get_settings  # noqa: E402
from fieldcopilot.domain.models import Base  # noqa: E402
from fieldcopilot.persistence.db import engine  # noqa: E402
from fieldcopilot.providers.embeddings.local_hash import LocalHashEmbeddingProvider  # noqa: E402
from fieldcopilot.providers.llm.fake import FakeChatProvider  # noqa: E402
from fieldcopilot.tests.utils.fakes import RecordingTaskRunner  # noqa: E402


@pytest.fixture(autouse=True)
async def reset_database():
    # Fresh schema per test so rows never leak between cases.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    # Dispose the async engine to prevent cross-loop connection reuse between tests.
    await engine.dispose()


@pytest.fixture(autouse=True)
def reset_settings_cache():
    # Tests that monkeypatch env vars must not leak cached settings.
    yield
    get_settings.cache_clear()


@pytest.fixture
def task_runner() -> RecordingTaskRunner:
    return RecordingTaskRunner()


@pytest.fixture
def llm() -> FakeChatProvider:
    return FakeChatProvider()


@pytest.fixture
def app(task_runner: RecordingTaskRunner, llm: FakeChatProvider):
    app = create_app()
    app.dependency_overrides[get_task_runner] = lambda: task_runner
    app.dependency_overrides[chat_provider] = lambda: llm
    app.dependency_overrides[embedding_provider] = LocalHashEmbeddingProvider
    app.dependency_overrides[vector_index] = lambda: None
    return app


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
