from __future__ import annotations

from typing import Any

from fieldcopilot.domain.evidence import VectorMatch, VectorRecord
from fieldcopilot.services.background import TaskFactory


class RecordingTaskRunner:
    """Runs submitted work inline and remembers what was submitted."""

    def __init__(self, run: bool = True) -> None:
        self.run = run
        self.names: list[str] = []

    async def submit(self, name: str, factory: TaskFactory) -> None:
        self.names.append(name)
        if self.run:
            await factory()


class FakeVectorIndex:
    """In-memory index that honours tenant_id/job_id filters like a hosted index."""

    def __init__(
        self,
        matches: list[VectorMatch] | None = None,
        *,
        ignore_filter: bool = False,
        fail_with: Exception | None = None,
    ) -> None:
        self.matches = list(matches or [])
        self.ignore_filter = ignore_filter
        self.fail_with = fail_with
        self.queries: list[tuple[int, dict[str, Any] | None]] = []
        self.upserted: list[VectorRecord] = []

    async def query(
        self, vector: list[float], top_k: int, filter: dict[str, Any] | None = None
    ) -> list[VectorMatch]:
        self.queries.append((top_k, filter))
        if self.fail_with is not None:
            raise self.fail_with
        matches = self.matches
        if filter and not self.ignore_filter:
            matches = [
                match
                for match in matches
                if all(match.metadata.get(key) == value for key, value in filter.items())
            ]
        return matches[:top_k]

    async def upsert(self, records: list[VectorRecord]) -> int:
        self.upserted.extend(records)
        return len(records)

    async def get(self, ids: list[str]) -> list[dict[str, Any]]:
        by_id = {match.id: match for match in self.matches}
        return [{"id": item, "metadata": by_id[item].metadata} for item in ids if item in by_id]


class FakeEmbeddings:
    configured = True

    def __init__(self, dim: int = 8) -> None:
        self.dim = dim
        self.texts: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.texts.append(text)
        return [float(len(text) % 7)] * self.dim


def vector_match(
    match_id: str,
    *,
    tenant_id: str,
    job_id: str,
    text: str,
    score: float = 0.9,
    doc_type: str = "note",
    created_at: str | None = "2024-03-01T10:00:00+00:00",
) -> VectorMatch:
    return VectorMatch(
        id=match_id,
        score=score,
        metadata={
            "tenant_id": tenant_id,
            "job_id": job_id,
            "type": doc_type,
            "doc_id": match_id.split("_", 1)[-1],
            "created_at": created_at,
            "text": text,
        },
    )
