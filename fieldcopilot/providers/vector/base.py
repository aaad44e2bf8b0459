from __future__ import annotations

from typing import Any, Protocol

from fieldcopilot.domain.evidence import VectorMatch, VectorRecord


class VectorIndex(Protocol):
    async def query(
        self, vector: list[float], top_k: int, filter: dict[str, Any] | None = None
    ) -> list[VectorMatch]:
        ...

    async def upsert(self, records: list[VectorRecord]) -> int:
        ...

    async def get(self, ids: list[str]) -> list[dict[str, Any]]:
        ...
