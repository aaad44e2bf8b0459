from __future__ import annotations

from typing import Protocol


class EmbeddingProvider(Protocol):
    # False when required credentials are absent; callers skip vector work.
    configured: bool

    async def embed(self, text: str) -> list[float]:
        ...
