from __future__ import annotations

import logging
from typing import Any

from fieldcopilot.providers.embeddings.factory import get_embedding_provider
from fieldcopilot.providers.llm.factory import get_chat_provider
from fieldcopilot.providers.vector.factory import get_vector_index


logger = logging.getLogger(__name__)

_UNSET: Any = object()


class ProviderRegistry:
    """Provider instances shared by every request an app serves.

    Providers are built on first use so a misconfigured provider fails the
    requests that need it instead of app startup.
    """

    def __init__(self) -> None:
        self._chat: Any = _UNSET
        self._embeddings: Any = _UNSET
        self._vector_index: Any = _UNSET

    def chat(self):
        if self._chat is _UNSET:
            self._chat = get_chat_provider()
        return self._chat

    def embeddings(self):
        if self._embeddings is _UNSET:
            self._embeddings = get_embedding_provider()
        return self._embeddings

    def vector_index(self):
        # None is a valid cached value: vector retrieval disabled.
        if self._vector_index is _UNSET:
            self._vector_index = get_vector_index()
        return self._vector_index

    async def aclose(self) -> None:
        for name in ("_chat", "_embeddings", "_vector_index"):
            provider = getattr(self, name)
            setattr(self, name, _UNSET)
            close = getattr(provider, "aclose", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as exc:  # noqa: BLE001 - keep closing the rest
                logger.warning("provider_close_failed provider=%s error=%s", name.lstrip("_"), type(exc).__name__)
