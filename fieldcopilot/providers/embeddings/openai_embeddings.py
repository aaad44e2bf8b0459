from __future__ import annotations

import logging

import httpx

from fieldcopilot.core.config import EMBED_DIM, get_settings
from fieldcopilot.core.errors import ProviderConfigError, UpstreamError


logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider:
    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._settings = get_settings()
        self._client = client
        # Injected clients belong to the caller.
        self._owns_client = client is None
        self.configured = bool(self._settings.openai_api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        timeout_s = self._settings.ext_call_timeout_ms / 1000.0
        self._client = httpx.AsyncClient(timeout=timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def embed(self, text: str) -> list[float]:
        api_key = self._settings.openai_api_key
        if not api_key:
            raise ProviderConfigError("Missing OpenAI API key")

        url = f"{self._settings.openai_base_url.rstrip('/')}/embeddings"
        payload = {"model": self._settings.embedding_model, "input": text}
        try:
            response = await self._get_client().post(
                url, json=payload, headers={"Authorization": f"Bearer {api_key}"}
            )
        except httpx.HTTPError as exc:
            raise UpstreamError("Embedding request failed") from exc
        if response.status_code >= 400:
            logger.warning("embedding_provider_error status=%s", response.status_code)
            raise UpstreamError(f"Embedding provider error: {response.status_code}")

        try:
            embedding = response.json()["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamError("Embedding provider returned an unexpected payload") from exc
        if len(embedding) != EMBED_DIM:
            # Index dimension is fixed; a model swap must not silently corrupt it.
            raise UpstreamError("embedding dimension mismatch")
        return [float(value) for value in embedding]
