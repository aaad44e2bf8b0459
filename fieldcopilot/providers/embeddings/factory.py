from __future__ import annotations

from fieldcopilot.core.config import get_settings
from fieldcopilot.core.errors import ProviderConfigError
from fieldcopilot.providers.embeddings.local_hash import LocalHashEmbeddingProvider
from fieldcopilot.providers.embeddings.openai_embeddings import OpenAIEmbeddingProvider


def get_embedding_provider():
    settings = get_settings()
    provider = (settings.embedding_provider or "openai").lower()

    if provider in {"local", "fake"}:
        return LocalHashEmbeddingProvider()
    if provider == "openai":
        return OpenAIEmbeddingProvider()

    raise ProviderConfigError(f"Unsupported embedding provider: {provider}")
