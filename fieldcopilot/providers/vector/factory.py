from __future__ import annotations

from fieldcopilot.core.config import get_settings
from fieldcopilot.core.errors import ProviderConfigError
from fieldcopilot.persistence.db import SessionLocal
from fieldcopilot.providers.vector.http_index import HttpVectorIndex
from fieldcopilot.providers.vector.pgvector_index import PgVectorIndex


def get_vector_index():
    """Return the configured vector index, or None when vector retrieval is disabled."""
    settings = get_settings()
    provider = (settings.vector_provider or "none").lower()

    if provider == "none":
        return None
    if provider == "pgvector":
        return PgVectorIndex(SessionLocal)
    if provider == "http":
        if not settings.vector_index_url:
            raise ProviderConfigError("VECTOR_INDEX_URL is required for the http vector index")
        return HttpVectorIndex(settings.vector_index_url, settings.vector_api_token)

    raise ProviderConfigError(f"Unsupported vector provider: {provider}")
