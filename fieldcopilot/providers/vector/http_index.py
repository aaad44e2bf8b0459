from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from fieldcopilot.core.config import get_settings
from fieldcopilot.core.errors import RetrievalError
from fieldcopilot.domain.evidence import VectorMatch, VectorRecord


logger = logging.getLogger(__name__)


def _unwrap(payload: Any) -> Any:
    # Hosted indexes wrap results in {"success": ..., "result": ...}.
    if isinstance(payload, dict) and "result" in payload:
        return payload["result"]
    return payload


class HttpVectorIndex:
    """Client for a hosted vector index exposing query, upsert, and get_by_ids."""

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._client = client
        # Injected clients belong to the caller.
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        timeout_s = get_settings().ext_call_timeout_ms / 1000.0
        self._client = httpx.AsyncClient(timeout=timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        if not self._api_token:
            return {}
        return {"Authorization": f"Bearer {self._api_token}"}

    async def _post(self, path: str, **kwargs: Any) -> Any:
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        try:
            response = await self._get_client().post(
                f"{self._base_url}/{path}", headers=headers, **kwargs
            )
        except httpx.HTTPError as exc:
            raise RetrievalError(f"vector index {path} request failed") from exc
        if response.status_code >= 400:
            logger.warning("vector_index_error path=%s status=%s", path, response.status_code)
            raise RetrievalError(f"vector index {path} error: {response.status_code}")
        try:
            return _unwrap(response.json())
        except ValueError as exc:
            raise RetrievalError(f"vector index {path} returned invalid JSON") from exc

    async def query(
        self, vector: list[float], top_k: int, filter: dict[str, Any] | None = None
    ) -> list[VectorMatch]:
        body: dict[str, Any] = {"vector": vector, "topK": top_k, "returnMetadata": "all"}
        if filter:
            body["filter"] = filter
        result = await self._post("query", json=body)
        matches = result.get("matches") if isinstance(result, dict) else None
        return [
            VectorMatch(
                id=str(match.get("id")),
                score=float(match.get("score") or 0.0),
                metadata=dict(match.get("metadata") or {}),
            )
            for match in matches or []
            if isinstance(match, dict)
        ]

    async def upsert(self, records: list[VectorRecord]) -> int:
        if not records:
            return 0
        # Upserts are sent as newline-delimited JSON, one vector per line.
        body = "\n".join(
            json.dumps({"id": record.id, "values": record.values, "metadata": record.metadata})
            for record in records
        )
        await self._post(
            "upsert",
            content=body.encode("utf-8"),
            headers={"Content-Type": "application/x-ndjson"},
        )
        return len(records)

    async def get(self, ids: list[str]) -> list[dict[str, Any]]:
        if not ids:
            return []
        result = await self._post("get_by_ids", json={"ids": ids})
        if not isinstance(result, list):
            return []
        return [
            {"id": str(item.get("id")), "metadata": dict(item.get("metadata") or {})}
            for item in result
            if isinstance(item, dict)
        ]
