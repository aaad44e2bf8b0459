from __future__ import annotations

import logging
from typing import Any

import httpx

from fieldcopilot.core.config import get_settings
from fieldcopilot.core.errors import ProviderConfigError, UpstreamError
from fieldcopilot.providers.llm.base import ChatCompletion


logger = logging.getLogger(__name__)


class OpenAIChatProvider:
    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._settings = get_settings()
        self._client = client
        # Injected clients belong to the caller.
        self._owns_client = client is None
        self.model = self._settings.copilot_model

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        # Reuse a single client per provider for connection pooling.
        timeout_s = self._settings.ext_call_timeout_ms / 1000.0
        self._client = httpx.AsyncClient(timeout=timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _payload(self, messages: list[dict[str, str]]) -> dict[str, Any]:
        settings = self._settings
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": settings.copilot_temperature,
        }
        if settings.copilot_top_p is not None:
            payload["top_p"] = settings.copilot_top_p
        if settings.copilot_max_tokens is not None:
            payload["max_tokens"] = settings.copilot_max_tokens
        if settings.copilot_response_format:
            payload["response_format"] = {"type": settings.copilot_response_format}
        return payload

    async def complete(self, messages: list[dict[str, str]]) -> ChatCompletion:
        api_key = self._settings.openai_api_key
        if not api_key:
            raise ProviderConfigError("Missing OpenAI API key")

        url = f"{self._settings.openai_base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {api_key}"}
        try:
            response = await self._get_client().post(
                url, json=self._payload(messages), headers=headers
            )
        except httpx.HTTPError as exc:
            logger.warning("chat_provider_request_failed error=%s", type(exc).__name__)
            raise UpstreamError("Copilot provider request failed") from exc

        if response.status_code >= 400:
            # Provider bodies can echo prompt content; log the status only.
            logger.warning("chat_provider_error status=%s", response.status_code)
            raise UpstreamError(f"Copilot provider error: {response.status_code}")

        try:
            data = response.json()
            content = data["choices"][0]["message"].get("content") or ""
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as exc:
            raise UpstreamError("Copilot provider returned an unexpected payload") from exc
        return ChatCompletion(content=content, model=str(data.get("model") or self.model))
