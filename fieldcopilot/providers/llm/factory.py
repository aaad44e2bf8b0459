from __future__ import annotations

from fieldcopilot.core.config import get_settings
from fieldcopilot.core.errors import ProviderConfigError
from fieldcopilot.providers.llm.fake import FakeChatProvider
from fieldcopilot.providers.llm.openai_chat import OpenAIChatProvider


def get_chat_provider():
    settings = get_settings()
    provider = (settings.llm_provider or "openai").lower()

    if provider == "fake":
        return FakeChatProvider()
    if provider == "openai":
        return OpenAIChatProvider()

    raise ProviderConfigError(f"Unsupported LLM provider: {provider}")
