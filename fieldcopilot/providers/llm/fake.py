from __future__ import annotations

import json

from fieldcopilot.providers.llm.base import ChatCompletion


class FakeChatProvider:
    def __init__(self, response: str | None = None, model: str = "fake-model") -> None:
        # Deterministic response keeps tests stable without external calls.
        self._response = response or json.dumps(
            {"answer": "This is a fake response.", "citations": [], "follow_ups": []}
        )
        self.model = model
        self.calls: list[list[dict[str, str]]] = []

    async def complete(self, messages: list[dict[str, str]]) -> ChatCompletion:
        self.calls.append(messages)
        return ChatCompletion(content=self._response, model=self.model)
