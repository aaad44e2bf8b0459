from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ChatCompletion:
    content: str
    model: str


class ChatProvider(Protocol):
    model: str

    async def complete(self, messages: list[dict[str, str]]) -> ChatCompletion:
        ...
