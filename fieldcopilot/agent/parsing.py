from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any


_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```\s*$")


@dataclass
class ParsedResponse:
    answer: str
    citations: list[Any] = field(default_factory=list)
    follow_ups: list[str] = field(default_factory=list)


def extract_json_payload(content: str) -> str:
    trimmed = content.strip()
    if trimmed.startswith("```"):
        return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", trimmed)).strip()
    return trimmed


def parse_response(content: str | None) -> ParsedResponse:
    """Best-effort parse of model output; never raises on malformed text."""
    raw = (content or "").strip()
    try:
        payload = json.loads(extract_json_payload(raw))
    except ValueError:
        return ParsedResponse(answer=raw)
    if not isinstance(payload, dict):
        return ParsedResponse(answer=raw)

    answer = payload.get("answer")
    citations = payload.get("citations")
    follow_ups = payload.get("follow_ups", payload.get("followUps"))
    return ParsedResponse(
        answer=answer if isinstance(answer, str) else "",
        citations=list(citations) if isinstance(citations, list) else [],
        follow_ups=[item for item in follow_ups if isinstance(item, str)]
        if isinstance(follow_ups, list)
        else [],
    )
