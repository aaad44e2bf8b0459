from __future__ import annotations

import json
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping

from fieldcopilot.domain.evidence import EvidenceItem


# Published prompts are immutable; changing wording means adding a new version.
PROMPT_VERSIONS: Mapping[str, Mapping[str, str]] = MappingProxyType(
    {
        "copilot.v1": MappingProxyType(
            {
                "system": " ".join(
                    [
                        "You are a field service copilot helping a technician on a specific job.",
                        "Only answer using the provided structured context.",
                        "If evidence is provided, you MUST use it and cite it.",
                        "If you do not see evidence, say you do not see it in the job history.",
                        "Be concise and field-oriented.",
                        "Citations must reference the provided evidence with doc_id, date, type, snippet.",
                        "Return ONLY raw JSON with keys: answer, citations, follow_ups.",
                    ]
                ),
            }
        ),
    }
)

DEFAULT_PROMPT_VERSION = "copilot.v1"

NO_EVIDENCE_TEXT = "No evidence found in the job history."

# Section order in the rendered prompt.
_SECTIONS = (
    ("Job Notes", lambda item: item.type == "note" and item.scope == "job"),
    ("Job Events", lambda item: item.type == "job_event" and item.scope == "job"),
    ("Property Notes", lambda item: item.scope == "property"),
    ("Client Notes", lambda item: item.scope == "client"),
    ("Related Vector Matches", lambda item: item.scope == "vector"),
)


def system_prompt(version: str = DEFAULT_PROMPT_VERSION) -> str:
    try:
        return PROMPT_VERSIONS[version]["system"]
    except KeyError as exc:
        raise ValueError(f"Unknown prompt version: {version}") from exc


def format_timestamp(value: str | None) -> str | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def _evidence_line(item: EvidenceItem) -> str:
    stamp = format_timestamp(item.date)
    prefix = f"[{stamp}] " if stamp else ""
    return f"- {prefix}({item.doc_id}) {item.snippet}"


def format_evidence(evidence: list[EvidenceItem]) -> str:
    if not evidence:
        return NO_EVIDENCE_TEXT
    blocks: list[str] = []
    for title, matches in _SECTIONS:
        lines = [_evidence_line(item) for item in evidence if matches(item)]
        if lines:
            blocks.append(f"{title}:\n" + "\n".join(lines))
    return "\n\n".join(blocks) if blocks else NO_EVIDENCE_TEXT


def build_user_message(snapshot: dict[str, Any], evidence: list[EvidenceItem], question: str) -> str:
    return (
        "Job context (JSON):\n"
        f"{json.dumps(snapshot, indent=2, default=str)}\n\n"
        "Evidence:\n"
        f"{format_evidence(evidence)}\n\n"
        f"Technician question: {question}"
    )


def build_messages(
    history: list[dict[str, Any]],
    snapshot: dict[str, Any],
    evidence: list[EvidenceItem],
    user_message: str,
    *,
    version: str = DEFAULT_PROMPT_VERSION,
) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": system_prompt(version)}]
    messages.extend({"role": msg["role"], "content": msg["content"]} for msg in history)
    messages.append({"role": "user", "content": build_user_message(snapshot, evidence, user_message)})
    return messages
