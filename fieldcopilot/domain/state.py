from __future__ import annotations

from typing import Any, Optional, TypedDict

from fieldcopilot.domain.evidence import EvidenceItem, VectorRetrieval


class CopilotState(TypedDict, total=False):
    tenant_id: str
    job_id: str
    user_message: str
    history: list[dict[str, str]]
    debug: bool
    snapshot: dict[str, Any]
    evidence: list[EvidenceItem]
    vector: VectorRetrieval
    raw_content: Optional[str]
    model: Optional[str]
    answer: Optional[str]
    citations: list[Any]
    follow_ups: list[str]
