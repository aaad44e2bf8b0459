from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class EvidenceItem:
    # Common shape for notes, job events, and vector matches before merging.
    doc_id: str
    type: str
    date: str | None
    snippet: str
    author: str | None = None
    # job/client/property for database evidence, "vector" for index matches.
    scope: str = "job"
    score: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VectorMatch:
    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VectorRecord:
    id: str
    values: list[float]
    metadata: dict[str, Any]


@dataclass
class VectorRetrieval:
    """Outcome of one vector retrieval, including diagnostics for debug responses."""

    evidence: list[EvidenceItem] = field(default_factory=list)
    enabled: bool = False
    fallback_used: bool = False
    match_count: int = 0
    error: str | None = None
    unfiltered_matches: list[dict[str, Any]] = field(default_factory=list)
    vector_metadata: list[dict[str, Any]] = field(default_factory=list)
