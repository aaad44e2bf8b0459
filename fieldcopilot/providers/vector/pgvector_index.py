from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fieldcopilot.core.config import EMBED_DIM
from fieldcopilot.core.errors import RetrievalError
from fieldcopilot.domain.evidence import VectorMatch, VectorRecord
from fieldcopilot.domain.models import JobVector


# Filter keys that map onto indexed columns instead of metadata.
_COLUMN_FILTERS = {"tenant_id": JobVector.tenant_id, "job_id": JobVector.job_id}


class PgVectorIndex:
    """Vector index stored in the job_vectors table via pgvector."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def query(
        self, vector: list[float], top_k: int, filter: dict[str, Any] | None = None
    ) -> list[VectorMatch]:
        if len(vector) != EMBED_DIM:
            # Retrieval must fail fast if the embedding dimension doesn't match the schema.
            raise RetrievalError("query embedding dimension mismatch")

        # Use cosine distance from pgvector; lower is more similar.
        distance_expr = JobVector.embedding.cosine_distance(vector)
        stmt = select(JobVector, distance_expr.label("distance"))
        for key, value in (filter or {}).items():
            column = _COLUMN_FILTERS.get(key)
            if column is None:
                raise RetrievalError(f"unsupported vector filter: {key}")
            stmt = stmt.where(column == value)
        # Secondary ordering keeps tie-breaking deterministic.
        stmt = stmt.order_by(distance_expr.asc(), JobVector.id.asc()).limit(max(1, int(top_k)))

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise RetrievalError("pgvector query failed") from exc

        matches: list[VectorMatch] = []
        for row, distance in rows:
            score = max(0.0, min(1.0, 1.0 - float(distance)))
            matches.append(VectorMatch(id=row.id, score=score, metadata=row.metadata_json or {}))
        return matches

    async def upsert(self, records: list[VectorRecord]) -> int:
        if not records:
            return 0
        now = datetime.now(timezone.utc)
        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(JobVector).where(JobVector.id.in_([record.id for record in records]))
                )
                for record in records:
                    session.add(
                        JobVector(
                            id=record.id,
                            tenant_id=str(record.metadata.get("tenant_id") or ""),
                            job_id=str(record.metadata.get("job_id") or ""),
                            embedding=record.values,
                            metadata_json=record.metadata,
                            updated_at=now,
                        )
                    )
                await session.commit()
        except SQLAlchemyError as exc:
            raise RetrievalError("pgvector upsert failed") from exc
        return len(records)

    async def get(self, ids: list[str]) -> list[dict[str, Any]]:
        if not ids:
            return []
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(JobVector).where(JobVector.id.in_(ids)))
                rows = list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise RetrievalError("pgvector lookup failed") from exc
        by_id = {row.id: row for row in rows}
        return [
            {"id": vector_id, "metadata": by_id[vector_id].metadata_json or {}}
            for vector_id in ids
            if vector_id in by_id
        ]
