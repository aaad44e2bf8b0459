"""job vectors

Revision ID: 0006_job_vectors
Revises: 0005_job_search_index
Create Date: 2026-09-25 13:05:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from pgvector.sqlalchemy import Vector

from fieldcopilot.core.config import EMBED_DIM

# revision identifiers, used by Alembic.
revision = "0006_job_vectors"
down_revision = "0005_job_search_index"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Ensure pgvector is enabled for every environment, not just manual setup.
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")
    op.create_table(
        "job_vectors",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("job_id", sa.String(), nullable=False),
        # Keep schema aligned with the embedding dimension used at runtime.
        sa.Column("embedding", Vector(EMBED_DIM), nullable=False),
        sa.Column("metadata_json", postgresql.JSONB(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_job_vectors_tenant_job", "job_vectors", ["tenant_id", "job_id"])


def downgrade() -> None:
    op.drop_index("ix_job_vectors_tenant_job", table_name="job_vectors")
    op.drop_table("job_vectors")
