"""job search index

Revision ID: 0005_job_search_index
Revises: 0004_copilot_conversations
Create Date: 2026-09-18 16:40:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0005_job_search_index"
down_revision = "0004_copilot_conversations"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "job_search_index",
        sa.Column("tenant_id", sa.String(), primary_key=True),
        sa.Column("job_id", sa.String(), primary_key=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # Expression index must match the to_tsvector call used by search queries.
    op.execute(
        "CREATE INDEX ix_job_search_index_tsv ON job_search_index "
        "USING GIN (to_tsvector('simple', content))"
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_job_search_index_tsv")
    op.drop_table("job_search_index")
