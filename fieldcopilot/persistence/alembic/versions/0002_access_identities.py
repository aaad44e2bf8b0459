"""access identities

Revision ID: 0002_access_identities
Revises: 0001_copilot_core
Create Date: 2026-09-04 09:30:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_access_identities"
down_revision = "0001_copilot_core"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Global mapping from gateway identities to tenant users; no tenant_id column.
    op.create_table(
        "access_identities",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("issuer", sa.String(), nullable=False),
        sa.Column("subject", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("issuer", "subject", name="uq_access_identities_issuer_subject"),
    )
    op.create_index("ix_access_identities_user_id", "access_identities", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_access_identities_user_id", table_name="access_identities")
    op.drop_table("access_identities")
