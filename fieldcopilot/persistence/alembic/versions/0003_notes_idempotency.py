"""notes idempotency

Revision ID: 0003_notes_idempotency
Revises: 0002_access_identities
Create Date: 2026-09-08 14:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0003_notes_idempotency"
down_revision = "0002_access_identities"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("notes", sa.Column("idempotency_key", sa.String(), nullable=True))
    # NULL keys never collide, so unkeyed notes are unaffected.
    op.create_unique_constraint(
        "uq_notes_tenant_idempotency", "notes", ["tenant_id", "idempotency_key"]
    )


def downgrade() -> None:
    op.drop_constraint("uq_notes_tenant_idempotency", "notes", type_="unique")
    op.drop_column("notes", "idempotency_key")
