"""Create the document table.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "document",
        sa.Column("collection", sa.String(), nullable=False),
        sa.Column("identifier", sa.String(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("collection", "identifier", name=op.f("pk_document")),
    )
    op.create_index("ix_document_updated_at", "document", ["updated_at"])


def downgrade() -> None:
    op.drop_index("ix_document_updated_at", table_name="document")
    op.drop_table("document")
