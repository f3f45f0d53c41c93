"""keep decoded upload text on csv_imports for retries

Revision ID: 20261020_0002
Revises: 20261019_0001
Create Date: 2026-10-20 00:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261020_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "csv_imports",
        sa.Column(
            "source_content",
            sa.Text(),
            nullable=True,
            comment="Decoded upload text, re-parsed when the attempt is retried",
        ),
    )


def downgrade() -> None:
    op.drop_column("csv_imports", "source_content")
