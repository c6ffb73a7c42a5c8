"""create cache table

Revision ID: 3f1a9c2b7d40
Revises: 
Create Date: 2026-10-19 09:12:44.120381

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3f1a9c2b7d40'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "cache",
        sa.Column("key", sa.String(1024), primary_key=True),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_cache_expires_at", "cache", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_cache_expires_at", table_name="cache")
    op.drop_table("cache")
