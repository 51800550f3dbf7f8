"""Government signals and feed source registry tables.

Revision ID: 20250802_0001
Revises:
Create Date: 2025-08-02
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "20250802_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "government_feed_sources",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("feed_group", sa.String(length=100), nullable=False),
        sa.Column("department", sa.String(length=100), nullable=False),
        sa.Column("feed_type", sa.String(length=50), nullable=False),
        sa.Column("urls", JSONType, nullable=False),
        sa.Column("scraping_config", JSONType, nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("last_fetch_attempt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_successful_fetch", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fetch_error_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_government_feed_sources_feed_group", "government_feed_sources", ["feed_group"], unique=True)
    op.create_index("ix_government_feed_sources_department", "government_feed_sources", ["department"], unique=False)
    op.create_index("ix_government_feed_sources_active", "government_feed_sources", ["active"], unique=False)

    op.create_table(
        "government_signals",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source_identifier", sa.String(length=255), nullable=False),
        sa.Column("feed_group", sa.String(length=100), nullable=False),
        sa.Column("content", JSONType, nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("priority_score", sa.Integer(), server_default=sa.text("50"), nullable=False),
        sa.Column("processing_status", sa.String(length=30), server_default=sa.text("'content_partial'"), nullable=False),
        sa.Column("scraping_attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("priority_score BETWEEN 0 AND 100", name="valid_priority_score"),
        sa.CheckConstraint("scraping_attempts >= 0", name="valid_scraping_attempts"),
    )
    op.create_index("ix_government_signals_source_identifier", "government_signals", ["source_identifier"], unique=True)
    op.create_index("ix_government_signals_feed_group", "government_signals", ["feed_group"], unique=False)
    op.create_index("ix_government_signals_category", "government_signals", ["category"], unique=False)
    op.create_index("ix_government_signals_priority_score", "government_signals", ["priority_score"], unique=False)
    op.create_index("ix_government_signals_processing_status", "government_signals", ["processing_status"], unique=False)
    op.create_index("ix_government_signals_updated_at", "government_signals", ["updated_at"], unique=False)


def downgrade() -> None:
    op.drop_table("government_signals")
    op.drop_table("government_feed_sources")
