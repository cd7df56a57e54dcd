"""Initial schema — users, designs, design pairs, ratings, AI analysis.

Revision ID: 001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def _is_active() -> sa.Column:
    return sa.Column("is_active", sa.Boolean, server_default="true", nullable=False)


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String, unique=True, index=True, nullable=False),
        sa.Column("name", sa.String, nullable=False),
        sa.Column(
            "user_type",
            sa.String,
            server_default="tester",
            nullable=False,
            comment="designer / tester",
        ),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        _is_active(),
    )

    # ── 2. designs ──────────────────────────────────────────────────
    op.create_table(
        "designs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "designer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("image_url", sa.String, nullable=False),
        _created_at(),
        _is_active(),
    )

    # ── 3. design_pairs ─────────────────────────────────────────────
    op.create_table(
        "design_pairs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "designer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "design_a_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("designs.id"),
            nullable=False,
        ),
        sa.Column(
            "design_b_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("designs.id"),
            nullable=False,
        ),
        sa.Column("title", sa.String, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        _created_at(),
        _is_active(),
        sa.CheckConstraint("design_a_id <> design_b_id", name="ck_design_pair_distinct"),
    )
    op.create_index(
        "ix_design_pairs_active_created",
        "design_pairs",
        ["is_active", "created_at"],
    )

    # ── 4. ratings ──────────────────────────────────────────────────
    op.create_table(
        "ratings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "tester_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "design_pair_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("design_pairs.id"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "chosen_design_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("designs.id"),
            nullable=False,
        ),
        sa.Column("feedback", sa.Text, nullable=True),
        _created_at(),
        sa.UniqueConstraint("tester_id", "design_pair_id", name="uq_rating_tester_pair"),
    )

    # ── 5. ai_analysis ──────────────────────────────────────────────
    op.create_table(
        "ai_analysis",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "design_pair_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("design_pairs.id"),
            unique=True,
            nullable=False,
        ),
        sa.Column("recommended_design", sa.String, nullable=False, comment="A / B / tie"),
        sa.Column("confidence", sa.Integer, nullable=False, comment="0-100"),
        sa.Column("reasoning", sa.Text, nullable=False),
        sa.Column("strengths_design_a", postgresql.JSONB, nullable=False),
        sa.Column("strengths_design_b", postgresql.JSONB, nullable=False),
        sa.Column("weaknesses_design_a", postgresql.JSONB, nullable=False),
        sa.Column("weaknesses_design_b", postgresql.JSONB, nullable=False),
        sa.Column("design_principles", postgresql.JSONB, nullable=False),
        sa.Column("user_experience", sa.Text, nullable=False),
        sa.Column("visual_hierarchy", sa.Text, nullable=False),
        sa.Column("accessibility", sa.Text, nullable=False),
        sa.Column("model_used", sa.String, nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "confidence BETWEEN 0 AND 100", name="ck_ai_analysis_confidence_range"
        ),
    )


def downgrade() -> None:
    # Children first.
    op.drop_table("ai_analysis")
    op.drop_table("ratings")
    op.drop_index("ix_design_pairs_active_created", table_name="design_pairs")
    op.drop_table("design_pairs")
    op.drop_table("designs")
    op.drop_table("users")
