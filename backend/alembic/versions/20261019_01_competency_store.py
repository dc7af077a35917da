"""Competency catalog, sparse user competency levels and questions."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_01_competency_store"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "competencies",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
    )
    op.create_index("ix_competencies_code", "competencies", ["code"], unique=True)
    op.create_index("ix_competencies_name", "competencies", ["name"])

    op.create_table(
        "user_competencies",
        sa.Column("profile_id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column(
            "competency_id",
            sa.String(length=36),
            sa.ForeignKey("competencies.id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
        ),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("last_evaluated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("level >= 0 AND level <= 3", name="ck_user_competencies_level_range"),
    )
    op.create_index("ix_user_competencies_profile", "user_competencies", ["profile_id"])

    op.create_table(
        "questions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column(
            "competency_id",
            sa.String(length=36),
            sa.ForeignKey("competencies.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("statement", sa.Text(), nullable=False),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("correct_option", sa.String(length=32), nullable=True),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
    )
    op.create_index("ix_questions_competency_id", "questions", ["competency_id"])


def downgrade() -> None:
    op.drop_index("ix_questions_competency_id", table_name="questions")
    op.drop_table("questions")
    op.drop_index("ix_user_competencies_profile", table_name="user_competencies")
    op.drop_table("user_competencies")
    op.drop_index("ix_competencies_name", table_name="competencies")
    op.drop_index("ix_competencies_code", table_name="competencies")
    op.drop_table("competencies")
