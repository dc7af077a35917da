"""Answer log for submitted practice questions."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_02_user_answers"
down_revision = "20261019_01_competency_store"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_answers",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("profile_id", sa.String(length=64), nullable=False),
        sa.Column(
            "competency_id",
            sa.String(length=36),
            sa.ForeignKey("competencies.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("question_id", sa.String(length=64), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("answered_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_user_answers_profile_answered", "user_answers", ["profile_id", "answered_at"])


def downgrade() -> None:
    op.drop_index("ix_user_answers_profile_answered", table_name="user_answers")
    op.drop_table("user_answers")
