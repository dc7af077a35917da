"""ORM models backing the competency store."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin


class CompetencyModel(TimestampMixin, Base):
    __tablename__ = "competencies"
    __table_args__ = (
        Index("ix_competencies_code", "code", unique=True),
        Index("ix_competencies_name", "name"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    questions: Mapped[list["QuestionModel"]] = relationship(
        back_populates="competency", cascade="all, delete-orphan"
    )


class UserCompetencyModel(Base):
    """Persisted competency level for a profile.

    Only levels above zero are written; a missing row is level 0.
    """

    __tablename__ = "user_competencies"
    __table_args__ = (
        CheckConstraint("level >= 0 AND level <= 3", name="ck_user_competencies_level_range"),
        Index("ix_user_competencies_profile", "profile_id"),
    )

    profile_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    competency_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("competencies.id", ondelete="CASCADE"), primary_key=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    last_evaluated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )


class UserAnswerModel(Base):
    """Answer log; levels are derived separately and never recomputed from it."""

    __tablename__ = "user_answers"
    __table_args__ = (Index("ix_user_answers_profile_answered", "profile_id", "answered_at"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    profile_id: Mapped[str] = mapped_column(String(64), nullable=False)
    competency_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("competencies.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[str] = mapped_column(String(64), nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    answered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )


class QuestionModel(TimestampMixin, Base):
    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    competency_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("competencies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    statement: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    correct_option: Mapped[str | None] = mapped_column(String(32), nullable=True)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    competency: Mapped[CompetencyModel] = relationship(back_populates="questions")


__all__ = ["CompetencyModel", "QuestionModel", "UserAnswerModel", "UserCompetencyModel"]
