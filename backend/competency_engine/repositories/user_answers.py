"""Database-backed log of submitted answers."""

from __future__ import annotations

from datetime import timezone
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..competency import AnswerRecord, normalize_profile_id
from ..db.models import UserAnswerModel


class UserAnswerRepository:
    def record(
        self,
        session: Session,
        profile_id: str,
        competency_id: str,
        question_id: str,
        is_correct: bool,
    ) -> AnswerRecord:
        model = UserAnswerModel(
            profile_id=normalize_profile_id(profile_id),
            competency_id=competency_id,
            question_id=question_id,
            is_correct=is_correct,
        )
        session.add(model)
        session.flush()
        return self._to_domain(model)

    def list_recent(self, session: Session, profile_id: str, limit: int = 50) -> List[AnswerRecord]:
        stmt = (
            select(UserAnswerModel)
            .where(UserAnswerModel.profile_id == normalize_profile_id(profile_id))
            .order_by(UserAnswerModel.answered_at.desc(), UserAnswerModel.id.desc())
            .limit(max(limit, 0))
        )
        return [self._to_domain(model) for model in session.execute(stmt).scalars().all()]

    def count_for_profile(self, session: Session, profile_id: str) -> int:
        stmt = select(func.count()).select_from(UserAnswerModel).where(
            UserAnswerModel.profile_id == normalize_profile_id(profile_id)
        )
        return int(session.execute(stmt).scalar_one())

    @staticmethod
    def _to_domain(model: UserAnswerModel) -> AnswerRecord:
        answered_at = model.answered_at
        if answered_at.tzinfo is None:
            answered_at = answered_at.replace(tzinfo=timezone.utc)
        return AnswerRecord(
            profile_id=model.profile_id,
            competency_id=model.competency_id,
            question_id=model.question_id,
            is_correct=model.is_correct,
            answered_at=answered_at,
        )


user_answers = UserAnswerRepository()

__all__ = ["UserAnswerRepository", "user_answers"]
