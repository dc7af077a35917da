"""Database-backed repository for per-profile competency levels."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ..competency import MAX_LEVEL, MIN_LEVEL, UserCompetencyRecord, normalize_profile_id
from ..db.models import UserCompetencyModel


class UserCompetencyRepository:
    """Sparse level table: rows exist only for levels above zero."""

    def find_all_for_profile(self, session: Session, profile_id: str) -> List[UserCompetencyRecord]:
        normalized = normalize_profile_id(profile_id)
        stmt = (
            select(UserCompetencyModel)
            .where(UserCompetencyModel.profile_id == normalized)
            .where(UserCompetencyModel.level > MIN_LEVEL)
            .order_by(UserCompetencyModel.competency_id.asc())
        )
        models = session.execute(stmt).scalars().all()
        return [self._to_domain(model) for model in models]

    def find_level(self, session: Session, profile_id: str, competency_id: str) -> Optional[int]:
        normalized = normalize_profile_id(profile_id)
        stmt = select(UserCompetencyModel.level).where(
            UserCompetencyModel.profile_id == normalized,
            UserCompetencyModel.competency_id == competency_id,
        )
        level = session.execute(stmt).scalar_one_or_none()
        if level is None or level <= MIN_LEVEL:
            return None
        return int(level)

    def upsert(self, session: Session, profile_id: str, competency_id: str, level: int) -> UserCompetencyRecord:
        if not MIN_LEVEL < level <= MAX_LEVEL:
            raise ValueError(f"Only levels 1-{MAX_LEVEL} are persisted, got {level}.")
        normalized = normalize_profile_id(profile_id)
        model = session.get(UserCompetencyModel, (normalized, competency_id))
        now = datetime.now(timezone.utc)
        if model is None:
            model = UserCompetencyModel(
                profile_id=normalized,
                competency_id=competency_id,
                level=level,
                last_evaluated_at=now,
            )
            session.add(model)
        else:
            model.level = level
            model.last_evaluated_at = now
        session.flush()
        return self._to_domain(model)

    def delete(self, session: Session, profile_id: str, competency_id: str) -> bool:
        normalized = normalize_profile_id(profile_id)
        result = session.execute(
            delete(UserCompetencyModel).where(
                UserCompetencyModel.profile_id == normalized,
                UserCompetencyModel.competency_id == competency_id,
            )
        )
        return bool(result.rowcount)

    def count_zero_levels(self, session: Session) -> int:
        stmt = select(func.count()).select_from(UserCompetencyModel).where(
            UserCompetencyModel.level <= MIN_LEVEL
        )
        return int(session.execute(stmt).scalar_one())

    def level_distribution(self, session: Session) -> Dict[int, int]:
        stmt = (
            select(UserCompetencyModel.level, func.count())
            .group_by(UserCompetencyModel.level)
            .order_by(UserCompetencyModel.level.asc())
        )
        return {int(level): int(count) for level, count in session.execute(stmt).all()}

    def purge_zero_levels(self, session: Session) -> int:
        """Delete level-0 rows left behind by the legacy bulk initialization."""
        result = session.execute(
            delete(UserCompetencyModel).where(UserCompetencyModel.level <= MIN_LEVEL)
        )
        return int(result.rowcount or 0)

    @staticmethod
    def _to_domain(model: UserCompetencyModel) -> UserCompetencyRecord:
        last_evaluated = model.last_evaluated_at
        if last_evaluated is not None and last_evaluated.tzinfo is None:
            last_evaluated = last_evaluated.replace(tzinfo=timezone.utc)
        return UserCompetencyRecord(
            profile_id=model.profile_id,
            competency_id=model.competency_id,
            level=model.level,
            last_evaluated_at=last_evaluated,
        )


user_competencies = UserCompetencyRepository()

__all__ = ["UserCompetencyRepository", "user_competencies"]
