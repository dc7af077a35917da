"""Database-backed competency catalog and question lookups."""

from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..competency import CompetencyDefinition, Question
from ..db.models import CompetencyModel, QuestionModel


class CompetencyCatalogRepository:
    def list_all(self, session: Session) -> List[CompetencyDefinition]:
        stmt = select(CompetencyModel).order_by(CompetencyModel.code.asc(), CompetencyModel.id.asc())
        return [self._to_domain(model) for model in session.execute(stmt).scalars().all()]

    def add(
        self,
        session: Session,
        code: str,
        name: str,
        description: Optional[str] = None,
        *,
        competency_id: Optional[str] = None,
    ) -> CompetencyDefinition:
        model = CompetencyModel(code=code.strip(), name=name.strip(), description=description)
        if competency_id:
            model.id = competency_id
        session.add(model)
        session.flush()
        return self._to_domain(model)

    @staticmethod
    def _to_domain(model: CompetencyModel) -> CompetencyDefinition:
        return CompetencyDefinition(
            id=model.id,
            code=model.code,
            name=model.name,
            description=model.description,
        )


class QuestionRepository:
    def find_by_competency(self, session: Session, name: str, limit: int) -> List[Question]:
        if limit <= 0:
            return []
        stmt = (
            select(QuestionModel)
            .join(CompetencyModel, QuestionModel.competency_id == CompetencyModel.id)
            .where(CompetencyModel.name == name)
            .order_by(QuestionModel.created_at.asc(), QuestionModel.id.asc())
            .limit(limit)
        )
        return [self._to_domain(model) for model in session.execute(stmt).scalars().all()]

    def add(
        self,
        session: Session,
        competency_id: str,
        title: str,
        statement: str,
        *,
        options: Iterable[str] = (),
        correct_option: Optional[str] = None,
        explanation: Optional[str] = None,
        year: Optional[int] = None,
    ) -> Question:
        model = QuestionModel(
            competency_id=competency_id,
            title=title,
            statement=statement,
            options=[option for option in options if option],
            correct_option=correct_option,
            explanation=explanation,
            year=year,
        )
        session.add(model)
        session.flush()
        return self._to_domain(model)

    @staticmethod
    def _to_domain(model: QuestionModel) -> Question:
        return Question(
            question_id=model.id,
            competency_id=model.competency_id,
            title=model.title,
            statement=model.statement,
            options=list(model.options or []),
            correct_option=model.correct_option,
            explanation=model.explanation,
            year=model.year,
        )


competency_catalog = CompetencyCatalogRepository()
questions = QuestionRepository()

__all__ = [
    "CompetencyCatalogRepository",
    "QuestionRepository",
    "competency_catalog",
    "questions",
]
