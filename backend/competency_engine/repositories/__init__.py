"""Session-scoped SQLAlchemy repositories."""

from .competency_catalog import CompetencyCatalogRepository, QuestionRepository, competency_catalog, questions
from .user_answers import UserAnswerRepository, user_answers
from .user_competencies import UserCompetencyRepository, user_competencies

__all__ = [
    "CompetencyCatalogRepository",
    "QuestionRepository",
    "UserAnswerRepository",
    "UserCompetencyRepository",
    "competency_catalog",
    "questions",
    "user_answers",
    "user_competencies",
]
