"""Competency domain models and the sparse level rules."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field

MIN_LEVEL = 0
MAX_LEVEL = 3
LEVELS = tuple(range(MIN_LEVEL, MAX_LEVEL + 1))


def _now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_profile_id(profile_id: str) -> str:
    normalized = profile_id.strip() if isinstance(profile_id, str) else ""
    if not normalized:
        raise ValueError("Profile id cannot be empty.")
    return normalized


def resolve_level(stored: Optional[int]) -> int:
    """Map a stored level (or the absence of a row) to an effective level.

    Rows only exist for levels above zero, so ``None`` is level 0.
    """
    if stored is None:
        return MIN_LEVEL
    return max(MIN_LEVEL, min(int(stored), MAX_LEVEL))


def clamp_level(level: int) -> int:
    return max(MIN_LEVEL, min(level, MAX_LEVEL))


def next_level(current: int, is_correct: bool) -> int:
    if is_correct:
        return clamp_level(current + 1)
    return clamp_level(current - 1)


class CompetencyDefinition(BaseModel):
    id: str
    code: str
    name: str
    description: Optional[str] = None


class UserCompetencyRecord(BaseModel):
    profile_id: str
    competency_id: str
    level: int = Field(ge=1, le=MAX_LEVEL)
    last_evaluated_at: datetime = Field(default_factory=_now)


class Question(BaseModel):
    question_id: str
    competency_id: str
    title: str
    statement: str
    options: List[str] = Field(default_factory=list)
    correct_option: Optional[str] = None
    explanation: Optional[str] = None
    year: Optional[int] = None


class QuestionWithLevel(Question):
    competency_name: str
    competency_level: int = Field(ge=MIN_LEVEL, le=MAX_LEVEL)


class AnswerRecord(BaseModel):
    profile_id: str
    competency_id: str
    question_id: str
    is_correct: bool
    answered_at: datetime = Field(default_factory=_now)


class LevelChange(BaseModel):
    profile_id: str
    competency_id: str
    previous_level: int
    new_level: int

    @property
    def changed(self) -> bool:
        return self.previous_level != self.new_level


class CompetencyStats(BaseModel):
    total: int = 0
    practiced: int = 0
    mastered: int = 0
    average_level: float = 0.0
    by_level: Dict[int, int] = Field(default_factory=lambda: {level: 0 for level in LEVELS})


def sparse_levels(records: Iterable[UserCompetencyRecord]) -> Dict[str, int]:
    """Build the persisted level map, dropping anything that resolves to zero."""
    levels: Dict[str, int] = {}
    for record in records:
        level = resolve_level(record.level)
        if level > MIN_LEVEL:
            levels[record.competency_id] = level
    return levels


def effective_levels(
    catalog: Iterable[CompetencyDefinition],
    levels: Mapping[str, int],
) -> Dict[str, int]:
    """Return a level for every catalog competency, in catalog order.

    Competency ids in ``levels`` that are not in the catalog are ignored.
    """
    return {definition.id: resolve_level(levels.get(definition.id)) for definition in catalog}


__all__ = [
    "AnswerRecord",
    "CompetencyDefinition",
    "CompetencyStats",
    "LEVELS",
    "LevelChange",
    "MAX_LEVEL",
    "MIN_LEVEL",
    "Question",
    "QuestionWithLevel",
    "UserCompetencyRecord",
    "clamp_level",
    "effective_levels",
    "next_level",
    "normalize_profile_id",
    "resolve_level",
    "sparse_levels",
]
