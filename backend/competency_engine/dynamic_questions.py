"""Adaptive question selection driven by per-profile competency levels."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .allocation import AllocationEngine, AllocationPlan, group_by_level
from .cache import CompetencyCache, CompetencyCatalog
from .competency import (
    LEVELS,
    MAX_LEVEL,
    MIN_LEVEL,
    CompetencyDefinition,
    CompetencyStats,
    LevelChange,
    QuestionWithLevel,
    effective_levels,
    normalize_profile_id,
)
from .config import Settings, get_settings
from .level_updater import LevelUpdater
from .question_selector import QuestionSelector
from .stores import (
    AnswerRepository,
    CompetencyCatalogRepository,
    CompetencyRepository,
    DatabaseAnswerStore,
    DatabaseCatalogStore,
    DatabaseCompetencyStore,
    DatabaseQuestionStore,
    QuestionRepository,
    StoreCallRunner,
)
from .telemetry import emit_event

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUESTIONS = 20
DEFAULT_RECOMMENDATION_LIMIT = 5


class DynamicQuestionService:
    """Entry point used by the HTTP layer."""

    def __init__(
        self,
        cache: CompetencyCache,
        catalog: CompetencyCatalog,
        selector: QuestionSelector,
        updater: LevelUpdater,
        *,
        engine: Optional[AllocationEngine] = None,
        default_max_questions: int = DEFAULT_MAX_QUESTIONS,
        runner: Optional[StoreCallRunner] = None,
        answers: Optional[AnswerRepository] = None,
    ) -> None:
        self.cache = cache
        self.catalog = catalog
        self.selector = selector
        self.updater = updater
        self.engine = engine or AllocationEngine()
        self.default_max_questions = default_max_questions
        self._runner = runner
        self._answers = answers

    def get_effective_levels(self, profile_id: str) -> Dict[str, int]:
        """Level for every catalog competency, zero where nothing is stored."""
        stored = self.cache.get(profile_id)
        return effective_levels(self.catalog.definitions(), stored)

    def plan_for(self, profile_id: str, max_questions: Optional[int] = None) -> AllocationPlan:
        budget = self.default_max_questions if max_questions is None else max_questions
        return self.engine.plan(self.get_effective_levels(profile_id), budget)

    def get_dynamic_questions(self, profile_id: str, max_questions: Optional[int] = None) -> List[QuestionWithLevel]:
        key = normalize_profile_id(profile_id)
        plan = self.plan_for(key, max_questions)
        if not plan:
            logger.info("No practice allocated for %s (budget=%s)", key, plan.max_questions)
            return []
        questions = self.selector.select(plan)
        emit_event(
            "dynamic_questions_selected",
            profile_id=key,
            requested=plan.max_questions,
            planned=plan.total,
            selected=len(questions),
            level_totals=plan.level_totals,
        )
        return questions

    def submit_answer(
        self,
        profile_id: str,
        competency_id: str,
        is_correct: bool,
        question_id: Optional[str] = None,
    ) -> LevelChange:
        """Apply an answer to the competency level.

        When the answer names its question and an answer log is configured,
        the answer is recorded before the level moves, so a failed write to
        the log leaves the level untouched.
        """
        self.catalog.require(competency_id)
        if question_id and self._answers is not None:
            self._record_answer(normalize_profile_id(profile_id), competency_id, question_id, is_correct)
        return self.updater.apply_answer(profile_id, competency_id, is_correct)

    def _record_answer(self, profile_id: str, competency_id: str, question_id: str, is_correct: bool) -> None:
        assert self._answers is not None
        record = self._answers.record_answer
        if self._runner is None:
            record(profile_id, competency_id, question_id, is_correct)
        else:
            self._runner.call(record, profile_id, competency_id, question_id, is_correct, operation="record_answer")
        logger.debug("Recorded answer to %s for %s", question_id, profile_id)

    def get_competency_stats(self, profile_id: str) -> CompetencyStats:
        levels = self.get_effective_levels(profile_id)
        by_level = {level: 0 for level in LEVELS}
        for level in levels.values():
            by_level[level] += 1
        practiced = [level for level in levels.values() if level > MIN_LEVEL]
        average = sum(practiced) / len(practiced) if practiced else 0.0
        return CompetencyStats(
            total=len(levels),
            practiced=len(practiced),
            mastered=by_level[MAX_LEVEL],
            average_level=round(average, 2),
            by_level=by_level,
        )

    def get_competencies_by_level(
        self,
        profile_id: str,
        level: int,
        limit: int = 10,
    ) -> List[CompetencyDefinition]:
        if level not in LEVELS:
            raise ValueError(f"Level must be between {MIN_LEVEL} and {MAX_LEVEL}.")
        groups = group_by_level(self.get_effective_levels(profile_id))
        return [self.catalog.require(competency_id) for competency_id in groups[level][: max(limit, 0)]]

    def get_recommended_competencies(
        self,
        profile_id: str,
        limit: int = DEFAULT_RECOMMENDATION_LIMIT,
    ) -> List[CompetencyDefinition]:
        """Lowest-level competencies first; mastered ones are never recommended."""
        levels = self.get_effective_levels(profile_id)
        ranked = sorted(
            (level, position, competency_id)
            for position, (competency_id, level) in enumerate(levels.items())
            if level < MAX_LEVEL
        )
        return [self.catalog.require(competency_id) for _, _, competency_id in ranked[: max(limit, 0)]]

    def cache_stats(self) -> Dict[str, object]:
        stats: Dict[str, object] = dict(self.cache.stats())
        stats["catalog_loaded"] = self.catalog.loaded
        stats["ttl_seconds"] = self.cache.ttl_seconds
        return stats

    def clear_caches(self) -> None:
        self.cache.clear()
        self.catalog.invalidate()

    def close(self) -> None:
        if self._runner is not None:
            self._runner.shutdown()


def build_service(
    *,
    competencies: CompetencyRepository,
    catalog: CompetencyCatalogRepository,
    questions: QuestionRepository,
    answers: Optional[AnswerRepository] = None,
    settings: Optional[Settings] = None,
) -> DynamicQuestionService:
    settings = settings or get_settings()
    runner = StoreCallRunner(
        timeout_seconds=settings.store_timeout_seconds,
        max_workers=settings.store_workers,
    )
    cache = CompetencyCache(competencies, ttl_seconds=settings.cache_ttl_seconds, runner=runner)
    catalog_cache = CompetencyCatalog(catalog, runner=runner)
    return DynamicQuestionService(
        cache,
        catalog_cache,
        QuestionSelector(questions, catalog_cache, runner=runner),
        LevelUpdater(competencies, cache, runner=runner),
        default_max_questions=settings.default_max_questions,
        runner=runner,
        answers=answers,
    )


def create_database_service(settings: Optional[Settings] = None) -> DynamicQuestionService:
    return build_service(
        competencies=DatabaseCompetencyStore(),
        catalog=DatabaseCatalogStore(),
        questions=DatabaseQuestionStore(),
        answers=DatabaseAnswerStore(),
        settings=settings,
    )


_service: Optional[DynamicQuestionService] = None


def get_dynamic_question_service() -> DynamicQuestionService:
    global _service
    if _service is None:
        _service = create_database_service()
    return _service


def reset_dynamic_question_service() -> None:
    global _service
    if _service is not None:
        _service.close()
    _service = None


__all__ = [
    "DEFAULT_MAX_QUESTIONS",
    "DynamicQuestionService",
    "build_service",
    "create_database_service",
    "get_dynamic_question_service",
    "reset_dynamic_question_service",
]
