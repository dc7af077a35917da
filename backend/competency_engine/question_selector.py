"""Fetches concrete questions for an allocation plan."""

from __future__ import annotations

import logging
from typing import List, Optional

from .allocation import AllocationPlan
from .cache.catalog import CompetencyCatalog
from .competency import QuestionWithLevel
from .stores import QuestionRepository, StoreCallRunner

logger = logging.getLogger(__name__)


class QuestionSelector:
    def __init__(
        self,
        questions: QuestionRepository,
        catalog: CompetencyCatalog,
        *,
        runner: Optional[StoreCallRunner] = None,
    ) -> None:
        self._questions = questions
        self._catalog = catalog
        self._runner = runner

    def select(self, plan: AllocationPlan) -> List[QuestionWithLevel]:
        """Return up to ``plan.total`` questions, in plan order.

        A competency with fewer questions than its quota contributes what
        exists; the shortfall is not redistributed.
        """
        selected: List[QuestionWithLevel] = []
        for entry in plan:
            definition = self._catalog.get(entry.competency_id)
            if definition is None:
                logger.warning("Skipping competency %s missing from the catalog", entry.competency_id)
                continue
            found = self._fetch(definition.name, entry.quota)
            if len(found) < entry.quota:
                logger.debug(
                    "Competency %s has %d of %d requested questions",
                    definition.name,
                    len(found),
                    entry.quota,
                )
            for question in found[: entry.quota]:
                selected.append(
                    QuestionWithLevel(
                        **question.model_dump(),
                        competency_name=definition.name,
                        competency_level=entry.level,
                    )
                )
        return selected

    def _fetch(self, name: str, limit: int):
        if self._runner is None:
            return list(self._questions.find_by_competency(name, limit))
        return list(self._runner.call(self._questions.find_by_competency, name, limit, operation="find_by_competency"))


__all__ = ["QuestionSelector"]
