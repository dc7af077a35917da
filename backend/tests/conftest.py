from __future__ import annotations

import os
import threading
from typing import Dict, List, Optional, Tuple

import pytest

os.environ.setdefault("COMPETENCY_DATABASE_URL", "sqlite://")

from competency_engine.cache import CompetencyCache, CompetencyCatalog
from competency_engine.competency import AnswerRecord, CompetencyDefinition, Question, UserCompetencyRecord
from competency_engine.dynamic_questions import DynamicQuestionService
from competency_engine.level_updater import LevelUpdater
from competency_engine.question_selector import QuestionSelector
from competency_engine.stores import StoreCallRunner
from competency_engine.telemetry import clear_listeners


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryCompetencyStore:
    """Sparse level store that counts reads and can be told to fail or stall."""

    def __init__(self) -> None:
        self.levels: Dict[Tuple[str, str], int] = {}
        self.reads = 0
        self.writes: List[Tuple[str, str, str, Optional[int]]] = []
        self.read_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.gate: Optional[threading.Event] = None
        self.write_gate: Optional[threading.Event] = None
        self.entered = threading.Event()
        self._lock = threading.Lock()

    def seed(self, profile_id: str, competency_id: str, level: int) -> None:
        self.levels[(profile_id, competency_id)] = level

    def find_all_for_profile(self, profile_id: str) -> List[UserCompetencyRecord]:
        with self._lock:
            self.reads += 1
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.read_error is not None:
            raise self.read_error
        return [
            UserCompetencyRecord(profile_id=owner, competency_id=competency_id, level=level)
            for (owner, competency_id), level in sorted(self.levels.items())
            if owner == profile_id and level > 0
        ]

    def find_level(self, profile_id: str, competency_id: str) -> Optional[int]:
        if self.read_error is not None:
            raise self.read_error
        return self.levels.get((profile_id, competency_id))

    def _hold_write(self) -> None:
        if self.write_gate is not None:
            self.write_gate.wait(timeout=5)

    def upsert(self, profile_id: str, competency_id: str, level: int) -> None:
        self._hold_write()
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(("upsert", profile_id, competency_id, level))
        self.levels[(profile_id, competency_id)] = level

    def delete(self, profile_id: str, competency_id: str) -> bool:
        self._hold_write()
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(("delete", profile_id, competency_id, None))
        return self.levels.pop((profile_id, competency_id), None) is not None


class InMemoryAnswerStore:
    def __init__(self) -> None:
        self.answers: List[AnswerRecord] = []
        self.error: Optional[Exception] = None

    def record_answer(self, profile_id: str, competency_id: str, question_id: str, is_correct: bool) -> AnswerRecord:
        if self.error is not None:
            raise self.error
        record = AnswerRecord(
            profile_id=profile_id,
            competency_id=competency_id,
            question_id=question_id,
            is_correct=is_correct,
        )
        self.answers.append(record)
        return record


class InMemoryCatalogStore:
    def __init__(self, definitions: List[CompetencyDefinition]) -> None:
        self.definitions = list(definitions)
        self.calls = 0

    def list_all(self) -> List[CompetencyDefinition]:
        self.calls += 1
        return list(self.definitions)


class InMemoryQuestionStore:
    def __init__(self) -> None:
        self.by_name: Dict[str, List[Question]] = {}
        self.requests: List[Tuple[str, int]] = []

    def add(self, definition: CompetencyDefinition, count: int) -> None:
        bucket = self.by_name.setdefault(definition.name, [])
        for index in range(count):
            bucket.append(
                Question(
                    question_id=f"{definition.id}-q{len(bucket) + 1}",
                    competency_id=definition.id,
                    title=f"{definition.name} #{index + 1}",
                    statement=f"Explain {definition.name.lower()} case {index + 1}.",
                    options=["A", "B", "C", "D"],
                    correct_option="A",
                )
            )

    def find_by_competency(self, name: str, limit: int) -> List[Question]:
        self.requests.append((name, limit))
        return list(self.by_name.get(name, [])[: max(limit, 0)])


def make_definitions() -> List[CompetencyDefinition]:
    return [
        CompetencyDefinition(id="comp-a", code="ALG", name="Algebra"),
        CompetencyDefinition(id="comp-b", code="GEO", name="Geometry"),
        CompetencyDefinition(id="comp-c", code="PRB", name="Probability"),
        CompetencyDefinition(id="comp-d", code="STA", name="Statistics"),
    ]


@pytest.fixture(autouse=True)
def _reset_telemetry():
    yield
    clear_listeners()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def runner():
    store_runner = StoreCallRunner(timeout_seconds=2.0, max_workers=4)
    yield store_runner
    store_runner.shutdown()


@pytest.fixture
def definitions() -> List[CompetencyDefinition]:
    return make_definitions()


@pytest.fixture
def competency_store() -> InMemoryCompetencyStore:
    return InMemoryCompetencyStore()


@pytest.fixture
def catalog_store(definitions) -> InMemoryCatalogStore:
    return InMemoryCatalogStore(definitions)


@pytest.fixture
def question_store(definitions) -> InMemoryQuestionStore:
    store = InMemoryQuestionStore()
    for definition in definitions:
        store.add(definition, 10)
    return store


@pytest.fixture
def answer_store() -> InMemoryAnswerStore:
    return InMemoryAnswerStore()


@pytest.fixture
def cache(competency_store, runner, clock) -> CompetencyCache:
    return CompetencyCache(competency_store, ttl_seconds=600, runner=runner, clock=clock)


@pytest.fixture
def catalog(catalog_store, runner) -> CompetencyCatalog:
    return CompetencyCatalog(catalog_store, runner=runner)


@pytest.fixture
def service(cache, catalog, competency_store, question_store, answer_store, runner) -> DynamicQuestionService:
    return DynamicQuestionService(
        cache,
        catalog,
        QuestionSelector(question_store, catalog, runner=runner),
        LevelUpdater(competency_store, cache, runner=runner),
        default_max_questions=20,
        answers=answer_store,
    )
