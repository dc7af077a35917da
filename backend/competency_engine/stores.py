"""Store interfaces consumed by the engine and their database-backed adapters."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from concurrent.futures import wait as wait_for_futures
from typing import Any, Callable, List, Optional, Protocol, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from .competency import AnswerRecord, CompetencyDefinition, Question, UserCompetencyRecord
from .db.session import session_scope
from .errors import StoreTimeout, StoreUnavailable
from .repositories import competency_catalog, questions, user_answers, user_competencies

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CompetencyRepository(Protocol):
    def find_all_for_profile(self, profile_id: str) -> List[UserCompetencyRecord]:  # pragma: no cover - protocol
        ...

    def find_level(self, profile_id: str, competency_id: str) -> Optional[int]:  # pragma: no cover - protocol
        ...

    def upsert(self, profile_id: str, competency_id: str, level: int) -> Any:  # pragma: no cover - protocol
        ...

    def delete(self, profile_id: str, competency_id: str) -> bool:  # pragma: no cover - protocol
        ...


class CompetencyCatalogRepository(Protocol):
    def list_all(self) -> List[CompetencyDefinition]:  # pragma: no cover - protocol
        ...


class QuestionRepository(Protocol):
    def find_by_competency(self, name: str, limit: int) -> List[Question]:  # pragma: no cover - protocol
        ...


class AnswerRepository(Protocol):
    def record_answer(
        self,
        profile_id: str,
        competency_id: str,
        question_id: str,
        is_correct: bool,
    ) -> Any:  # pragma: no cover - protocol
        ...


class StoreCallRunner:
    """Runs blocking store calls on a bounded pool and waits with a timeout."""

    def __init__(self, *, timeout_seconds: float, max_workers: int = 8) -> None:
        if timeout_seconds <= 0:
            raise ValueError("Store timeout must be positive.")
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="competency-store")

    def submit(self, fn: Callable[..., T], *args: Any) -> "Future[T]":
        return self._executor.submit(fn, *args)

    def wait(self, future: "Future[T]", *, operation: str) -> T:
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError as exc:
            logger.warning("Store call %s exceeded %.2fs", operation, self.timeout_seconds)
            raise StoreTimeout(f"{operation} timed out after {self.timeout_seconds:.2f}s") from exc

    def call(self, fn: Callable[..., T], *args: Any, operation: str) -> T:
        return self.wait(self.submit(fn, *args), operation=operation)

    def drain(self, future: "Future[Any]", *, operation: str) -> None:
        """Wait for ``future`` to finish without re-raising its outcome."""
        _, pending = wait_for_futures([future], timeout=self.timeout_seconds)
        if pending:
            logger.warning("Store call %s still running after %.2fs", operation, self.timeout_seconds)
            raise StoreTimeout(f"{operation} still running after {self.timeout_seconds:.2f}s")

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


class DatabaseCompetencyStore:
    """Database-backed CompetencyRepository."""

    def find_all_for_profile(self, profile_id: str) -> List[UserCompetencyRecord]:
        try:
            with session_scope(commit=False) as session:
                return user_competencies.find_all_for_profile(session, profile_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Failed to load competencies for {profile_id}: {exc}") from exc

    def find_level(self, profile_id: str, competency_id: str) -> Optional[int]:
        try:
            with session_scope(commit=False) as session:
                return user_competencies.find_level(session, profile_id, competency_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Failed to read competency {competency_id}: {exc}") from exc

    def upsert(self, profile_id: str, competency_id: str, level: int) -> UserCompetencyRecord:
        try:
            with session_scope() as session:
                return user_competencies.upsert(session, profile_id, competency_id, level)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Failed to store competency {competency_id}: {exc}") from exc

    def delete(self, profile_id: str, competency_id: str) -> bool:
        try:
            with session_scope() as session:
                return user_competencies.delete(session, profile_id, competency_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Failed to delete competency {competency_id}: {exc}") from exc


class DatabaseCatalogStore:
    def list_all(self) -> List[CompetencyDefinition]:
        try:
            with session_scope(commit=False) as session:
                return competency_catalog.list_all(session)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Failed to load competency catalog: {exc}") from exc


class DatabaseQuestionStore:
    def find_by_competency(self, name: str, limit: int) -> List[Question]:
        try:
            with session_scope(commit=False) as session:
                return questions.find_by_competency(session, name, limit)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Failed to load questions for {name}: {exc}") from exc


class DatabaseAnswerStore:
    def record_answer(
        self,
        profile_id: str,
        competency_id: str,
        question_id: str,
        is_correct: bool,
    ) -> AnswerRecord:
        try:
            with session_scope() as session:
                return user_answers.record(session, profile_id, competency_id, question_id, is_correct)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Failed to record answer to {question_id}: {exc}") from exc


__all__ = [
    "AnswerRepository",
    "CompetencyCatalogRepository",
    "CompetencyRepository",
    "DatabaseAnswerStore",
    "DatabaseCatalogStore",
    "DatabaseCompetencyStore",
    "DatabaseQuestionStore",
    "QuestionRepository",
    "StoreCallRunner",
]
