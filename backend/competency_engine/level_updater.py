"""Applies answer outcomes to competency levels."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Any, Dict, Optional

from .cache.competency_cache import CompetencyCache
from .competency import MIN_LEVEL, LevelChange, next_level, normalize_profile_id, resolve_level
from .errors import StoreTimeout
from .locks import KeyedLocks
from .stores import CompetencyRepository, StoreCallRunner
from .telemetry import emit_event

logger = logging.getLogger(__name__)


class LevelUpdater:
    """Moves a competency one level up or down and writes it through to the store.

    Level 0 is stored as the absence of a row. The profile's cache entry is
    invalidated after every write attempt and once more when a write that
    outlived its timeout finally lands. Until then, further answers for the
    profile wait for that write before reading the current level.
    """

    def __init__(
        self,
        repository: CompetencyRepository,
        cache: CompetencyCache,
        *,
        runner: Optional[StoreCallRunner] = None,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._runner = runner
        self._locks = KeyedLocks()
        self._pending: Dict[str, "Future[Any]"] = {}
        self._pending_lock = threading.Lock()

    def apply_answer(self, profile_id: str, competency_id: str, is_correct: bool) -> LevelChange:
        key = normalize_profile_id(profile_id)
        with self._locks.hold(key):
            self._await_pending_write(key)
            try:
                previous = resolve_level(self._read("find_level", key, competency_id))
                new_level = next_level(previous, is_correct)
                if new_level == MIN_LEVEL:
                    self._write(key, "delete", key, competency_id)
                else:
                    self._write(key, "upsert", key, competency_id, new_level)
            finally:
                self._cache.invalidate(key)

        change = LevelChange(
            profile_id=key,
            competency_id=competency_id,
            previous_level=previous,
            new_level=new_level,
        )
        logger.info(
            "Competency %s for %s: %d -> %d (%s)",
            competency_id,
            key,
            previous,
            new_level,
            "correct" if is_correct else "incorrect",
        )
        emit_event(
            "competency_level_changed",
            profile_id=key,
            competency_id=competency_id,
            previous_level=previous,
            new_level=new_level,
            is_correct=is_correct,
        )
        return change

    def pending_writes(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def _read(self, operation: str, *args):
        method = getattr(self._repository, operation)
        if self._runner is None:
            return method(*args)
        return self._runner.call(method, *args, operation=operation)

    def _write(self, key: str, operation: str, *args) -> None:
        method = getattr(self._repository, operation)
        if self._runner is None:
            method(*args)
            return
        future = self._runner.submit(method, *args)
        future.add_done_callback(lambda done: self._write_landed(key, done))
        try:
            self._runner.wait(future, operation=operation)
        except StoreTimeout:
            with self._pending_lock:
                if not future.done():
                    self._pending[key] = future
            raise

    def _write_landed(self, key: str, future: "Future[Any]") -> None:
        with self._pending_lock:
            if self._pending.get(key) is future:
                del self._pending[key]
        self._cache.invalidate(key)

    def _await_pending_write(self, key: str) -> None:
        with self._pending_lock:
            pending = self._pending.get(key)
        if pending is None or self._runner is None:
            return
        self._runner.drain(pending, operation="pending level write")
        if not pending.cancelled() and pending.exception() is not None:
            logger.warning("Earlier level write for %s failed after timing out: %s", key, pending.exception())
        with self._pending_lock:
            if self._pending.get(key) is pending:
                del self._pending[key]


__all__ = ["LevelUpdater"]
