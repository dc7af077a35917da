"""Read-through TTL cache of per-profile competency levels."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from ..competency import normalize_profile_id, sparse_levels
from ..locks import KeyedLocks
from ..stores import CompetencyRepository, StoreCallRunner
from ..telemetry import emit_event

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600.0
SWEEP_EVERY_MISSES = 256


@dataclass
class _CacheEntry:
    profile_id: str
    levels: Dict[str, int]
    expires_at: float


@dataclass
class _Flight:
    future: "Future[Dict[str, int]]"
    abandoned: bool = False
    settled: bool = False


@dataclass
class _Counters:
    hits: int = 0
    misses: int = 0
    loads: int = 0
    discarded: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def bump(self, name: str) -> int:
        with self.lock:
            value = getattr(self, name) + 1
            setattr(self, name, value)
            return value


class CompetencyCache:
    """Process-local cache of the sparse level map for each profile.

    Entries hold only persisted (level > 0) competencies. A miss or an expired
    entry triggers one store read per profile; concurrent callers for the same
    profile share that read. Store failures are raised to every waiting caller
    and nothing is cached for them.
    """

    def __init__(
        self,
        repository: CompetencyRepository,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        runner: Optional[StoreCallRunner] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("Cache TTL must be positive.")
        self._repository = repository
        self._ttl = ttl_seconds
        self._runner = runner or StoreCallRunner(timeout_seconds=5.0)
        self._clock = clock
        self._locks = KeyedLocks()
        self._entries: Dict[str, _CacheEntry] = {}
        self._inflight: Dict[str, _Flight] = {}
        self._counters = _Counters()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, profile_id: str) -> Dict[str, int]:
        key = normalize_profile_id(profile_id)
        with self._locks.hold(key):
            entry = self._entries.get(key)
            expired = False
            if entry is not None:
                if self._clock() < entry.expires_at:
                    self._counters.bump("hits")
                    return dict(entry.levels)
                del self._entries[key]
                expired = True
            flight = self._inflight.get(key)
            sweep = False
            if flight is None:
                flight = self._start_flight(key, expired=expired)
                sweep = self._counters.misses % SWEEP_EVERY_MISSES == 0

        if sweep:
            self.purge_expired()
        levels = self._runner.wait(flight.future, operation="find_all_for_profile")
        self._settle(key, flight)
        return dict(levels)

    def invalidate(self, profile_id: str) -> None:
        key = normalize_profile_id(profile_id)
        with self._locks.hold(key):
            dropped = self._entries.pop(key, None) is not None
            flight = self._inflight.pop(key, None)
            if flight is not None:
                flight.abandoned = True
        logger.debug("Invalidated competency cache for %s (entry_dropped=%s)", key, dropped)

    def clear(self) -> None:
        keys = set(self._entries.copy()) | set(self._inflight.copy())
        for key in keys:
            self.invalidate(key)
        logger.info("Cleared competency cache (%d profiles)", len(keys))

    def purge_expired(self) -> int:
        """Drop expired entries of profiles that are no longer being read."""
        purged = 0
        for key in list(self._entries.copy()):
            with self._locks.hold(key):
                entry = self._entries.get(key)
                if entry is not None and self._clock() >= entry.expires_at:
                    del self._entries[key]
                    purged += 1
        if purged:
            logger.debug("Purged %d expired competency cache entries", purged)
        return purged

    def contains(self, profile_id: str) -> bool:
        key = normalize_profile_id(profile_id)
        with self._locks.hold(key):
            entry = self._entries.get(key)
            return entry is not None and self._clock() < entry.expires_at

    def stats(self) -> Dict[str, int]:
        with self._counters.lock:
            return {
                "entries": len(self._entries),
                "inflight": len(self._inflight),
                "locks": len(self._locks),
                "hits": self._counters.hits,
                "misses": self._counters.misses,
                "loads": self._counters.loads,
                "discarded": self._counters.discarded,
            }

    def _start_flight(self, key: str, *, expired: bool) -> _Flight:
        self._counters.bump("misses")
        future = self._runner.submit(self._load, key)
        flight = _Flight(future=future)
        self._inflight[key] = flight
        future.add_done_callback(lambda _done: self._settle(key, flight))
        emit_event("competency_cache_miss", profile_id=key, expired=expired)
        return flight

    def _load(self, key: str) -> Dict[str, int]:
        records = self._repository.find_all_for_profile(key)
        self._counters.bump("loads")
        return sparse_levels(records)

    def _settle(self, key: str, flight: _Flight) -> None:
        with self._locks.hold(key):
            if flight.settled:
                return
            flight.settled = True
            if self._inflight.get(key) is flight:
                del self._inflight[key]
            future = flight.future
            if future.cancelled() or future.exception() is not None:
                return
            if flight.abandoned:
                self._counters.bump("discarded")
                logger.debug("Discarding competency load for %s that raced an invalidation", key)
                return
            self._entries[key] = _CacheEntry(
                profile_id=key,
                levels=dict(future.result()),
                expires_at=self._clock() + self._ttl,
            )


__all__ = ["CompetencyCache", "DEFAULT_TTL_SECONDS"]
