"""Connection pool observability for the competency store.

Store calls run on worker threads with a timeout, so a pool that stays
exhausted shows up as ``StoreTimeout`` errors at the API. The counters kept
here say whether that is the pool: ``in_use`` is the number of connections
checked out right now and ``peak_in_use`` the highest that number has been.
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, field
from typing import Dict

from sqlalchemy import event
from sqlalchemy.engine import Engine

from ..telemetry import emit_event


@dataclass
class PoolUsage:
    connects: int = 0
    checkouts: int = 0
    checkins: int = 0
    in_use: int = 0
    peak_in_use: int = 0
    last_report: float = 0.0
    guard: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def counters(self) -> Dict[str, int]:
        with self.guard:
            return {
                "connects": self.connects,
                "checkouts": self.checkouts,
                "checkins": self.checkins,
                "in_use": self.in_use,
                "peak_in_use": self.peak_in_use,
            }


_USAGE_BY_ENGINE: Dict[int, PoolUsage] = {}
_TELEMETRY_INTERVAL = float(os.getenv("COMPETENCY_DB_TELEMETRY_INTERVAL", "60"))


def instrument_engine(engine: Engine) -> None:
    """Track pool usage for ``engine`` and report it at most once per interval."""
    key = id(engine)
    if key in _USAGE_BY_ENGINE:
        return
    usage = PoolUsage()
    _USAGE_BY_ENGINE[key] = usage

    def report(trigger: str) -> None:
        now = time.time()
        with usage.guard:
            if _TELEMETRY_INTERVAL > 0 and now - usage.last_report < _TELEMETRY_INTERVAL:
                return
            usage.last_report = now
        emit_event("db_pool_status", status=_pool_status(engine), trigger=trigger, **usage.counters())

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        with usage.guard:
            usage.connects += 1
        report("connect")

    @event.listens_for(engine, "checkout")
    def _on_checkout(dbapi_connection, connection_record, connection_proxy) -> None:  # type: ignore[no-untyped-def]
        with usage.guard:
            usage.checkouts += 1
            usage.in_use += 1
            usage.peak_in_use = max(usage.peak_in_use, usage.in_use)
        report("checkout")

    @event.listens_for(engine, "checkin")
    def _on_checkin(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        with usage.guard:
            usage.checkins += 1
            usage.in_use = max(usage.in_use - 1, 0)


def get_pool_snapshot(engine: Engine) -> Dict[str, object]:
    usage = _USAGE_BY_ENGINE.get(id(engine))
    snapshot: Dict[str, object] = {"status": _pool_status(engine)}
    snapshot.update(usage.counters() if usage else PoolUsage().counters())
    return snapshot


def _pool_status(engine: Engine) -> str:
    try:
        return engine.pool.status()  # type: ignore[no-untyped-call]
    except Exception as exc:  # pragma: no cover - pool implementations vary
        return f"unavailable: {exc}"


__all__ = [
    "PoolUsage",
    "get_pool_snapshot",
    "instrument_engine",
]
