"""Exceptions raised by the competency engine."""

from __future__ import annotations


class CompetencyEngineError(Exception):
    """Base class for engine failures surfaced to callers."""


class StoreUnavailable(CompetencyEngineError):
    """The competency store could not be reached; callers should retry with backoff."""


class StoreTimeout(StoreUnavailable):
    """A store call did not finish within the configured timeout."""


__all__ = ["CompetencyEngineError", "StoreTimeout", "StoreUnavailable"]
