"""In-memory caches shared across engine services."""

from .catalog import CompetencyCatalog
from .competency_cache import DEFAULT_TTL_SECONDS, CompetencyCache

__all__ = ["CompetencyCache", "CompetencyCatalog", "DEFAULT_TTL_SECONDS"]
