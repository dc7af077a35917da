"""Process-lifetime cache of the competency catalog."""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Tuple

from ..competency import CompetencyDefinition
from ..stores import CompetencyCatalogRepository, StoreCallRunner

logger = logging.getLogger(__name__)


class CompetencyCatalog:
    """Loads competency definitions once and serves them in catalog order.

    An empty catalog is not remembered, so seeding definitions later is picked
    up on the next read without an explicit invalidation.
    """

    def __init__(
        self,
        repository: CompetencyCatalogRepository,
        *,
        runner: Optional[StoreCallRunner] = None,
    ) -> None:
        self._repository = repository
        self._runner = runner
        self._lock = threading.Lock()
        self._definitions: Optional[Tuple[CompetencyDefinition, ...]] = None
        self._by_id: Dict[str, CompetencyDefinition] = {}

    @property
    def loaded(self) -> bool:
        return self._definitions is not None

    def definitions(self) -> List[CompetencyDefinition]:
        cached = self._definitions
        if cached is not None:
            return list(cached)
        with self._lock:
            if self._definitions is None:
                loaded = self._fetch()
                if not loaded:
                    logger.warning("Competency catalog is empty; nothing can be allocated.")
                    return []
                self._by_id = {definition.id: definition for definition in loaded}
                self._definitions = tuple(loaded)
                logger.info("Loaded %d competency definitions", len(loaded))
            return list(self._definitions)

    def get(self, competency_id: str) -> Optional[CompetencyDefinition]:
        if self._definitions is None:
            self.definitions()
        return self._by_id.get(competency_id)

    def require(self, competency_id: str) -> CompetencyDefinition:
        definition = self.get(competency_id)
        if definition is None:
            raise LookupError(f"Competency '{competency_id}' is not in the catalog.")
        return definition

    def invalidate(self) -> None:
        with self._lock:
            self._definitions = None
            self._by_id = {}

    def _fetch(self) -> List[CompetencyDefinition]:
        if self._runner is None:
            return list(self._repository.list_all())
        return list(self._runner.call(self._repository.list_all, operation="list_all"))


__all__ = ["CompetencyCatalog"]
