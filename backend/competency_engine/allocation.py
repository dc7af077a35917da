"""Question budget allocation across competency levels."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from .competency import LEVELS, MAX_LEVEL, MIN_LEVEL

logger = logging.getLogger(__name__)

# Lower mastery gets more practice; mastered competencies are never re-served.
DEFAULT_LEVEL_WEIGHTS: Dict[int, int] = {0: 3, 1: 2, 2: 1, 3: 0}
PRIORITY_LEVELS: Tuple[int, ...] = (2, 1, 0)
TOP_UP_LEVEL = 0


@dataclass(frozen=True)
class AllocationEntry:
    competency_id: str
    level: int
    quota: int


@dataclass
class AllocationPlan:
    """Ordered per-competency quotas: level 2 first, then 1, then 0."""

    max_questions: int
    entries: List[AllocationEntry] = field(default_factory=list)
    level_totals: Dict[int, int] = field(default_factory=dict)

    def __iter__(self) -> Iterator[AllocationEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)

    @property
    def total(self) -> int:
        return sum(entry.quota for entry in self.entries)

    def as_dict(self) -> Dict[str, int]:
        return {entry.competency_id: entry.quota for entry in self.entries}

    def quota_for(self, competency_id: str) -> int:
        for entry in self.entries:
            if entry.competency_id == competency_id:
                return entry.quota
        return 0


def split_evenly(total: int, count: int) -> List[int]:
    """Split ``total`` into ``count`` shares; the first ``total % count`` get one extra."""
    if count <= 0 or total <= 0:
        return [0] * max(count, 0)
    base, remainder = divmod(total, count)
    return [base + (1 if index < remainder else 0) for index in range(count)]


class AllocationEngine:
    """Turns effective competency levels and a question budget into quotas.

    Levels are processed in priority order (2, then 1, then 0). Each level asks
    for ``count * weight`` questions; a level that does not fit receives the
    remaining budget and planning stops there. Leftover budget tops up the
    level-0 competencies.
    """

    def __init__(self, *, level_weights: Optional[Mapping[int, int]] = None) -> None:
        weights = dict(DEFAULT_LEVEL_WEIGHTS)
        if level_weights:
            weights.update(level_weights)
        for level, weight in weights.items():
            if level not in LEVELS:
                raise ValueError(f"Unknown competency level {level} in weights.")
            if weight < 0:
                raise ValueError(f"Weight for level {level} cannot be negative.")
        self._weights = weights

    @property
    def level_weights(self) -> Dict[int, int]:
        return dict(self._weights)

    def plan(self, levels_by_competency: Mapping[str, int], max_questions: int) -> AllocationPlan:
        plan = AllocationPlan(max_questions=max(max_questions, 0))
        if max_questions <= 0:
            return plan
        if not levels_by_competency:
            logger.warning("No competencies available; returning an empty allocation plan.")
            return plan

        groups = self._group_by_level(levels_by_competency)
        remaining = max_questions
        level_totals: Dict[int, int] = {}

        for level in PRIORITY_LEVELS:
            competencies = groups[level]
            weight = self._weights.get(level, 0)
            if not competencies or weight <= 0:
                continue
            demand = len(competencies) * weight
            granted = demand if demand <= remaining else remaining
            level_totals[level] = granted
            remaining -= granted
            if remaining <= 0:
                break

        quotas: Dict[int, List[int]] = {
            level: split_evenly(total, len(groups[level])) for level, total in level_totals.items()
        }

        top_up = groups[TOP_UP_LEVEL]
        if remaining > 0 and top_up:
            extra_each = math.ceil(remaining / len(top_up))
            shares = quotas.setdefault(TOP_UP_LEVEL, [0] * len(top_up))
            for index in range(len(top_up)):
                if remaining <= 0:
                    break
                extra = min(extra_each, remaining)
                shares[index] += extra
                remaining -= extra
            level_totals[TOP_UP_LEVEL] = sum(shares)

        for level in PRIORITY_LEVELS:
            shares = quotas.get(level)
            if not shares:
                continue
            for competency_id, quota in zip(groups[level], shares):
                if quota > 0:
                    plan.entries.append(AllocationEntry(competency_id=competency_id, level=level, quota=quota))

        plan.level_totals = {level: total for level, total in level_totals.items() if total > 0}
        logger.debug(
            "Planned %d of %d questions across %d competencies (levels=%s)",
            plan.total,
            max_questions,
            len(plan.entries),
            plan.level_totals,
        )
        return plan

    @staticmethod
    def _group_by_level(levels_by_competency: Mapping[str, int]) -> Dict[int, List[str]]:
        groups: Dict[int, List[str]] = {level: [] for level in LEVELS}
        for competency_id, level in levels_by_competency.items():
            if not MIN_LEVEL <= level <= MAX_LEVEL:
                raise ValueError(f"Competency {competency_id} has out-of-range level {level}.")
            groups[level].append(competency_id)
        return groups


def group_by_level(levels_by_competency: Mapping[str, int]) -> Dict[int, List[str]]:
    return AllocationEngine._group_by_level(levels_by_competency)


__all__ = [
    "AllocationEngine",
    "AllocationEntry",
    "AllocationPlan",
    "DEFAULT_LEVEL_WEIGHTS",
    "PRIORITY_LEVELS",
    "group_by_level",
    "split_evenly",
]
