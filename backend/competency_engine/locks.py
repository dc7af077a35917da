"""Per-key lock registry."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator


@dataclass
class _Slot:
    lock: threading.RLock = field(default_factory=threading.RLock)
    holders: int = 0


class KeyedLocks:
    """Hands out one re-entrant lock per key so unrelated keys never contend.

    A key's lock only exists while some thread holds or waits for it; the last
    one out removes it. The registry guard is never held while waiting on a
    key lock.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._slots: Dict[str, _Slot] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = _Slot()
                self._slots[key] = slot
            slot.holders += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._guard:
                slot.holders -= 1
                if slot.holders == 0 and self._slots.get(key) is slot:
                    del self._slots[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._slots)


__all__ = ["KeyedLocks"]
