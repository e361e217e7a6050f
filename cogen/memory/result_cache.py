"""Fingerprint cache for finalized generation results.

Maps a directive fingerprint to the first GenerationResult finalized for it.
Insertion order is kept so a capacity bound can evict the oldest entries.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Callable, Optional

from cogen.core.models import GenerationResult

logger = logging.getLogger("cogen.memory.result_cache")

EvictionHook = Callable[[str, GenerationResult], None]


class FingerprintCache:
    """Thread-safe first-writer-wins cache keyed by fingerprint.

    Args:
        max_entries: Optional capacity bound. None keeps the cache unbounded.
            When set, inserting past the bound evicts the oldest insertion.
        on_evict: Optional callback invoked (outside the lock) for each
            evicted entry.
    """

    def __init__(
        self,
        max_entries: Optional[int] = None,
        on_evict: Optional[EvictionHook] = None,
    ):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1 or None")
        self.max_entries = max_entries
        self._on_evict = on_evict
        self._entries: OrderedDict[str, GenerationResult] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, fingerprint: str) -> Optional[GenerationResult]:
        with self._lock:
            return self._entries.get(fingerprint)

    def put(self, fingerprint: str, result: GenerationResult) -> GenerationResult:
        """Insert result unless an entry already exists.

        Returns:
            The entry now stored for fingerprint: the existing one if another
            writer got there first, otherwise result.
        """
        evicted: list[tuple[str, GenerationResult]] = []
        with self._lock:
            existing = self._entries.get(fingerprint)
            if existing is not None:
                return existing
            self._entries[fingerprint] = result
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted.append(self._entries.popitem(last=False))

        for key, old in evicted:
            logger.debug("Evicted cache entry %s", key[:12])
            if self._on_evict is not None:
                self._on_evict(key, old)
        return result

    def evict(self, fingerprint: str) -> Optional[GenerationResult]:
        """Explicitly drop an entry so the next request recomputes it."""
        with self._lock:
            removed = self._entries.pop(fingerprint, None)
        if removed is not None and self._on_evict is not None:
            self._on_evict(fingerprint, removed)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def fingerprints(self) -> list[str]:
        """Fingerprints in insertion order (oldest first)."""
        with self._lock:
            return list(self._entries)

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
