"""
Memoization of normalization tables keyed by (loads, population, policy).

The cache never changes results. Tables are immutable, so a cached table can
be handed to any number of callers. A lock per key makes sure a table shared
between threads is computed at most once.
"""
from __future__ import annotations

import threading
from typing import Any, Dict, List, Sequence, Tuple

from .recurrence import (
    DEFAULT_RESCALE_THRESHOLD,
    NormalizationTable,
    compute_normalization,
    validate_loads,
    validate_policy,
    validate_population,
    validate_rescale_threshold,
)

CacheKey = Tuple[Tuple[float, ...], int, str, float]


class NormalizationCache:
    def __init__(self, max_entries: int = 256) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.max_entries = int(max_entries)
        self._tables: Dict[CacheKey, NormalizationTable] = {}
        self._order: List[CacheKey] = []
        self._lock = threading.Lock()
        self._key_locks: Dict[CacheKey, threading.Lock] = {}
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    @staticmethod
    def make_key(
        loads: Sequence[float],
        population: int,
        policy: str = "direct",
        rescale_threshold: float = DEFAULT_RESCALE_THRESHOLD,
    ) -> CacheKey:
        x = validate_loads(loads)
        n_jobs = validate_population(population)
        validate_policy(policy)
        # Threshold only matters for the rescale policy.
        threshold = validate_rescale_threshold(rescale_threshold) if policy == "rescale" else 0.0
        return (tuple(float(v) for v in x), n_jobs, policy, threshold)

    def get(
        self,
        loads: Sequence[float],
        population: int,
        policy: str = "direct",
        rescale_threshold: float = DEFAULT_RESCALE_THRESHOLD,
    ) -> NormalizationTable:
        key = self.make_key(loads, population, policy, rescale_threshold)
        with self._lock:
            table = self._tables.get(key)
            if table is not None:
                self.hits += 1
                return table
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            with self._lock:
                table = self._tables.get(key)
                if table is not None:
                    self.hits += 1
                    return table
                self.misses += 1
            try:
                table = compute_normalization(list(key[0]), key[1], policy=policy, rescale_threshold=rescale_threshold)
                with self._lock:
                    self._store(key, table)
            finally:
                with self._lock:
                    self._key_locks.pop(key, None)
            return table

    def _store(self, key: CacheKey, table: NormalizationTable) -> None:
        self._tables[key] = table
        self._order.append(key)
        while len(self._order) > self.max_entries:
            old = self._order.pop(0)
            self._tables.pop(old, None)
            self.evictions += 1

    def clear(self) -> None:
        with self._lock:
            self._tables.clear()
            self._order.clear()
        self.reset_stats()

    def reset_stats(self) -> None:
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def __len__(self) -> int:
        return len(self._tables)

    def stats(self) -> Dict[str, Any]:
        return {
            "max": self.max_entries,
            "size": len(self._tables),
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
        }
