# chess_review/services/evaluation_cache.py
"""
A bounded, in-memory, least-recently-used store of engine evaluations.

Keys are the full `CacheKey` 4-tuple (position, depth, candidate-line count,
time budget), so requests that differ in any search parameter never share an
entry. Entries do not expire with time; they are only evicted when the cache
is full.
"""
from collections import OrderedDict
from typing import Optional

from chess_review.types import CacheKey, EvaluationResult


class EvaluationCache:
    """An LRU mapping from `CacheKey` to `EvaluationResult`."""

    def __init__(self, max_entries: int = 10_000):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._entries: "OrderedDict[CacheKey, EvaluationResult]" = OrderedDict()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get(self, key: CacheKey) -> Optional[EvaluationResult]:
        """Returns the cached result and marks it as most recently used."""
        result = self._entries.get(key)
        if result is not None:
            self._entries.move_to_end(key)
        return result

    def set(self, key: CacheKey, value: EvaluationResult) -> None:
        """Stores a result, evicting the least recently used entry when full."""
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
