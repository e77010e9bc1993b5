"""Memoization caches for tokenization, bigram decomposition, and diffs.

Caches grow without bound. Callers needing bounded memory should call
``BigramClassifier.clear_cache()`` periodically and accept the cost of
recomputation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Generic, Hashable, TypeVar

from .models import DiffResult
from .preprocessing import Bigram

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class MemoCache(Generic[K, V]):
    """Unbounded dict-backed memo with hit/miss counters."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._data: dict[K, V] = {}
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, key: K, factory: Callable[[], V]) -> V:
        try:
            value = self._data[key]
        except KeyError:
            self.misses += 1
            value = factory()
            self._data[key] = value
            return value
        self.hits += 1
        return value

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MemoCache({self.name!r}, size={len(self)}, hits={self.hits}, misses={self.misses})"


@dataclass
class ClassifierCaches:
    """The three caches owned by a classifier instance.

    Attributes:
        tokens: Raw message text -> vocabulary ids.
        bigrams: Token id tuple -> adjacent id pairs.
        diffs: Ordered word-id pair -> diff result.
    """

    tokens: MemoCache[str, tuple[int, ...]] = field(
        default_factory=lambda: MemoCache("tokens")
    )
    bigrams: MemoCache[tuple[int, ...], tuple[Bigram, ...]] = field(
        default_factory=lambda: MemoCache("bigrams")
    )
    diffs: MemoCache[Bigram, DiffResult] = field(default_factory=lambda: MemoCache("diffs"))

    def clear(self) -> None:
        self.tokens.clear()
        self.bigrams.clear()
        self.diffs.clear()

    def sizes(self) -> dict[str, int]:
        return {
            "tokens": len(self.tokens),
            "bigrams": len(self.bigrams),
            "diffs": len(self.diffs),
        }
