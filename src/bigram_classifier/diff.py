"""Cold-start estimator for bigrams the model has not reinforced yet."""

from __future__ import annotations

from typing import Optional

from .cache import MemoCache
from .models import NO_OUTPUT, DiffResult
from .vocabulary import DatasetStatistics

_NO_SIGNAL = DiffResult(favored_output=NO_OUTPUT, weight=0.0)


class DiffModel:
    """Resolve which output a word pair jointly favors, and how strongly.

    Rules, for words ``a`` and ``b`` with statistics entries:

    - same dominant output: that output, weight ``conf(a) + conf(b)``;
    - different outputs: the word with the larger confidence wins (ties go
      to ``b``), weight ``|conf(a) - conf(b)|``;
    - only one word known: its own output and confidence;
    - neither known: no signal (``-1``, weight 0).

    Results are memoized by the ordered pair, so the cache must be reset
    whenever the statistics change.
    """

    def __init__(
        self,
        statistics: Optional[DatasetStatistics] = None,
        cache: Optional[MemoCache] = None,
    ) -> None:
        self.statistics = statistics or DatasetStatistics()
        self.cache = cache if cache is not None else MemoCache("diffs")

    def reset(self, statistics: DatasetStatistics) -> None:
        """Swap in new statistics and drop memoized results."""
        self.statistics = statistics
        self.cache.clear()

    def diff(self, word_a: int, word_b: int) -> DiffResult:
        return self.cache.get_or_compute(
            (word_a, word_b), lambda: self._resolve(word_a, word_b)
        )

    def _resolve(self, word_a: int, word_b: int) -> DiffResult:
        entry_a = self.statistics.entry(word_a)
        entry_b = self.statistics.entry(word_b)

        if entry_a is not None and entry_b is not None:
            if entry_a.dominant_output == entry_b.dominant_output:
                return DiffResult(
                    entry_a.dominant_output,
                    entry_a.confidence_value + entry_b.confidence_value,
                )
            if entry_a.confidence_value > entry_b.confidence_value:
                return DiffResult(
                    entry_a.dominant_output,
                    entry_a.confidence_value - entry_b.confidence_value,
                )
            return DiffResult(
                entry_b.dominant_output,
                entry_b.confidence_value - entry_a.confidence_value,
            )
        if entry_a is not None:
            return DiffResult(entry_a.dominant_output, entry_a.confidence_value)
        if entry_b is not None:
            return DiffResult(entry_b.dominant_output, entry_b.confidence_value)
        return _NO_SIGNAL
