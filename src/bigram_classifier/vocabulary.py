"""Vocabulary construction and per-word dataset statistics.

The vocabulary is append-only: a stemmed word keeps the id it was first
given for the lifetime of the classifier. Statistics accumulate as well:
words of the dataset being aggregated get fresh counts, words seen only in
earlier datasets keep theirs, and the derived values are recomputed over
all of them:

- each word gets per-output co-occurrence counts,
- counts are normalized by each output's total word count,
- the word's *dominant output* is the label with the highest relative
  frequency and its *confidence value* is the ratio of the top two
  relative frequencies,
- ``max_weight`` averages the top ``median_max_weight`` fraction of those
  confidences and stands in for words seen with a single label,
- the balance vector ``mean(totals) / totals[i]`` damps frequent outputs.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Optional

from .exceptions import DatasetError
from .models import SENTINEL_CONFIDENCE, Label, TrainingRow, VocabularyEntry
from .preprocessing import Tokenizer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------


class Vocabulary:
    """Ordered, append-only list of stemmed words; index is the word id."""

    def __init__(self, words: Optional[Iterable[str]] = None) -> None:
        self._words: list[str] = []
        self._index: dict[str, int] = {}
        for word in words or ():
            self.add(word)

    def add(self, word: str) -> int:
        """Return the id of ``word``, appending it if unseen."""
        word_id = self._index.get(word)
        if word_id is None:
            word_id = len(self._words)
            self._words.append(word)
            self._index[word] = word_id
        return word_id

    def id_of(self, word: str) -> Optional[int]:
        return self._index.get(word)

    def word(self, word_id: int) -> str:
        return self._words[word_id]

    @property
    def words(self) -> list[str]:
        return list(self._words)

    def __len__(self) -> int:
        return len(self._words)

    def __contains__(self, word: object) -> bool:
        return word in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._words)


def coerce_rows(rows: Iterable[Any]) -> list[TrainingRow]:
    """Coerce raw rows to ``TrainingRow``, logging and skipping bad ones."""
    result: list[TrainingRow] = []
    for position, raw in enumerate(rows):
        try:
            result.append(TrainingRow.coerce(raw))
        except DatasetError as exc:
            logger.warning("Skipping malformed row %d: %s", position, exc)
    return result


def build_vocabulary(
    rows: Iterable[TrainingRow],
    vocabulary: Vocabulary,
    tokenizer: Tokenizer,
) -> int:
    """Append every unseen stemmed word of the dataset to the vocabulary.

    Returns:
        Number of words added.
    """
    before = len(vocabulary)
    for row in rows:
        for word in tokenizer.words(row.input):
            vocabulary.add(word)
    added = len(vocabulary) - before
    logger.debug("Vocabulary size %d (+%d)", len(vocabulary), added)
    return added


# ---------------------------------------------------------------------------
# Quantile helpers
# ---------------------------------------------------------------------------


def top_quantile_mean(values: Iterable[float], q: float) -> Optional[float]:
    """Mean of the largest ``ceil(n * q)`` values, or ``None`` if empty."""
    ordered = sorted(values, reverse=True)
    if not ordered:
        return None
    head = ordered[: math.ceil(len(ordered) * q)]
    return sum(head) / len(head)


def bottom_quantile_mean(values: Iterable[float], q: float) -> Optional[float]:
    """Mean of the smallest ``ceil(n * q)`` values, or ``None`` if empty."""
    ordered = sorted(values)
    if not ordered:
        return None
    head = ordered[: math.ceil(len(ordered) * q)]
    return sum(head) / len(head)


# ---------------------------------------------------------------------------
# Dataset statistics
# ---------------------------------------------------------------------------


@dataclass
class DatasetStatistics:
    """Aggregated view of a dataset over the vocabulary.

    Attributes:
        entries: Vocabulary id -> statistics, for every word aggregated so far.
        max_weight: High-quantile confidence used to scale diff weights.
        balance: Per-output class-imbalance correction factors.
        totals: Per-output word counts the balance was derived from.
    """

    entries: dict[int, VocabularyEntry] = field(default_factory=dict)
    max_weight: float = 1.0
    balance: list[float] = field(default_factory=list)
    totals: list[float] = field(default_factory=list)

    def entry(self, word_id: int) -> Optional[VocabularyEntry]:
        return self.entries.get(word_id)

    def to_dict(self) -> dict:
        return {
            "maxWeight": self.max_weight,
            "entries": {
                str(word_id): [
                    entry.dominant_output,
                    entry.confidence_value,
                    list(entry.per_output_counts),
                ]
                for word_id, entry in self.entries.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict, balance: list[float]) -> "DatasetStatistics":
        entries: dict[int, VocabularyEntry] = {}
        for key, (dominant, confidence, counts) in data.get("entries", {}).items():
            word_id = int(key)
            entries[word_id] = VocabularyEntry(
                id=word_id,
                dominant_output=int(dominant),
                confidence_value=float(confidence),
                per_output_counts=[float(c) for c in counts],
            )
        return cls(
            entries=entries,
            max_weight=float(data.get("maxWeight", 1.0)),
            balance=list(balance),
        )


def extend_outputs(rows: Iterable[TrainingRow], outputs: list[Label]) -> int:
    """Append labels not yet in ``outputs`` in first-seen order.

    Returns:
        Number of labels added.
    """
    known = set(outputs)
    added = 0
    for row in rows:
        if row.output not in known:
            known.add(row.output)
            outputs.append(row.output)
            added += 1
    return added


def aggregate(
    rows: list[TrainingRow],
    vocabulary: Vocabulary,
    tokenizer: Tokenizer,
    outputs: list[Label],
    median_max_weight: float = 0.06,
    previous: Optional[dict[int, VocabularyEntry]] = None,
) -> DatasetStatistics:
    """Compute per-word statistics and the balance vector for a dataset.

    ``outputs`` is extended in place with any new labels. Words missing
    from ``vocabulary`` are ignored, so ``build_vocabulary`` should run
    first.

    Entries in ``previous`` are carried over: words of the current dataset
    get fresh counts, every other word keeps the counts it had. Relative
    frequencies, ``max_weight`` and the balance are then derived from all
    retained entries.

    Args:
        rows: Full training dataset.
        vocabulary: Vocabulary providing word ids.
        tokenizer: Tokenizer used to split and stem row inputs.
        outputs: Known output labels (mutated).
        median_max_weight: Top fraction averaged into ``max_weight``.
        previous: Entries from earlier aggregations (not mutated).

    Returns:
        Fresh DatasetStatistics.
    """
    extend_outputs(rows, outputs)
    n_outputs = len(outputs)
    position = {label: i for i, label in enumerate(outputs)}

    current: dict[int, VocabularyEntry] = {}
    for row in rows:
        out = position[row.output]
        for word in tokenizer.words(row.input):
            word_id = vocabulary.id_of(word)
            if word_id is None:
                continue
            entry = current.get(word_id)
            if entry is None:
                entry = VocabularyEntry(id=word_id, per_output_counts=[0.0] * n_outputs)
                current[word_id] = entry
            entry.per_output_counts[out] += 1

    entries: dict[int, VocabularyEntry] = {}
    for word_id, old in (previous or {}).items():
        counts = list(old.per_output_counts[:n_outputs])
        counts.extend([0.0] * (n_outputs - len(counts)))
        entries[word_id] = VocabularyEntry(id=word_id, per_output_counts=counts)
    entries.update(current)

    totals = [0.0] * n_outputs
    for entry in entries.values():
        for i, count in enumerate(entry.per_output_counts):
            totals[i] += count

    for entry in entries.values():
        frequencies = [
            (i, count / totals[i] if totals[i] else 0.0)
            for i, count in enumerate(entry.per_output_counts)
        ]
        frequencies.sort(key=lambda item: item[1], reverse=True)
        entry.dominant_output = frequencies[0][0]
        if len(frequencies) > 1 and frequencies[1][1] > 0:
            entry.confidence_value = frequencies[0][1] / frequencies[1][1]
        else:
            entry.confidence_value = SENTINEL_CONFIDENCE

    confidences = [
        entry.confidence_value
        for entry in entries.values()
        if entry.confidence_value != SENTINEL_CONFIDENCE
    ]
    max_weight = top_quantile_mean(confidences, median_max_weight)
    if max_weight is None:
        max_weight = 1.0
    for entry in entries.values():
        if entry.confidence_value == SENTINEL_CONFIDENCE:
            entry.confidence_value = max_weight

    mean_total = sum(totals) / n_outputs if n_outputs else 0.0
    balance = [mean_total / total if total else 0.0 for total in totals]

    logger.debug(
        "Aggregated %d rows: %d words, %d outputs, max_weight=%.4f, balance=%s",
        len(rows),
        len(entries),
        n_outputs,
        max_weight,
        balance,
    )
    return DatasetStatistics(
        entries=entries,
        max_weight=max_weight,
        balance=balance,
        totals=totals,
    )
