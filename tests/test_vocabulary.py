"""Tests for the vocabulary builder and the dataset statistics aggregator."""

from __future__ import annotations

import logging

import pytest

from bigram_classifier.models import TrainingRow
from bigram_classifier.preprocessing import Tokenizer
from bigram_classifier.vocabulary import (
    DatasetStatistics,
    Vocabulary,
    aggregate,
    bottom_quantile_mean,
    build_vocabulary,
    coerce_rows,
    extend_outputs,
    top_quantile_mean,
)


def _rows(pairs: list[tuple[str, object]]) -> list[TrainingRow]:
    return [TrainingRow(text, label) for text, label in pairs]


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------


class TestVocabulary:
    """Tests for the append-only Vocabulary."""

    def test_add_assigns_sequential_ids(self) -> None:
        vocabulary = Vocabulary()
        assert vocabulary.add("hello") == 0
        assert vocabulary.add("world") == 1
        assert vocabulary.add("hello") == 0
        assert len(vocabulary) == 2

    def test_lookup(self) -> None:
        vocabulary = Vocabulary(["a", "b"])
        assert vocabulary.id_of("b") == 1
        assert vocabulary.id_of("c") is None
        assert vocabulary.word(0) == "a"
        assert "a" in vocabulary
        assert list(vocabulary) == ["a", "b"]

    def test_words_is_a_copy(self) -> None:
        vocabulary = Vocabulary(["a"])
        vocabulary.words.append("b")
        assert len(vocabulary) == 1

    def test_build_vocabulary_is_stable(self) -> None:
        tokenizer = Tokenizer()
        vocabulary = Vocabulary()
        added = build_vocabulary(_rows([("hello world", 0)]), vocabulary, tokenizer)
        assert added == 2

        added = build_vocabulary(_rows([("world peace", 1), ("Hello", 0)]), vocabulary, tokenizer)
        assert added == 1
        assert vocabulary.words == ["hello", "world", "peace"]


class TestCoerceRows:
    """Tests for lenient row coercion."""

    def test_mixed_shapes(self) -> None:
        rows = coerce_rows([("a b", 0), {"input": "c d", "output": "x"}, TrainingRow("e f", 1)])
        assert [row.output for row in rows] == [0, "x", 1]

    def test_malformed_rows_skipped_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="bigram_classifier.vocabulary"):
            rows = coerce_rows([("ok row", 0), (42, 0), {"input": "x"}, ("reserved", -1), "bad"])
        assert rows == [TrainingRow("ok row", 0)]
        assert caplog.text.count("Skipping malformed row") == 4


# ---------------------------------------------------------------------------
# Quantiles
# ---------------------------------------------------------------------------


class TestQuantiles:
    """Tests for the top/bottom quantile means."""

    def test_top_quantile_mean(self) -> None:
        assert top_quantile_mean([1.0, 4.0, 2.0, 3.0], 0.5) == pytest.approx(3.5)

    def test_bottom_quantile_mean(self) -> None:
        assert bottom_quantile_mean([1.0, 4.0, 2.0, 3.0], 0.5) == pytest.approx(1.5)

    def test_small_fraction_keeps_at_least_one(self) -> None:
        assert top_quantile_mean([1.0, 2.0, 3.0, 4.0], 0.05) == 4.0
        assert bottom_quantile_mean([1.0, 2.0, 3.0, 4.0], 0.05) == 1.0

    def test_empty(self) -> None:
        assert top_quantile_mean([], 0.5) is None
        assert bottom_quantile_mean([], 0.5) is None


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _aggregate(pairs: list[tuple[str, object]]) -> tuple[DatasetStatistics, Vocabulary, list]:
    rows = _rows(pairs)
    tokenizer = Tokenizer()
    vocabulary = Vocabulary()
    build_vocabulary(rows, vocabulary, tokenizer)
    outputs: list = []
    statistics = aggregate(rows, vocabulary, tokenizer, outputs)
    return statistics, vocabulary, outputs


class TestAggregate:
    """Tests for per-word statistics and the balance vector."""

    def test_outputs_in_first_seen_order(self) -> None:
        _, _, outputs = _aggregate([("a b", "spam"), ("c d", "ham"), ("e f", "spam")])
        assert outputs == ["spam", "ham"]

    def test_extend_outputs_keeps_existing(self) -> None:
        outputs: list = [1]
        added = extend_outputs(_rows([("x", 0), ("y", 1), ("z", 0)]), outputs)
        assert added == 1
        assert outputs == [1, 0]

    def test_balanced_dataset_has_unit_balance(self, greetings_rows) -> None:
        statistics, _, outputs = _aggregate(greetings_rows)
        assert len(statistics.balance) == len(outputs) == 2
        assert statistics.balance == pytest.approx([1.0, 1.0])

    def test_imbalanced_dataset(self) -> None:
        statistics, vocabulary, outputs = _aggregate([("a b", 0), ("a c", 1), ("c d", 1)])
        assert outputs == [0, 1]
        assert statistics.totals == [2.0, 4.0]
        assert statistics.balance == pytest.approx([1.5, 0.75])

        entry_a = statistics.entry(vocabulary.id_of("a"))
        assert entry_a.per_output_counts == [1.0, 1.0]
        assert entry_a.dominant_output == 0
        assert entry_a.confidence_value == pytest.approx(2.0)

    def test_single_label_words_take_max_weight(self) -> None:
        statistics, vocabulary, _ = _aggregate([("a b", 0), ("a c", 1), ("c d", 1)])
        assert statistics.max_weight == pytest.approx(2.0)
        entry_c = statistics.entry(vocabulary.id_of("c"))
        assert entry_c.dominant_output == 1
        assert entry_c.confidence_value == pytest.approx(2.0)

    def test_max_weight_falls_back_to_one(self, greetings_rows) -> None:
        statistics, _, _ = _aggregate(greetings_rows)
        assert statistics.max_weight == 1.0
        assert all(e.confidence_value == 1.0 for e in statistics.entries.values())

    def test_empty_dataset(self) -> None:
        statistics, _, outputs = _aggregate([])
        assert outputs == []
        assert statistics.entries == {}
        assert statistics.balance == []

    def test_statistics_dict_round_trip(self) -> None:
        statistics, _, _ = _aggregate([("a b", 0), ("a c", 1), ("c d", 1)])
        restored = DatasetStatistics.from_dict(statistics.to_dict(), statistics.balance)
        assert restored.max_weight == statistics.max_weight
        assert restored.balance == statistics.balance
        for word_id, entry in statistics.entries.items():
            assert restored.entry(word_id).dominant_output == entry.dominant_output
            assert restored.entry(word_id).confidence_value == entry.confidence_value

    def test_previous_entries_are_retained(self) -> None:
        tokenizer = Tokenizer()
        vocabulary = Vocabulary()
        outputs: list = []
        first = _rows([("a b", 0), ("c d", 1)])
        build_vocabulary(first, vocabulary, tokenizer)
        earlier = aggregate(first, vocabulary, tokenizer, outputs)

        second = _rows([("a e", 2)])
        build_vocabulary(second, vocabulary, tokenizer)
        statistics = aggregate(second, vocabulary, tokenizer, outputs, previous=earlier.entries)

        assert outputs == [0, 1, 2]
        assert set(statistics.entries) == {0, 1, 2, 3, 4}
        assert statistics.entry(vocabulary.id_of("a")).per_output_counts == [0.0, 0.0, 1.0]
        assert statistics.entry(vocabulary.id_of("c")).per_output_counts == [0.0, 1.0, 0.0]
        assert statistics.totals == [1.0, 2.0, 2.0]
        assert statistics.balance == pytest.approx([5 / 3, 5 / 6, 5 / 6])
        assert earlier.entry(vocabulary.id_of("a")).per_output_counts == [1.0, 0.0]
