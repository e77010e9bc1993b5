"""Tests for metrics, stratified folds, and cross-validation."""

from __future__ import annotations

import pytest

from bigram_classifier import BigramClassifier
from bigram_classifier.evaluation import (
    ClassificationMetrics,
    compute_metrics,
    cross_validate,
    evaluate,
    stratified_k_fold,
)


class TestComputeMetrics:
    """Tests for compute_metrics."""

    def test_perfect(self) -> None:
        metrics = compute_metrics([0, 1, 1], [0, 1, 1])
        assert metrics.accuracy == 1.0
        assert metrics.macro_f1 == 1.0
        assert metrics.weighted_f1 == 1.0
        assert metrics.rejected == 0

    def test_rejections_count_as_wrong(self) -> None:
        metrics = compute_metrics([0, 0, 1, 1], [0, 1, 1, -1])
        assert metrics.accuracy == 0.5
        assert metrics.rejected == 1
        assert metrics.per_class[0] == pytest.approx(
            {"precision": 1.0, "recall": 0.5, "f1": 2 / 3}
        )
        assert metrics.per_class[1] == pytest.approx(
            {"precision": 0.5, "recall": 0.5, "f1": 0.5}
        )
        assert metrics.macro_f1 == pytest.approx((2 / 3 + 0.5) / 2)
        assert metrics.confusion_matrix[1] == {0: 0, 1: 1, -1: 1}
        assert metrics.support == {0: 2, 1: 2}

    def test_string_labels(self) -> None:
        metrics = compute_metrics(["a", "b"], ["b", "b"])
        assert metrics.accuracy == 0.5
        assert metrics.per_class["a"]["recall"] == 0.0

    def test_length_mismatch(self) -> None:
        with pytest.raises(ValueError, match="same length"):
            compute_metrics([0, 1], [0])

    def test_empty(self) -> None:
        metrics = compute_metrics([], [])
        assert metrics.accuracy == 0.0
        assert metrics.per_class == {}

    def test_to_dict_and_summary(self) -> None:
        metrics = compute_metrics([0, 1], [0, -1])
        data = metrics.to_dict()
        assert data["accuracy"] == 0.5
        assert data["rejected"] == 1
        assert data["confusion_matrix"]["1"] == {"0": 0, "1": 0, "-1": 1}
        report = metrics.summary()
        assert "Accuracy: 50.00%" in report
        assert "Precision" in report


class TestStratifiedKFold:
    """Tests for stratified_k_fold."""

    def test_partitions_every_index_once(self) -> None:
        labels = [0] * 6 + [1] * 4
        folds = stratified_k_fold(labels, k=3, seed=7)
        assert len(folds) == 3
        tested = sorted(i for _, test in folds for i in test)
        assert tested == list(range(10))
        for train, test in folds:
            assert set(train).isdisjoint(test)
            assert len(train) + len(test) == 10

    def test_each_fold_sees_every_label(self) -> None:
        labels = ["a", "b"] * 4
        for _, test in stratified_k_fold(labels, k=4):
            assert {labels[i] for i in test} == {"a", "b"}

    def test_deterministic(self) -> None:
        labels = [0, 1, 0, 1, 0, 1]
        assert stratified_k_fold(labels, k=2, seed=1) == stratified_k_fold(labels, k=2, seed=1)

    def test_k_must_be_at_least_two(self) -> None:
        with pytest.raises(ValueError):
            stratified_k_fold([0, 1], k=1)


class TestEvaluate:
    def test_training_data(self, trained_classifier: BigramClassifier, greetings_rows) -> None:
        metrics = evaluate(trained_classifier, greetings_rows)
        assert isinstance(metrics, ClassificationMetrics)
        assert metrics.accuracy == 1.0

    def test_unclassifiable_rows(self, trained_classifier: BigramClassifier) -> None:
        metrics = evaluate(trained_classifier, [("zzz qqq", 0), ("hello there", 0)])
        assert metrics.accuracy == 0.5
        assert metrics.rejected == 1

    def test_strict_mode_applies_thresholds(self, trained_classifier: BigramClassifier) -> None:
        # "hello now" has no signal; "hello there" (1.2) clears the 1.0 value threshold
        metrics = evaluate(trained_classifier, [("hello now", 0), ("hello there", 0)], strict=True)
        assert metrics.rejected == 1
        assert metrics.accuracy == 0.5

    def test_cross_validate(self, intent_rows) -> None:
        results = cross_validate(intent_rows, k=2, seed=3)
        assert len(results) == 2
        assert all(0.0 <= m.accuracy <= 1.0 for m in results)
        assert sum(sum(m.support.values()) for m in results) == len(intent_rows)
