"""Evaluation helpers: metrics, stratified folds, and cross-validation.

A prediction of ``-1`` ("cannot classify") always counts as wrong and is
reported separately as ``rejected``.
"""

from __future__ import annotations

import random
from collections import Counter, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Optional

from .classifier import BigramClassifier
from .config import ClassifierConfig
from .models import NO_OUTPUT, Label, TrainingRow
from .preprocessing import Stemmer
from .vocabulary import coerce_rows


@dataclass
class ClassificationMetrics:
    """Evaluation metrics for a set of predictions.

    Attributes:
        accuracy: Fraction of rows predicted exactly.
        per_class: Per-label precision, recall and F1.
        macro_f1: Unweighted mean F1 across gold labels.
        weighted_f1: Support-weighted mean F1.
        confusion_matrix: ``{gold: {predicted: count}}``; the predicted axis
            includes ``-1`` when some rows were rejected.
        support: Gold-label counts.
        rejected: Rows predicted as ``-1``.
    """

    accuracy: float = 0.0
    per_class: dict[Label, dict[str, float]] = field(default_factory=dict)
    macro_f1: float = 0.0
    weighted_f1: float = 0.0
    confusion_matrix: dict[Label, dict[Label, int]] = field(default_factory=dict)
    support: dict[Label, int] = field(default_factory=dict)
    rejected: int = 0

    def to_dict(self) -> dict:
        return {
            "accuracy": round(self.accuracy, 4),
            "macro_f1": round(self.macro_f1, 4),
            "weighted_f1": round(self.weighted_f1, 4),
            "rejected": self.rejected,
            "per_class": {
                str(label): {k: round(v, 4) for k, v in scores.items()}
                for label, scores in self.per_class.items()
            },
            "confusion_matrix": {
                str(gold): {str(pred): n for pred, n in row.items()}
                for gold, row in self.confusion_matrix.items()
            },
        }

    def summary(self) -> str:
        """Plain-text report."""
        lines = [
            f"Accuracy: {self.accuracy:.2%}",
            f"Macro F1: {self.macro_f1:.4f}",
            f"Rejected: {self.rejected}",
            "",
            f"{'Label':<16} {'Precision':>10} {'Recall':>10} {'F1':>10} {'Support':>8}",
            "-" * 58,
        ]
        for label, scores in self.per_class.items():
            lines.append(
                f"{str(label):<16} {scores['precision']:>10.4f} {scores['recall']:>10.4f} "
                f"{scores['f1']:>10.4f} {self.support.get(label, 0):>8}"
            )
        return "\n".join(lines)


def compute_metrics(y_true: list[Label], y_pred: list[Label]) -> ClassificationMetrics:
    """Compute metrics from gold and predicted labels.

    Raises:
        ValueError: If the two lists differ in length.
    """
    if len(y_true) != len(y_pred):
        raise ValueError("y_true and y_pred must have the same length")

    gold_labels = list(dict.fromkeys(y_true))
    predicted_axis = list(dict.fromkeys(gold_labels + list(y_pred)))
    confusion: dict[Label, dict[Label, int]] = {
        gold: {pred: 0 for pred in predicted_axis} for gold in gold_labels
    }
    for gold, pred in zip(y_true, y_pred):
        confusion[gold][pred] += 1

    support = Counter(y_true)
    per_class: dict[Label, dict[str, float]] = {}
    for label in gold_labels:
        tp = confusion[label][label]
        predicted_as = sum(row.get(label, 0) for row in confusion.values())
        precision = tp / predicted_as if predicted_as else 0.0
        recall = tp / support[label]
        f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
        per_class[label] = {"precision": precision, "recall": recall, "f1": f1}

    n = len(y_true)
    correct = sum(1 for gold, pred in zip(y_true, y_pred) if gold == pred)
    macro_f1 = sum(s["f1"] for s in per_class.values()) / len(per_class) if per_class else 0.0
    weighted_f1 = (
        sum(per_class[label]["f1"] * support[label] for label in gold_labels) / n if n else 0.0
    )
    return ClassificationMetrics(
        accuracy=correct / n if n else 0.0,
        per_class=per_class,
        macro_f1=macro_f1,
        weighted_f1=weighted_f1,
        confusion_matrix=confusion,
        support=dict(support),
        rejected=sum(1 for pred in y_pred if pred == NO_OUTPUT),
    )


def evaluate(
    classifier: BigramClassifier,
    rows: Iterable[Any],
    strict: bool = False,
) -> ClassificationMetrics:
    """Score a trained classifier on labelled rows.

    Args:
        classifier: A trained ``BigramClassifier``.
        rows: Labelled rows in any form ``TrainingRow.coerce`` accepts.
        strict: Treat predictions that fail their thresholds as ``-1``.
    """
    checked = coerce_rows(rows)
    y_pred: list[Label] = []
    for row in checked:
        prediction = classifier.predict(row.input)
        if strict and not prediction.passes_thresholds():
            y_pred.append(NO_OUTPUT)
        else:
            y_pred.append(prediction.output)
    return compute_metrics([row.output for row in checked], y_pred)


def stratified_k_fold(
    labels: list[Label],
    k: int = 5,
    seed: int = 42,
) -> list[tuple[list[int], list[int]]]:
    """Split indices into ``k`` folds with per-label round-robin assignment.

    Returns:
        List of ``(train_indices, test_indices)`` pairs.
    """
    if k < 2:
        raise ValueError("k must be at least 2")
    rng = random.Random(seed)
    by_label: dict[Label, list[int]] = defaultdict(list)
    for index, label in enumerate(labels):
        by_label[label].append(index)

    fold_of = [0] * len(labels)
    for indices in by_label.values():
        rng.shuffle(indices)
        for position, index in enumerate(indices):
            fold_of[index] = position % k

    return [
        (
            [i for i, fold in enumerate(fold_of) if fold != target],
            [i for i, fold in enumerate(fold_of) if fold == target],
        )
        for target in range(k)
    ]


def cross_validate(
    rows: Iterable[Any],
    k: int = 5,
    seed: int = 42,
    config: Optional[ClassifierConfig] = None,
    stemmer: Optional[Stemmer] = None,
) -> list[ClassificationMetrics]:
    """Train a fresh classifier per fold and evaluate it on the held-out rows."""
    checked: list[TrainingRow] = coerce_rows(rows)
    results: list[ClassificationMetrics] = []
    for train_idx, test_idx in stratified_k_fold([r.output for r in checked], k=k, seed=seed):
        classifier = BigramClassifier(config=config, stemmer=stemmer)
        classifier.train([checked[i] for i in train_idx])
        results.append(evaluate(classifier, [checked[i] for i in test_idx]))
    return results
