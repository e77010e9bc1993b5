"""Bigram text classifier: iterative reinforcement training and scoring.

Provides a lightweight classifier for short messages (intents, sentiment,
routing) using hand-built statistics instead of a learning framework.

How it works:

- every adjacent pair of known words ("bigram") owns a weight vector with
  one entry per output label,
- a new bigram starts from the cold-start diff estimate (see ``diff.py``),
- each training pass scores every row with the current model, then adds
  ``1`` to the gold label of each of the row's bigrams when the row was
  predicted correctly, or ``predicted_weight_multiplier`` when it was not,
- passes repeat until accuracy is good enough, stops improving, or the
  hard iteration ceiling is hit,
- scores are normalized per bigram and multiplied by the balance vector so
  frequent labels do not dominate.

Instances are not thread-safe: ``train()`` and ``predict()`` both read and
mutate the vocabulary, the model store and the caches, so callers must
serialize access to one instance.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Optional, Union

from .cache import ClassifierCaches
from .config import ClassifierConfig
from .diff import DiffModel
from .exceptions import NotTrainedError
from .models import (
    NO_OUTPUT,
    DiffResult,
    Label,
    Prediction,
    StopReason,
    Thresholds,
    TrainingRow,
    TrainResult,
)
from .persistence import ModelSnapshot, read_model, write_model
from .preprocessing import Bigram, Stemmer, Tokenizer, bigrams
from .vocabulary import (
    DatasetStatistics,
    Vocabulary,
    aggregate,
    bottom_quantile_mean,
    build_vocabulary,
    coerce_rows,
)

logger = logging.getLogger(__name__)


def _ratio(numerator: float, denominator: float) -> float:
    """Division with a fixed policy for zero denominators: ``inf`` or ``0.0``."""
    if denominator > 0:
        return numerator / denominator
    return math.inf if numerator > 0 else 0.0


class BigramClassifier:
    """Short-text classifier built on reinforced bigram weights.

    Example::

        classifier = BigramClassifier()
        result = classifier.train([
            ("hello world", 0), ("hi there", 0),
            ("bye now", 1), ("goodbye now", 1),
        ])
        classifier.predict("hello there").output   # 0
        classifier.predict("zzz qqq").output       # -1 (cannot classify)

        classifier.save_model("model.json")
        loaded = BigramClassifier.from_file("model.json")

    Mutable state and what mutates it:

    - ``vocabulary``: ``train``/``train_pass`` (append only), ``load_model``
    - ``outputs``, ``statistics``: ``train_pass``, ``load_model``
    - ``model``: ``train_pass``, ``load_model``
    - ``thresholds``: end of every ``train_pass``, ``load_model``
    - ``caches``: ``predict``, ``train_pass``, ``clear_cache``, ``load_model``
    - ``ready``, ``accuracy``: ``train``, ``load_model``

    Args:
        config: Training and scoring parameters.
        stemmer: Injected ``str -> str`` stemming function (case folding
            by default). A loaded model must use the stemmer it was
            trained with.
    """

    def __init__(
        self,
        config: Optional[ClassifierConfig] = None,
        stemmer: Optional[Stemmer] = None,
    ) -> None:
        self.config = (config or ClassifierConfig()).validate()
        self.tokenizer = Tokenizer(self.config.compiled_pattern(), stemmer)

        self.vocabulary = Vocabulary()
        self.outputs: list[Label] = []
        self.model: dict[Bigram, list[float]] = {}
        self.statistics = DatasetStatistics()
        self.thresholds = Thresholds()
        self.caches = ClassifierCaches()
        self.diff_model = DiffModel(self.statistics, self.caches.diffs)

        self.accuracy = -1.0
        self.ready = False

        # Diagnostics of the latest training pass
        self.not_predicted: list[TrainingRow] = []
        self.predicted_values: list[float] = []
        self.predicted_betas: list[float] = []

    @property
    def balance(self) -> list[float]:
        return self.statistics.balance

    @property
    def max_weight(self) -> float:
        return self.statistics.max_weight or 1.0

    # ------------------------------------------------------------------
    # Tokens, bigrams and diffs (memoized)
    # ------------------------------------------------------------------

    def tokenize(self, message: str) -> tuple[int, ...]:
        """Vocabulary ids of a message, cached by raw text."""
        return self.caches.tokens.get_or_compute(
            message, lambda: tuple(self.tokenizer.tokenize(message, self.vocabulary))
        )

    def decompose(self, token_ids: Iterable[int]) -> tuple[Bigram, ...]:
        """Adjacent bigrams of a token sequence, cached by the sequence."""
        key = tuple(token_ids)
        return self.caches.bigrams.get_or_compute(key, lambda: tuple(bigrams(key)))

    def diff(self, word_a: int, word_b: int) -> DiffResult:
        return self.diff_model.diff(word_a, word_b)

    def clear_cache(self) -> None:
        """Drop all memoized tokenizations, decompositions and diffs."""
        self.caches.clear()

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(self, dataset: Iterable[Any]) -> TrainResult:
        """Train until accuracy converges or the iteration ceiling is hit.

        Vocabulary, outputs and the model store carry over from earlier
        ``train()`` and ``load_model()`` calls; the dataset is re-aggregated
        in full on every pass.

        Args:
            dataset: Rows as ``TrainingRow``, ``{"input", "output"}``
                mappings, or ``(input, output)`` pairs. Malformed rows are
                logged and skipped.

        Returns:
            TrainResult with the final pass accuracy, the number of passes,
            the rows the final pass mispredicted, and why training stopped.
        """
        rows = coerce_rows(dataset)
        if not rows:
            logger.warning("Training dataset has no usable rows")

        best_accuracy = -1.0
        repeat_count = 0
        iterations = 0
        while True:
            accuracy = self.train_pass(rows, iterations)
            iterations += 1
            repeat_count = repeat_count + 1 if accuracy == best_accuracy else 0
            stop_reason = self._stop_reason(accuracy, best_accuracy, repeat_count, iterations)
            best_accuracy = max(best_accuracy, accuracy)
            logger.info(
                "Pass %d accuracy: %.4f (repeats: %d)", iterations, accuracy, repeat_count
            )
            if stop_reason is not None:
                break

        self.accuracy = accuracy
        self.ready = True
        logger.info(
            "Training stopped after %d passes: %s (accuracy %.4f)",
            iterations,
            stop_reason.value,
            accuracy,
        )
        return TrainResult(
            accuracy=accuracy,
            iterations=iterations,
            not_predicted=list(self.not_predicted),
            stop_reason=stop_reason,
        )

    def _stop_reason(
        self,
        accuracy: float,
        best_accuracy: float,
        repeat_count: int,
        iterations: int,
    ) -> Optional[StopReason]:
        if accuracy == 1:
            return StopReason.PERFECT
        if accuracy >= self.config.training_threshold:
            return StopReason.THRESHOLD
        if repeat_count >= self.config.accuracy_repeats_stop_threshold:
            return StopReason.REPEATS
        if accuracy <= best_accuracy:
            return StopReason.PLATEAU
        if iterations >= self.config.max_iterations:
            return StopReason.ITERATION_LIMIT
        return None

    def train_pass(self, dataset: Iterable[Any], iteration: int = 0) -> float:
        """Run one scoring and reinforcement pass over the full dataset.

        Returns:
            Exact-match accuracy over rows with at least two known tokens
            (0.0 when no row qualifies).
        """
        rows = coerce_rows(dataset)
        self._prepare(rows)
        logger.debug("Training pass %d over %d rows", iteration, len(rows))

        self.not_predicted = []
        self.predicted_values = []
        self.predicted_betas = []
        position = {label: i for i, label in enumerate(self.outputs)}
        correct = 0
        scored = 0

        for row in rows:
            tokens = self.tokenize(row.input)
            if len(tokens) < 2:
                continue
            prediction = self.predict(row.input, internal=True)
            predicted = prediction.output == row.output
            scored += 1
            if predicted:
                correct += 1
                self.predicted_values.append(prediction.max_score)
                if prediction.beta is not None and math.isfinite(prediction.beta):
                    self.predicted_betas.append(prediction.beta)
            else:
                self.not_predicted.append(row)

            amount = 1.0 if predicted else self.config.predicted_weight_multiplier
            gold = position[row.output]
            for bigram in self.decompose(tokens):
                self._reinforce(bigram, gold, amount)

        q = self.config.median_min_threshold
        self.thresholds = Thresholds(
            value_threshold=bottom_quantile_mean(self.predicted_values, q),
            betas_threshold=bottom_quantile_mean(self.predicted_betas, q),
        )
        return correct / scored if scored else 0.0

    def _prepare(self, rows: list[TrainingRow]) -> None:
        """Grow the vocabulary and fold the dataset into the statistics."""
        if build_vocabulary(rows, self.vocabulary, self.tokenizer):
            # Cached tokenizations may have dropped words that are now known
            self.caches.tokens.clear()
        self.statistics = aggregate(
            rows,
            self.vocabulary,
            self.tokenizer,
            self.outputs,
            self.config.median_max_weight,
            previous=self.statistics.entries,
        )
        self.diff_model.reset(self.statistics)

    def _initial_weights(self, bigram: Bigram) -> list[float]:
        weights = [0.0] * len(self.outputs)
        estimate = self.diff(*bigram)
        if estimate.has_signal:
            weights[estimate.favored_output] = min(estimate.weight / self.max_weight, 1.0)
        return weights

    def _reinforce(self, bigram: Bigram, gold: int, amount: float) -> None:
        weights = self.model.get(bigram)
        if weights is None:
            weights = self._initial_weights(bigram)
            self.model[bigram] = weights
        elif len(weights) < len(self.outputs):
            weights.extend([0.0] * (len(self.outputs) - len(weights)))
        weights[gold] = max(weights[gold] + amount, 0.0)

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict(self, message: str, internal: bool = False) -> Prediction:
        """Score a message against the trained model.

        Args:
            message: Raw message text.
            internal: Self-evaluation mode used by the trainer; skips
                attaching thresholds.

        Returns:
            A Prediction. Messages with fewer than two known words, or any
            message before training, get ``Prediction.negative()``.
        """
        if not self.model or not self.outputs:
            return Prediction.negative()
        tokens = self.tokenize(message)
        if len(tokens) < 2:
            return Prediction.negative()

        scores = self._score(self.decompose(tokens))
        ranked = sorted(scores, reverse=True)
        top = ranked[0]
        index = scores.index(top) if top > 0 else NO_OUTPUT
        runner_up = ranked[1] if len(ranked) > 1 else 0.0

        prediction = Prediction(
            output=self.outputs[index] if index != NO_OUTPUT else NO_OUTPUT,
            max_score=top,
            result=scores,
            beta=_ratio(top, runner_up),
            delta=_ratio(top, ranked[-1]),
        )
        if not internal and index != NO_OUTPUT:
            prediction.thresholds = self._rescaled_thresholds(index)
        return prediction

    def _score(self, message_bigrams: Iterable[Bigram]) -> list[float]:
        n_outputs = len(self.outputs)
        balance = self.statistics.balance
        cap = self.config.diff_max_value
        scores = [0.0] * n_outputs

        for bigram in message_bigrams:
            weights = self.model.get(bigram)
            if weights is not None:
                total = sum(weights)
                if not total:
                    logger.debug("Bigram %s has an all-zero weight vector", bigram)
                    continue
                for i, weight in enumerate(weights[:n_outputs]):
                    scores[i] += weight / total * balance[i]
            else:
                estimate = self.diff(*bigram)
                if estimate.has_signal and estimate.favored_output < n_outputs:
                    i = estimate.favored_output
                    scores[i] += min(estimate.weight / self.max_weight, cap) * balance[i]
        return scores

    def _rescaled_thresholds(self, index: int) -> Thresholds:
        scale = self.statistics.balance[index]

        def rescale(value: Optional[float]) -> Optional[float]:
            if not value or not scale:
                return None
            return value / scale

        return Thresholds(
            value_threshold=rescale(self.thresholds.value_threshold),
            betas_threshold=rescale(self.thresholds.betas_threshold),
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> ModelSnapshot:
        """Current persistable state."""
        return ModelSnapshot(
            model={key: list(weights) for key, weights in self.model.items()},
            vocabulary=self.vocabulary.words,
            outputs=list(self.outputs),
            accuracy=self.accuracy,
            thresholds=Thresholds(
                self.thresholds.value_threshold, self.thresholds.betas_threshold
            ),
            statistics=self.statistics,
        )

    def save_model(self, path: Union[str, Path]) -> Path:
        """Save the trained model as JSON (atomic replace).

        Raises:
            NotTrainedError: If the classifier was never trained or loaded.
            OSError: If the target cannot be written.
        """
        if not self.ready:
            raise NotTrainedError("Cannot save an untrained classifier. Call train() first.")
        return write_model(path, self.snapshot())

    def load_model(self, path: Union[str, Path]) -> "BigramClassifier":
        """Replace this instance's state with a saved model.

        The file is fully read and validated before anything is replaced,
        so a failed load leaves the instance unchanged.

        Raises:
            FileNotFoundError: If the file does not exist.
            ModelFormatError: If the file is not a valid model.
        """
        snapshot = read_model(path)
        self.vocabulary = Vocabulary(snapshot.vocabulary)
        self.outputs = list(snapshot.outputs)
        self.model = snapshot.model
        self.statistics = snapshot.statistics
        self.thresholds = snapshot.thresholds
        self.accuracy = snapshot.accuracy
        self.caches.clear()
        self.diff_model.reset(self.statistics)
        self.ready = True
        logger.info(
            "Model loaded from %s (vocabulary=%d, bigrams=%d, outputs=%d)",
            path,
            len(self.vocabulary),
            len(self.model),
            len(self.outputs),
        )
        return self

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        config: Optional[ClassifierConfig] = None,
        stemmer: Optional[Stemmer] = None,
    ) -> "BigramClassifier":
        """Create a classifier and load a saved model into it."""
        return cls(config=config, stemmer=stemmer).load_model(path)

    def describe(self) -> dict:
        """Summary of the model state."""
        return {
            "ready": self.ready,
            "accuracy": self.accuracy,
            "vocabulary_size": len(self.vocabulary),
            "bigram_count": len(self.model),
            "outputs": list(self.outputs),
            "balance": list(self.statistics.balance),
            "max_weight": self.statistics.max_weight,
            "thresholds": self.thresholds.to_dict(),
            "cache_sizes": self.caches.sizes(),
        }
