"""Data models shared by the trainer, predictor, and persistence layer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from .exceptions import DatasetError

Label = Union[int, str]

# Output reported when a message carries no usable signal.
NO_OUTPUT = -1

# Confidence placeholder for words observed with a single output label.
SENTINEL_CONFIDENCE = -1.0


class StopReason(str, Enum):
    """Why the training loop exited."""

    PERFECT = "perfect"
    THRESHOLD = "threshold"
    REPEATS = "repeats"
    PLATEAU = "plateau"
    ITERATION_LIMIT = "iteration_limit"


@dataclass(frozen=True)
class TrainingRow:
    """A single labelled message."""

    input: str
    output: Label

    @classmethod
    def coerce(cls, raw: Any) -> "TrainingRow":
        """Build a row from a ``TrainingRow``, a mapping, or a 2-item pair.

        Raises:
            DatasetError: If the value has the wrong shape, the input is not
                a string, or the label is not a usable int/str.
        """
        if isinstance(raw, TrainingRow):
            text, label = raw.input, raw.output
        elif isinstance(raw, Mapping):
            try:
                text, label = raw["input"], raw["output"]
            except KeyError as exc:
                raise DatasetError(f"Row is missing the {exc.args[0]!r} key: {raw!r}") from exc
        elif isinstance(raw, (tuple, list)) and len(raw) == 2:
            text, label = raw
        else:
            raise DatasetError(f"Unsupported row shape: {raw!r}")

        if not isinstance(text, str):
            raise DatasetError(f"Row input must be a string, got {type(text).__name__}")
        if isinstance(label, bool) or not isinstance(label, (int, str)):
            raise DatasetError(f"Row output must be an int or str label, got {label!r}")
        if label == NO_OUTPUT:
            raise DatasetError(f"Label {NO_OUTPUT} is reserved for 'no signal'")
        return cls(input=text, output=label)

    def to_dict(self) -> dict:
        return {"input": self.input, "output": self.output}


@dataclass
class VocabularyEntry:
    """Per-word output statistics.

    Attributes:
        id: Vocabulary id of the stemmed word.
        dominant_output: Index (into ``outputs``) of the label this word
            co-occurs with most, relative to each label's total.
        confidence_value: Ratio of the top two relative frequencies.
        per_output_counts: Raw co-occurrence counts per output index.
    """

    id: int
    dominant_output: int = 0
    confidence_value: float = 0.0
    per_output_counts: list[float] = field(default_factory=list)


@dataclass(frozen=True)
class DiffResult:
    """Cold-start estimate for a bigram: the output it favors and how much."""

    favored_output: int
    weight: float

    @property
    def has_signal(self) -> bool:
        return self.favored_output != NO_OUTPUT


@dataclass
class Thresholds:
    """Low-quantile acceptance thresholds learned from training confidences."""

    value_threshold: Optional[float] = None
    betas_threshold: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "valueThreshold": self.value_threshold,
            "betasThreshold": self.betas_threshold,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "Thresholds":
        return cls(
            value_threshold=_optional_float(data.get("valueThreshold")),
            betas_threshold=_optional_float(data.get("betasThreshold")),
        )


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


@dataclass
class Prediction:
    """Result of scoring one message.

    Attributes:
        output: Predicted label, or ``-1`` when there is no signal.
        max_score: Highest per-output score.
        result: Per-output scores, in ``outputs`` order.
        beta: Top score over the runner-up (confidence margin).
        delta: Top score over the lowest score (spread).
        thresholds: Balance-rescaled acceptance thresholds, attached to
            caller-facing predictions only.
    """

    output: Label
    max_score: float
    result: list[float] = field(default_factory=list)
    beta: Optional[float] = None
    delta: Optional[float] = None
    thresholds: Optional[Thresholds] = None

    @classmethod
    def negative(cls) -> "Prediction":
        """The "cannot classify" sentinel."""
        return cls(output=NO_OUTPUT, max_score=0.0, result=[])

    @property
    def has_signal(self) -> bool:
        return self.output != NO_OUTPUT

    def passes_thresholds(self) -> bool:
        """Whether this prediction clears its attached thresholds.

        A prediction without signal never passes. Missing thresholds (or a
        threshold left as ``None``) never reject.
        """
        if not self.has_signal:
            return False
        if self.thresholds is None:
            return True
        value_threshold = self.thresholds.value_threshold
        if value_threshold is not None and self.max_score < value_threshold:
            return False
        betas_threshold = self.thresholds.betas_threshold
        if betas_threshold is not None and (self.beta or 0.0) < betas_threshold:
            return False
        return True

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "output": self.output,
            "max": self.max_score,
            "result": list(self.result),
        }
        if self.beta is not None:
            data["beta"] = self.beta
            data["delta"] = self.delta
        if self.thresholds is not None:
            data["thresholds"] = self.thresholds.to_dict()
        return data


@dataclass
class TrainResult:
    """Outcome of a ``train()`` call."""

    accuracy: float
    iterations: int
    not_predicted: list[TrainingRow] = field(default_factory=list)
    stop_reason: StopReason = StopReason.PLATEAU

    @property
    def converged(self) -> bool:
        """True when training stopped because accuracy was good enough."""
        return self.stop_reason in (StopReason.PERFECT, StopReason.THRESHOLD)

    def to_dict(self) -> dict:
        return {
            "accuracy": round(self.accuracy, 4),
            "iterations": self.iterations,
            "stop_reason": self.stop_reason.value,
            "not_predicted": [row.to_dict() for row in self.not_predicted],
        }
