"""JSON model file format.

Layout::

    {
      "model": {"<idA>:<idB>": [w_0, w_1, ...], ...},
      "vocabulary": ["word0", "word1", ...],
      "outputs": [label0, label1, ...],
      "accuracy": 0.97,
      "thresholds": {"valueThreshold": 0.4, "betasThreshold": 1.8},
      "balance": [1.0, 1.0],
      "statistics": {"maxWeight": 3.2, "entries": {"<id>": [dominant, confidence, [counts]]}},
      "modelVersion": 10
    }

``statistics`` keeps the cold-start diff model working after a reload.
Files without it (or without ``balance``) still load, with neutral
defaults.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from .exceptions import ModelFormatError
from .models import Label, Thresholds
from .preprocessing import Bigram
from .vocabulary import DatasetStatistics

logger = logging.getLogger(__name__)

MODEL_VERSION = 10


@dataclass
class ModelSnapshot:
    """Everything persisted for a trained classifier."""

    model: dict[Bigram, list[float]] = field(default_factory=dict)
    vocabulary: list[str] = field(default_factory=list)
    outputs: list[Label] = field(default_factory=list)
    accuracy: float = -1.0
    thresholds: Thresholds = field(default_factory=Thresholds)
    statistics: DatasetStatistics = field(default_factory=DatasetStatistics)
    model_version: int = MODEL_VERSION

    def to_dict(self) -> dict:
        return {
            "model": {encode_key(key): list(weights) for key, weights in self.model.items()},
            "vocabulary": list(self.vocabulary),
            "outputs": list(self.outputs),
            "accuracy": self.accuracy,
            "thresholds": self.thresholds.to_dict(),
            "balance": list(self.statistics.balance),
            "statistics": self.statistics.to_dict(),
            "modelVersion": self.model_version,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ModelSnapshot":
        """Validate and decode a parsed model file.

        Raises:
            ModelFormatError: If any field is missing, mistyped, or
                inconsistent with the vocabulary and outputs.
        """
        if not isinstance(data, dict):
            raise ModelFormatError("Model file must contain a JSON object")
        try:
            vocabulary = _str_list(data.get("vocabulary", []), "vocabulary")
            if len(set(vocabulary)) != len(vocabulary):
                raise ModelFormatError("vocabulary contains duplicate words")
            outputs = _label_list(data.get("outputs", []))
            model = _decode_model(data.get("model", {}), len(vocabulary))
            thresholds = Thresholds.from_dict(data.get("thresholds") or {})

            balance = data.get("balance")
            if balance is None:
                balance = [1.0] * len(outputs)
            balance = [float(value) for value in balance]
            if len(balance) != len(outputs):
                raise ModelFormatError(
                    f"balance has {len(balance)} entries for {len(outputs)} outputs"
                )

            statistics = DatasetStatistics.from_dict(data.get("statistics") or {}, balance)
            for word_id, entry in statistics.entries.items():
                if not 0 <= word_id < len(vocabulary):
                    raise ModelFormatError(f"statistics entry for unknown word id {word_id}")
                if not 0 <= entry.dominant_output < max(len(outputs), 1):
                    raise ModelFormatError(
                        f"statistics entry {word_id} favors unknown output {entry.dominant_output}"
                    )

            return cls(
                model=model,
                vocabulary=vocabulary,
                outputs=outputs,
                accuracy=float(data.get("accuracy", -1.0)),
                thresholds=thresholds,
                statistics=statistics,
                model_version=int(data.get("modelVersion", MODEL_VERSION)),
            )
        except ModelFormatError:
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ModelFormatError(f"Malformed model data: {exc}") from exc


def encode_key(bigram: Bigram) -> str:
    return f"{bigram[0]}:{bigram[1]}"


def decode_key(key: str) -> Bigram:
    """Parse an ``"<idA>:<idB>"`` key.

    Raises:
        ModelFormatError: If the key is not two colon-separated integers.
    """
    parts = key.split(":")
    if len(parts) != 2:
        raise ModelFormatError(f"Invalid bigram key: {key!r}")
    try:
        return int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise ModelFormatError(f"Invalid bigram key: {key!r}") from exc


def _str_list(value: Any, name: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ModelFormatError(f"{name} must be a list of strings")
    return list(value)


def _label_list(value: Any) -> list[Label]:
    if not isinstance(value, list):
        raise ModelFormatError("outputs must be a list")
    for label in value:
        if isinstance(label, bool) or not isinstance(label, (int, str)):
            raise ModelFormatError(f"Unsupported output label: {label!r}")
    if len(set(value)) != len(value):
        raise ModelFormatError("outputs contains duplicate labels")
    return list(value)


def _decode_model(value: Any, vocabulary_size: int) -> dict[Bigram, list[float]]:
    if not isinstance(value, dict):
        raise ModelFormatError("model must be an object")
    model: dict[Bigram, list[float]] = {}
    for key, weights in value.items():
        bigram = decode_key(key)
        if not all(0 <= word_id < vocabulary_size for word_id in bigram):
            raise ModelFormatError(f"Bigram {key!r} references an unknown word id")
        if not isinstance(weights, list):
            raise ModelFormatError(f"Weights for {key!r} must be a list")
        model[bigram] = [float(weight) for weight in weights]
    return model


# ---------------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------------


def write_model(path: Union[str, Path], snapshot: ModelSnapshot) -> Path:
    """Write a snapshot as JSON, replacing ``path`` atomically.

    Returns:
        The written path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(snapshot.to_dict(), f)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.info(
        "Model saved to %s (vocabulary=%d, bigrams=%d)",
        path,
        len(snapshot.vocabulary),
        len(snapshot.model),
    )
    return path


def read_model(path: Union[str, Path]) -> ModelSnapshot:
    """Read and validate a model file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ModelFormatError: If the content is not a valid model.
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ModelFormatError(f"{path} is not valid JSON: {exc}") from exc
    return ModelSnapshot.from_dict(data)
