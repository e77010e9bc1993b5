"""Classifier configuration with environment and ``.env`` overrides."""

from __future__ import annotations

import os
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from dotenv import load_dotenv

from .exceptions import ConfigError

ENV_PREFIX = "BIGRAM_CLASSIFIER_"

DEFAULT_CLEAN_PATTERN = r"[^a-z0-9 ']+"


@dataclass(frozen=True)
class ClassifierConfig:
    """Tunable parameters of the trainer and predictor.

    Attributes:
        clean_pattern: Regex (matched case-insensitively) whose matches are
            replaced with spaces before splitting a message into words.
        training_threshold: Stop training once pass accuracy reaches this.
        accuracy_repeats_stop_threshold: Stop after this many consecutive
            passes with unchanged accuracy. A repeat also counts as a
            plateau, which is checked next, so only a value of 1 makes
            this the reason training stops.
        max_iterations: Hard ceiling on training passes per ``train()`` call.
        median_max_weight: Top fraction of word confidences averaged into
            ``max_weight`` (0.06 = top 6%).
        median_min_threshold: Bottom fraction of training confidences
            averaged into the acceptance thresholds.
        diff_max_value: Cap on a single cold-start bigram contribution.
        predicted_weight_multiplier: Reinforcement added to the gold output
            of a bigram whose row was mispredicted (1 when predicted).
    """

    clean_pattern: str = DEFAULT_CLEAN_PATTERN
    training_threshold: float = 0.99
    accuracy_repeats_stop_threshold: int = 10
    max_iterations: int = 100
    median_max_weight: float = 0.06
    median_min_threshold: float = 0.05
    diff_max_value: float = 1.2
    predicted_weight_multiplier: float = 3.0

    def compiled_pattern(self) -> re.Pattern:
        return re.compile(self.clean_pattern, re.IGNORECASE)

    def validate(self) -> "ClassifierConfig":
        """Check value ranges.

        Returns:
            Self, for chaining.

        Raises:
            ConfigError: If any value is out of range.
        """
        for name in ("median_max_weight", "median_min_threshold", "training_threshold"):
            value = getattr(self, name)
            if not 0 < value <= 1:
                raise ConfigError(f"{name} must be in (0, 1], got {value}")
        for name in ("accuracy_repeats_stop_threshold", "max_iterations"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigError(f"{name} must be at least 1, got {value}")
        for name in ("diff_max_value", "predicted_weight_multiplier"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigError(f"{name} must be positive, got {value}")
        try:
            self.compiled_pattern()
        except re.error as exc:
            raise ConfigError(f"clean_pattern is not a valid regex: {exc}") from exc
        return self

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "ClassifierConfig":
        """Build a config from defaults, an optional ``.env`` file, and the environment.

        Variables are named ``BIGRAM_CLASSIFIER_<FIELD>`` (upper case), e.g.
        ``BIGRAM_CLASSIFIER_MAX_ITERATIONS=50``. Values already present in
        the environment win over the ``.env`` file.

        Raises:
            ConfigError: If a variable cannot be parsed or is out of range.
        """
        load_dotenv(dotenv_path=env_file)
        defaults = cls()
        overrides = {
            "clean_pattern": _read("CLEAN_PATTERN", str, defaults.clean_pattern),
            "training_threshold": _read("TRAINING_THRESHOLD", float, defaults.training_threshold),
            "accuracy_repeats_stop_threshold": _read(
                "ACCURACY_REPEATS", int, defaults.accuracy_repeats_stop_threshold
            ),
            "max_iterations": _read("MAX_ITERATIONS", int, defaults.max_iterations),
            "median_max_weight": _read("MEDIAN_MAX_WEIGHT", float, defaults.median_max_weight),
            "median_min_threshold": _read(
                "MEDIAN_MIN_THRESHOLD", float, defaults.median_min_threshold
            ),
            "diff_max_value": _read("DIFF_MAX_VALUE", float, defaults.diff_max_value),
            "predicted_weight_multiplier": _read(
                "PREDICTED_WEIGHT_MULTIPLIER", float, defaults.predicted_weight_multiplier
            ),
        }
        return cls(**overrides).validate()


def _read(name: str, cast: Callable, default):
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{ENV_PREFIX}{name}={raw!r} is not a valid {cast.__name__}") from exc
