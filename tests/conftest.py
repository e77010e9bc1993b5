"""Shared test fixtures for bigram-classifier tests."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from bigram_classifier import BigramClassifier
from bigram_classifier.config import ENV_PREFIX


@pytest.fixture
def greetings_rows() -> list[tuple[str, int]]:
    """Two-label toy dataset: greetings (0) and farewells (1)."""
    return [
        ("hello world", 0),
        ("hi there", 0),
        ("bye now", 1),
        ("goodbye now", 1),
    ]


@pytest.fixture
def intent_rows() -> list[dict]:
    """A slightly larger dataset with string labels."""
    return [
        {"input": "what is the weather today", "output": "weather"},
        {"input": "will it rain tomorrow", "output": "weather"},
        {"input": "is it sunny outside today", "output": "weather"},
        {"input": "how hot is it outside", "output": "weather"},
        {"input": "play some jazz music", "output": "music"},
        {"input": "play my favourite song", "output": "music"},
        {"input": "turn the music up", "output": "music"},
        {"input": "skip this song please", "output": "music"},
        {"input": "set an alarm for seven", "output": "alarm"},
        {"input": "wake me up at six", "output": "alarm"},
        {"input": "cancel my morning alarm", "output": "alarm"},
        {"input": "set a timer for ten minutes", "output": "alarm"},
    ]


@pytest.fixture
def trained_classifier(greetings_rows: list[tuple[str, int]]) -> BigramClassifier:
    """Classifier trained on the greetings dataset."""
    classifier = BigramClassifier()
    classifier.train(greetings_rows)
    return classifier


@pytest.fixture
def greetings_file(tmp_path: Path, greetings_rows: list[tuple[str, int]]) -> Path:
    """The greetings dataset written as a JSON file."""
    file = tmp_path / "greetings.json"
    file.write_text(
        json.dumps([{"input": text, "output": label} for text, label in greetings_rows]),
        encoding="utf-8",
    )
    return file


@pytest.fixture
def model_path(tmp_path: Path) -> Path:
    """Target path for a saved model."""
    return tmp_path / "models" / "model.json"


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Remove BIGRAM_CLASSIFIER_* variables before and after the test."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)
    yield
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            del os.environ[key]
