"""Bigram Classifier -- short-text classification with reinforced bigram weights."""

__version__ = "0.1.0"

from .cache import ClassifierCaches, MemoCache
from .classifier import BigramClassifier
from .config import ClassifierConfig
from .datasets import load_dataset
from .diff import DiffModel
from .evaluation import (
    ClassificationMetrics,
    compute_metrics,
    cross_validate,
    evaluate,
    stratified_k_fold,
)
from .exceptions import (
    ClassifierError,
    ConfigError,
    DatasetError,
    ModelFormatError,
    NotTrainedError,
)
from .models import (
    NO_OUTPUT,
    DiffResult,
    Prediction,
    StopReason,
    Thresholds,
    TrainingRow,
    TrainResult,
    VocabularyEntry,
)
from .preprocessing import Tokenizer, bigrams, casefold_stemmer
from .vocabulary import DatasetStatistics, Vocabulary, aggregate, build_vocabulary

__all__ = [
    # Core
    "BigramClassifier",
    "ClassifierConfig",
    "Prediction",
    "TrainResult",
    "TrainingRow",
    "StopReason",
    "Thresholds",
    "NO_OUTPUT",
    # Text processing
    "Tokenizer",
    "bigrams",
    "casefold_stemmer",
    # Statistics
    "Vocabulary",
    "VocabularyEntry",
    "DatasetStatistics",
    "aggregate",
    "build_vocabulary",
    "DiffModel",
    "DiffResult",
    # Caching
    "MemoCache",
    "ClassifierCaches",
    # Datasets and evaluation
    "load_dataset",
    "ClassificationMetrics",
    "compute_metrics",
    "evaluate",
    "cross_validate",
    "stratified_k_fold",
    # Errors
    "ClassifierError",
    "ConfigError",
    "DatasetError",
    "ModelFormatError",
    "NotTrainedError",
]
