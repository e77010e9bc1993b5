"""Exception hierarchy for the bigram classifier."""

from __future__ import annotations


class ClassifierError(Exception):
    """Base class for all classifier errors."""


class DatasetError(ClassifierError, ValueError):
    """A training row or dataset file cannot be used."""


class ModelFormatError(ClassifierError, ValueError):
    """A persisted model file is malformed."""


class NotTrainedError(ClassifierError, RuntimeError):
    """The classifier has neither been trained nor loaded."""


class ConfigError(ClassifierError, ValueError):
    """A configuration value is out of range or unparsable."""
