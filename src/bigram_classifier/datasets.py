"""Loaders for labelled datasets stored on disk.

Supported formats:

- ``.json``: an array of ``{"input": ..., "output": ...}`` objects or
  ``[input, output]`` pairs,
- ``.jsonl``: one such object or pair per line,
- ``.csv``: a header row with ``input`` and ``output`` columns; labels that
  look like integers are loaded as ints.
"""

from __future__ import annotations

import csv
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Union

from .exceptions import DatasetError
from .models import TrainingRow
from .vocabulary import coerce_rows

logger = logging.getLogger(__name__)


class DatasetLoader(ABC):
    """Base class for dataset file loaders."""

    supported_extensions: tuple[str, ...] = ()

    def can_handle(self, path: Path) -> bool:
        return path.suffix.lower() in self.supported_extensions

    @abstractmethod
    def read(self, path: Path) -> list[Any]:
        """Return the raw rows stored in ``path``.

        Raises:
            DatasetError: If the content cannot be parsed.
        """
        ...


class JSONLoader(DatasetLoader):
    supported_extensions = (".json",)

    def read(self, path: Path) -> list[Any]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DatasetError(f"{path} is not valid JSON: {exc}") from exc
        if not isinstance(data, list):
            raise DatasetError(f"{path} must contain a JSON array of rows")
        return data


class JSONLinesLoader(DatasetLoader):
    supported_extensions = (".jsonl",)

    def read(self, path: Path) -> list[Any]:
        rows: list[Any] = []
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise DatasetError(f"{path} is not valid UTF-8: {exc}") from exc
        for line_number, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            try:
                rows.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise DatasetError(f"{path}:{line_number} is not valid JSON: {exc}") from exc
        return rows


class CSVLoader(DatasetLoader):
    """CSV with ``input`` and ``output`` header columns."""

    supported_extensions = (".csv",)

    def read(self, path: Path) -> list[Any]:
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                reader = csv.DictReader(f)
                fields = reader.fieldnames or []
                missing = {"input", "output"} - set(fields)
                if missing:
                    raise DatasetError(
                        f"{path} is missing required column(s): {', '.join(sorted(missing))}"
                    )
                return [
                    {"input": record["input"], "output": _parse_label(record["output"])}
                    for record in reader
                ]
        except (csv.Error, UnicodeDecodeError) as exc:
            raise DatasetError(f"{path} is not a readable CSV file: {exc}") from exc


def _parse_label(raw: Any) -> Any:
    if not isinstance(raw, str):
        return raw
    value = raw.strip()
    try:
        return int(value)
    except ValueError:
        return value


def get_loader(path: Path) -> DatasetLoader:
    """Get the loader for a file based on its extension.

    Raises:
        DatasetError: If no loader supports the extension.
    """
    loaders: list[DatasetLoader] = [JSONLoader(), JSONLinesLoader(), CSVLoader()]
    for loader in loaders:
        if loader.can_handle(path):
            return loader

    supported = sorted(ext for loader in loaders for ext in loader.supported_extensions)
    raise DatasetError(
        f"No loader available for '{path.suffix}'. Supported formats: {', '.join(supported)}"
    )


def load_dataset(path: Union[str, Path]) -> list[TrainingRow]:
    """Load labelled rows from a dataset file.

    Malformed rows are logged and skipped, like in ``BigramClassifier.train``.

    Args:
        path: Path to a ``.json``, ``.jsonl`` or ``.csv`` file.

    Returns:
        The usable rows, in file order.

    Raises:
        FileNotFoundError: If the file does not exist.
        DatasetError: If the format is unsupported or the content unreadable.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    rows = coerce_rows(get_loader(path).read(path))
    logger.info("Loaded %d rows from %s", len(rows), path)
    return rows
