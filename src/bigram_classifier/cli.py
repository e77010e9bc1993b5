"""Command-line interface for Bigram Classifier.

Provides ``train``, ``predict``, ``evaluate``, and ``info`` commands with
rich terminal output using the ``click`` and ``rich`` libraries.

Usage::

    bigram-classifier train intents.json --model model.json
    bigram-classifier predict model.json "hello there" "see you"
    bigram-classifier evaluate intents.csv --folds 5
    bigram-classifier info model.json
"""

from __future__ import annotations

import json
import logging
import math
import sys
from pathlib import Path
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .classifier import BigramClassifier
from .config import ClassifierConfig
from .datasets import load_dataset
from .evaluation import ClassificationMetrics, cross_validate
from .exceptions import ClassifierError
from .models import Prediction, StopReason, TrainResult

console = Console()

# Rows of not-predicted examples shown after training
_MAX_ROWS_SHOWN = 20


def _configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/] {escape(str(error))}")
    sys.exit(1)


def _format_score(value: Optional[float]) -> str:
    if value is None:
        return "-"
    if math.isinf(value):
        return "inf"
    return f"{value:.4f}"


def _format_accuracy(value: float) -> str:
    # Model files without a recorded accuracy carry -1
    if value < 0:
        return "-"
    return f"{value:.2%}"


def _stop_style(reason: StopReason) -> str:
    """Return a rich style string for a stop reason."""
    return {
        StopReason.PERFECT: "bold green",
        StopReason.THRESHOLD: "green",
        StopReason.REPEATS: "yellow",
        StopReason.PLATEAU: "yellow",
        StopReason.ITERATION_LIMIT: "bold red",
    }.get(reason, "")


@click.group()
@click.version_option(package_name="bigram-classifier")
@click.option("--verbose", "-v", count=True, help="Increase log output (-v info, -vv debug).")
@click.option("--env-file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="Load BIGRAM_CLASSIFIER_* settings from a .env file.")
@click.pass_context
def main(ctx: click.Context, verbose: int, env_file: Optional[Path]) -> None:
    """Bigram Classifier -- short-text classification from labelled examples.

    Train a model from a dataset file, classify messages, and measure
    accuracy with cross-validation.
    """
    _configure_logging(verbose)
    try:
        config = ClassifierConfig.from_env(env_file)
    except ClassifierError as e:
        _fail(e)
    ctx.obj = {"config": config}


@main.command()
@click.argument("dataset", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--model", "-m", "model_path", required=True, type=click.Path(path_type=Path),
              help="Where to save the trained model (JSON).")
@click.option("--resume", is_flag=True, default=False,
              help="Continue from the model at --model if it exists.")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
@click.pass_context
def train(ctx: click.Context, dataset: Path, model_path: Path, resume: bool, output: str) -> None:
    """Train a model on a labelled dataset and save it.

    DATASET is a .json, .jsonl or .csv file of input/output rows.

    Example: bigram-classifier train intents.json --model model.json
    """
    classifier = BigramClassifier(config=ctx.obj["config"])

    with console.status("[bold blue]Training...", spinner="dots"):
        try:
            rows = load_dataset(dataset)
            if resume and model_path.exists():
                classifier.load_model(model_path)
            result = classifier.train(rows)
            classifier.save_model(model_path)
        except (ClassifierError, OSError) as e:
            _fail(e)

    if output == "json":
        click.echo(json.dumps({"model": str(model_path), **result.to_dict()}, indent=2))
    else:
        _render_training(result, classifier, model_path)


@main.command()
@click.argument("model", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("texts", nargs=-1, required=True)
@click.option("--strict", is_flag=True, default=False,
              help="Report -1 for predictions below the learned thresholds.")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
@click.pass_context
def predict(ctx: click.Context, model: Path, texts: tuple[str, ...], strict: bool,
            output: str) -> None:
    """Classify one or more messages with a saved model.

    Example: bigram-classifier predict model.json "hello there"
    """
    try:
        classifier = BigramClassifier.from_file(model, config=ctx.obj["config"])
    except (ClassifierError, OSError) as e:
        _fail(e)

    predictions = []
    for text in texts:
        prediction = classifier.predict(text)
        if strict and prediction.has_signal and not prediction.passes_thresholds():
            prediction = Prediction.negative()
        predictions.append((text, prediction))

    if output == "json":
        click.echo(json.dumps(
            [{"text": text, **prediction.to_dict()} for text, prediction in predictions],
            indent=2,
        ))
    else:
        _render_predictions(predictions)


@main.command()
@click.argument("dataset", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--folds", "-k", type=click.IntRange(min=2), default=5, show_default=True,
              help="Number of cross-validation folds.")
@click.option("--seed", type=int, default=42, show_default=True, help="Shuffle seed.")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
@click.pass_context
def evaluate(ctx: click.Context, dataset: Path, folds: int, seed: int, output: str) -> None:
    """Cross-validate the classifier on a labelled dataset.

    Example: bigram-classifier evaluate intents.csv --folds 5
    """
    with console.status("[bold blue]Cross-validating...", spinner="dots"):
        try:
            rows = load_dataset(dataset)
            results = cross_validate(rows, k=folds, seed=seed, config=ctx.obj["config"])
        except (ClassifierError, OSError) as e:
            _fail(e)

    mean_accuracy = sum(m.accuracy for m in results) / len(results)
    mean_macro_f1 = sum(m.macro_f1 for m in results) / len(results)

    if output == "json":
        click.echo(json.dumps({
            "folds": folds,
            "mean_accuracy": round(mean_accuracy, 4),
            "mean_macro_f1": round(mean_macro_f1, 4),
            "per_fold": [m.to_dict() for m in results],
        }, indent=2))
    else:
        _render_evaluation(results, mean_accuracy, mean_macro_f1)


@main.command()
@click.argument("model", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
@click.pass_context
def info(ctx: click.Context, model: Path, output: str) -> None:
    """Show a summary of a saved model.

    Example: bigram-classifier info model.json
    """
    try:
        classifier = BigramClassifier.from_file(model, config=ctx.obj["config"])
    except (ClassifierError, OSError) as e:
        _fail(e)

    summary = classifier.describe()
    summary.pop("cache_sizes", None)
    if output == "json":
        click.echo(json.dumps(summary, indent=2))
        return

    table = Table(title=f"Model: {model.name}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Accuracy", _format_accuracy(classifier.accuracy))
    table.add_row("Vocabulary", str(summary["vocabulary_size"]))
    table.add_row("Bigrams", str(summary["bigram_count"]))
    table.add_row("Outputs", ", ".join(str(o) for o in classifier.outputs) or "-")
    table.add_row("Balance", ", ".join(f"{b:.3f}" for b in classifier.balance) or "-")
    table.add_row("Max weight", _format_score(classifier.statistics.max_weight))
    table.add_row("Value threshold", _format_score(classifier.thresholds.value_threshold))
    table.add_row("Beta threshold", _format_score(classifier.thresholds.betas_threshold))
    console.print(table)


# ------------------------------------------------------------------
# Rich rendering helpers
# ------------------------------------------------------------------

def _render_training(result: TrainResult, classifier: BigramClassifier, model_path: Path) -> None:
    """Render a TrainResult with rich formatting."""
    style = _stop_style(result.stop_reason)
    console.print()
    console.print(Panel(
        f"Accuracy: [bold]{result.accuracy:.2%}[/]\n"
        f"Passes: {result.iterations} | "
        f"Stop reason: [{style}]{result.stop_reason.value}[/]\n"
        f"Vocabulary: {len(classifier.vocabulary)} | "
        f"Bigrams: {len(classifier.model)} | "
        f"Outputs: {len(classifier.outputs)}",
        title="Training complete",
        border_style="blue",
    ))

    if result.not_predicted:
        table = Table(title="Not predicted in the final pass")
        table.add_column("Input", style="white", max_width=60)
        table.add_column("Expected", style="cyan")
        for row in result.not_predicted[:_MAX_ROWS_SHOWN]:
            table.add_row(escape(row.input), escape(str(row.output)))
        if len(result.not_predicted) > _MAX_ROWS_SHOWN:
            table.add_row("...", f"({len(result.not_predicted) - _MAX_ROWS_SHOWN} more)")
        console.print(table)

    console.print(f"[dim]Model saved to {escape(str(model_path))}[/]")
    console.print()


def _render_predictions(predictions: list[tuple[str, Prediction]]) -> None:
    table = Table(title="Predictions")
    table.add_column("Text", style="white", max_width=50)
    table.add_column("Output", style="cyan", justify="center")
    table.add_column("Max", justify="right")
    table.add_column("Beta", justify="right")
    table.add_column("Accepted", justify="center")

    for text, prediction in predictions:
        if not prediction.has_signal:
            accepted = "[dim]-[/]"
        elif prediction.passes_thresholds():
            accepted = "[green]yes[/]"
        else:
            accepted = "[yellow]no[/]"
        table.add_row(
            escape(text),
            escape(str(prediction.output)),
            _format_score(prediction.max_score),
            _format_score(prediction.beta),
            accepted,
        )
    console.print(table)


def _render_evaluation(
    results: list[ClassificationMetrics],
    mean_accuracy: float,
    mean_macro_f1: float,
) -> None:
    table = Table(title="Cross-validation")
    table.add_column("Fold", justify="right", width=6)
    table.add_column("Accuracy", justify="right")
    table.add_column("Macro F1", justify="right")
    table.add_column("Rejected", justify="right")
    for i, metrics in enumerate(results, 1):
        table.add_row(
            str(i),
            f"{metrics.accuracy:.2%}",
            f"{metrics.macro_f1:.4f}",
            str(metrics.rejected),
        )
    console.print(table)
    console.print(
        f"Mean accuracy: [bold]{mean_accuracy:.2%}[/] | Mean macro F1: {mean_macro_f1:.4f}"
    )


if __name__ == "__main__":
    main()
