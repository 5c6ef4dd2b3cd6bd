# User value: This file gives operators one command to scan a check or measure accuracy over a range of checks.
"""Typer application entrypoint."""
import asyncio
import json
import logging
import time
from pathlib import Path

import typer

import config
from services.accuracy_run import format_elapsed, run_accuracy_test, run_preprocess
from services.check_manager import CheckManager
from services.classification import AccuracyClassifier
from services.errors import GroundTruthError, LedgerConfigError, RecognitionError
from services.ledger import load_ledger
from services.recognizer import create_recognizer
from startup_env import validate_startup_env
from utils.json_logging import configure_json_logging

app = typer.Typer(help="Check OCR accuracy harness")
check_app = typer.Typer(help="Scan checks and measure recognition accuracy")
app.add_typer(check_app, name="check")

logger = logging.getLogger("check.cli")


def _configure() -> None:
    configure_json_logging(service="check-accuracy", level=getattr(logging, config.LOG_LEVEL, logging.INFO))
    try:
        validate_startup_env()
    except RuntimeError as exc:
        typer.echo(f"FATAL ERROR: {exc}", err=True)
        raise typer.Exit(code=1)


async def _new_manager() -> CheckManager:
    recognizer = await create_recognizer(
        url=config.URL,
        factory_path=config.RECOGNIZER_FACTORY,
        timeout=config.REMOTE_TIMEOUT_SEC,
    )
    manager = CheckManager(recognizer, checks_dir=config.CHECKS_DIR, translators=config.TRANSLATORS)
    try:
        await manager.start()
    except RecognitionError:
        await manager.stop()
        raise
    return manager


def _new_classifier(show_matches: bool) -> AccuracyClassifier:
    try:
        ledger = load_ledger(config.CHECK_EVAL_DATA)
    except LedgerConfigError as exc:
        typer.echo(f"FATAL ERROR: {exc}", err=True)
        raise typer.Exit(code=1)
    return AccuracyClassifier(ledger, show_matches=show_matches, logger=logging.getLogger("check.accuracy"))


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except RecognitionError as exc:
        if exc.body:
            typer.echo(f"Error Response: {exc.body}", err=True)
        else:
            typer.echo(f"Exception: {exc}", err=True)
        raise typer.Exit(code=1)
    except (GroundTruthError, FileNotFoundError, ValueError) as exc:
        typer.echo(f"Exception: {exc}", err=True)
        raise typer.Exit(code=1)


@check_app.command("scan")
def check_scan(path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Check image to scan")) -> None:
    """Scan one check image and print every engine's reading."""
    _configure()

    async def scan() -> None:
        manager = await _new_manager()
        try:
            result = await manager.scan_file(path)
        finally:
            await manager.stop()
        typer.echo(json.dumps(result.model_dump(mode="json"), indent=4))

    _run(scan())


@check_app.command("test")
def check_test(
    first_id: int = typer.Argument(..., min=1, help="First check id"),
    count: int = typer.Argument(1, min=1, help="Number of checks"),
    show_matches: bool = typer.Option(config.SHOW_MATCHES, "--show-matches", help="List matching ids in the report"),
) -> None:
    """Scan checks FIRST_ID..FIRST_ID+COUNT-1 and report accuracy against ground truth."""
    _configure()
    started = time.perf_counter()
    classifier = _new_classifier(show_matches)

    async def test() -> None:
        manager = await _new_manager()
        await run_accuracy_test(
            manager,
            classifier,
            first_id=first_id,
            count=count,
            concurrency=config.CONCURRENCY,
        )

    _run(test())
    typer.echo(f"Execution time: {format_elapsed(started)}")


@check_app.command("preprocess")
def check_preprocess(
    output_dir: Path = typer.Argument(..., file_okay=False, help="Where MICR images and .gt.txt files go"),
    first_id: int = typer.Argument(..., min=1, help="First check id"),
    count: int = typer.Argument(1, min=1, help="Number of checks"),
) -> None:
    """Write MICR line images and ground-truth text for every check that scans correctly."""
    _configure()
    classifier = _new_classifier(False)

    async def preprocess() -> None:
        manager = await _new_manager()
        await run_preprocess(
            manager,
            classifier,
            output_dir=output_dir,
            first_id=first_id,
            count=count,
            concurrency=config.CONCURRENCY,
        )

    _run(preprocess())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
