# User value: This file drives a whole range of checks through scanning and scoring, then reports accuracy.
import logging
import os
import time
from typing import Optional

from schemas.accuracy import ClassificationReport
from services.bounded_runner import DONE, JobProducer, Value, run_bounded
from services.check_manager import CheckManager
from services.classification import AccuracyClassifier


def check_id_producer(
    manager: CheckManager,
    classifier: AccuracyClassifier,
    first_id: int,
    count: int,
    *,
    ground_truth_dir: Optional[str | os.PathLike] = None,
    log_level: Optional[str] = None,
) -> JobProducer:
    next_id = first_id
    last_id = first_id + count - 1

    async def fetch_and_classify():
        nonlocal next_id
        if next_id > last_id:
            return DONE
        check_id = next_id
        next_id += 1
        response = await manager.scan_by_id(
            check_id,
            classifier=classifier,
            ground_truth_dir=ground_truth_dir,
            log_level=log_level,
        )
        return Value(response)

    return fetch_and_classify


def format_elapsed(started: float) -> str:
    ms = int((time.perf_counter() - started) * 1000)
    mins = ms // 60000
    secs = round((ms - mins * 60000) / 1000)
    return f"{mins} minutes, {secs} seconds"


async def run_accuracy_test(
    manager: CheckManager,
    classifier: AccuracyClassifier,
    *,
    first_id: int,
    count: int,
    concurrency: int,
    logger: Optional[logging.Logger] = None,
) -> Optional[ClassificationReport]:
    """Scan and classify checks ``first_id .. first_id + count - 1``.

    Statistics are reported even when the run stops on a failure; the failure
    is re-raised afterwards.
    """
    log = logger or logging.getLogger("check.run")
    started = time.perf_counter()
    log.info("accuracy_run_started first_id=%s count=%s concurrency=%s", first_id, count, concurrency)

    producer = check_id_producer(manager, classifier, first_id, count, log_level="warn")
    try:
        await run_bounded(producer, concurrency)
    finally:
        try:
            await manager.stop()
        finally:
            report = classifier.report()

    log.info("accuracy_run_finished execution_time=%r", format_elapsed(started))
    return report


async def run_preprocess(
    manager: CheckManager,
    classifier: AccuracyClassifier,
    *,
    output_dir: str | os.PathLike,
    first_id: int,
    count: int,
    concurrency: int,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Write MICR images and ground-truth lines for every check that matches."""
    log = logger or logging.getLogger("check.run")
    started = time.perf_counter()
    log.info("preprocess_started output_dir=%s first_id=%s count=%s", output_dir, first_id, count)

    producer = check_id_producer(manager, classifier, first_id, count, ground_truth_dir=output_dir)
    try:
        await run_bounded(producer, concurrency)
    finally:
        await manager.stop()

    log.info(
        "preprocess_finished written=%s total=%s execution_time=%r",
        len(classifier.matches),
        classifier.total,
        format_elapsed(started),
    )
