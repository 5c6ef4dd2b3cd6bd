# User value: This file decides whether each check was read correctly and which review queue it belongs in.
"""Accuracy classification of recognition outcomes against ground truth.

Each ``classify`` call resolves the expected MICR fields for one check, tests
every engine's result against them, files the check id into ``matches`` or
``mismatches`` and into at most one review bucket, and updates the running
match percentage. ``report`` logs the sorted totals at the end of a run.
"""
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, List, Mapping, Optional, Set

from schemas.accuracy import ClassificationReport
from schemas.ledger import EvaluationLedger
from schemas.recognition import EngineResult
from services.micr import FieldTriple, resolve_expected


class Bucket(str, Enum):
    NONE = "NONE"
    WRONG_GROUND_TRUTH = "WRONG_GROUND_TRUTH"
    NEEDS_EVALUATION = "NEEDS_EVALUATION"
    NEEDS_REEVALUATION = "NEEDS_REEVALUATION"


# User value: keeps the review-queue rules in one place, checked in the order reviewers rely on.
def decide_bucket(*, matched: bool, has_override: bool, already_evaluated: bool) -> Bucket:
    # A corrected check never lands in an evaluation queue, even when it still mismatches.
    if has_override:
        return Bucket.WRONG_GROUND_TRUTH
    if not matched and not already_evaluated:
        return Bucket.NEEDS_EVALUATION
    if matched and already_evaluated:
        return Bucket.NEEDS_REEVALUATION
    return Bucket.NONE


def format_percent(count: int, total: int) -> Optional[str]:
    if total <= 0:
        return None
    # Ties round away from zero: 1/800 is "0.13%".
    value = (Decimal(count * 100) / Decimal(total)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{value}%"


def mismatched_fields(expected: FieldTriple, result: EngineResult) -> List[str]:
    fields = []
    if expected.routing_number != result.routingNumber:
        fields.append("routingNumber")
    if expected.account_number != result.accountNumber:
        fields.append("accountNumber")
    if expected.check_number != result.checkNumber:
        fields.append("checkNumber")
    return fields


@dataclass(frozen=True)
class ClassificationResult:
    check_id: int
    matched: bool
    bucket: Bucket
    engine: Optional[str] = None


class AccuracyClassifier:
    def __init__(
        self,
        ledger: Optional[EvaluationLedger] = None,
        *,
        show_matches: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        self._ledger = ledger or EvaluationLedger()
        self._evaluated = self._ledger.evaluated_ids()
        self._show_matches = show_matches
        self._logger = logger or logging.getLogger("check.accuracy")

        self._matches: Set[int] = set()
        self._mismatches: Set[int] = set()
        self._wrong_in_ground_truth: Set[int] = set()
        self._to_evaluate: Set[int] = set()
        self._to_reevaluate: Set[int] = set()

    @property
    def ledger(self) -> EvaluationLedger:
        return self._ledger

    def expected_triple(self, check_id: int, ground_truth: Optional[Mapping[str, Any]]) -> FieldTriple:
        return resolve_expected(check_id, ground_truth, self._ledger.override_for(check_id))

    def compare(
        self,
        check_id: int,
        ground_truth: Optional[Mapping[str, Any]],
        outcome: Mapping[str, Any],
    ) -> ClassificationResult:
        # Raises GroundTruthError before any running set is touched.
        expected = self.expected_triple(check_id, ground_truth)

        matched_engine = None
        for engine, raw_result in outcome.items():
            result = raw_result if isinstance(raw_result, EngineResult) else EngineResult.model_validate(raw_result)
            fields = mismatched_fields(expected, result)
            if not fields:
                self._logger.debug("engine_matched engine=%s check_id=%s", engine, check_id)
                matched_engine = engine
                break
            self._logger.debug("engine_mismatched engine=%s check_id=%s fields=%s", engine, check_id, fields)

        matched = matched_engine is not None
        if not matched:
            self._logger.debug("check_mismatched check_id=%s", check_id)

        result = ClassificationResult(
            check_id=check_id,
            matched=matched,
            bucket=decide_bucket(
                matched=matched,
                has_override=self._ledger.has_override(check_id),
                already_evaluated=check_id in self._evaluated,
            ),
            engine=matched_engine,
        )
        self._record(result)
        return result

    def classify(
        self,
        check_id: int,
        ground_truth: Optional[Mapping[str, Any]],
        outcome: Mapping[str, Any],
    ) -> bool:
        return self.compare(check_id, ground_truth, outcome).matched

    def _record(self, result: ClassificationResult) -> None:
        check_id = result.check_id
        # A re-classified id keeps only its latest bucket.
        self._to_evaluate.discard(check_id)
        self._to_reevaluate.discard(check_id)
        if result.bucket is Bucket.WRONG_GROUND_TRUTH:
            self._wrong_in_ground_truth.add(check_id)
        elif result.bucket is Bucket.NEEDS_EVALUATION:
            self._logger.info("evaluate_check check_id=%s", check_id)
            self._to_evaluate.add(check_id)
        elif result.bucket is Bucket.NEEDS_REEVALUATION:
            self._logger.info("reevaluate_check check_id=%s", check_id)
            self._to_reevaluate.add(check_id)

        if result.matched:
            self._mismatches.discard(check_id)
            self._matches.add(check_id)
        else:
            self._matches.discard(check_id)
            self._mismatches.add(check_id)

        self._logger.info(
            "check_compared check_id=%s match=%s match_pct=%s",
            check_id,
            str(result.matched).lower(),
            self.match_percentage,
        )

    @property
    def matches(self) -> List[int]:
        return sorted(self._matches)

    @property
    def mismatches(self) -> List[int]:
        return sorted(self._mismatches)

    @property
    def wrong_in_ground_truth(self) -> List[int]:
        return sorted(self._wrong_in_ground_truth)

    @property
    def to_evaluate(self) -> List[int]:
        return sorted(self._to_evaluate)

    @property
    def to_reevaluate(self) -> List[int]:
        return sorted(self._to_reevaluate)

    @property
    def total(self) -> int:
        return len(self._matches) + len(self._mismatches)

    @property
    def match_percentage(self) -> Optional[str]:
        return format_percent(len(self._matches), self.total)

    @property
    def wrong_ground_truth_percentage(self) -> Optional[str]:
        return format_percent(len(self._wrong_in_ground_truth), self.total)

    # User value: gives reviewers sorted lists of what to look at next, plus the headline accuracy.
    def report(self) -> Optional[ClassificationReport]:
        if self.total == 0:
            return None

        report = ClassificationReport(
            matches=self.matches if self._show_matches else None,
            mismatches=self.mismatches,
            to_evaluate=self.to_evaluate,
            to_reevaluate=self.to_reevaluate,
            wrong_in_ground_truth=self.wrong_in_ground_truth,
            match_count=len(self._matches),
            wrong_ground_truth_count=len(self._wrong_in_ground_truth),
            total=self.total,
            match_percentage=self.match_percentage,
            wrong_ground_truth_percentage=self.wrong_ground_truth_percentage,
        )

        log = self._logger
        if report.matches is not None:
            log.info("accuracy_report matches=%s", report.matches)
        log.info("accuracy_report mismatches=%s", report.mismatches)
        log.info("accuracy_report mismatches_to_evaluate=%s", report.to_evaluate)
        log.info("accuracy_report matches_to_reevaluate=%s", report.to_reevaluate)
        log.info(
            "accuracy_report counts match=%s x9_wrong=%s total=%s",
            report.match_count,
            report.wrong_ground_truth_count,
            report.total,
        )
        log.info(
            "accuracy_report percentage match=%s x9_wrong=%s",
            report.match_percentage,
            report.wrong_ground_truth_percentage,
        )
        return report
