# User value: This test keeps review queues and accuracy percentages trustworthy for the people triaging failures.
import logging
import unittest

from schemas.ledger import EvaluationLedger
from schemas.recognition import EngineResult
from services.classification import (
    AccuracyClassifier,
    Bucket,
    decide_bucket,
    format_percent,
)
from services.errors import GroundTruthError

RAW_X9 = {
    "payorBankRoutingNumber": "1234567",
    "payorBankCheckDigit": "8",
    "onUs": "1234567890/",
    "auxiliaryOnUs": "1234567",
}

GOOD = {"routingNumber": "12345678", "accountNumber": "1234567890U", "checkNumber": "1234567"}
BAD = {"routingNumber": "12345679", "accountNumber": "1234567890U", "checkNumber": "1234567"}


def quiet_logger() -> logging.Logger:
    logger = logging.getLogger("tests.accuracy")
    logger.addHandler(logging.NullHandler())
    logger.propagate = False
    return logger


class DecideBucketUnitTests(unittest.TestCase):
    # User value: a corrected check always goes to the wrong-ground-truth list, whatever else happened.
    def test_override_takes_precedence(self):
        for matched in (True, False):
            for evaluated in (True, False):
                self.assertEqual(
                    decide_bucket(matched=matched, has_override=True, already_evaluated=evaluated),
                    Bucket.WRONG_GROUND_TRUTH,
                )

    def test_remaining_rows(self):
        self.assertEqual(
            decide_bucket(matched=False, has_override=False, already_evaluated=False),
            Bucket.NEEDS_EVALUATION,
        )
        self.assertEqual(
            decide_bucket(matched=True, has_override=False, already_evaluated=True),
            Bucket.NEEDS_REEVALUATION,
        )
        self.assertEqual(
            decide_bucket(matched=True, has_override=False, already_evaluated=False),
            Bucket.NONE,
        )
        self.assertEqual(
            decide_bucket(matched=False, has_override=False, already_evaluated=True),
            Bucket.NONE,
        )


class FormatPercentUnitTests(unittest.TestCase):
    def test_two_decimals(self):
        self.assertEqual(format_percent(98, 100), "98.00%")
        self.assertEqual(format_percent(1, 3), "33.33%")
        self.assertEqual(format_percent(2, 3), "66.67%")
        self.assertEqual(format_percent(0, 5), "0.00%")

    # User value: halfway values round up, so small ground-truth error rates are not understated.
    def test_ties_round_half_up(self):
        self.assertEqual(format_percent(1, 800), "0.13%")
        self.assertEqual(format_percent(5, 800), "0.63%")
        self.assertEqual(format_percent(1, 8), "12.50%")

    def test_no_comparisons(self):
        self.assertIsNone(format_percent(0, 0))


class AccuracyClassifierUnitTests(unittest.TestCase):
    def make(self, ledger=None, show_matches=False):
        return AccuracyClassifier(ledger, show_matches=show_matches, logger=quiet_logger())

    # User value: one engine reading the check correctly is enough to count it as read.
    def test_any_engine_match_wins(self):
        classifier = self.make()
        matched = classifier.classify(1, RAW_X9, {"tesseract": BAD, "opencv": GOOD})
        self.assertTrue(matched)
        self.assertEqual(classifier.matches, [1])
        self.assertEqual(classifier.mismatches, [])

    def test_first_matching_engine_short_circuits(self):
        classifier = self.make()
        result = classifier.compare(1, RAW_X9, {"tesseract": GOOD, "opencv": {"routingNumber": 5}})
        self.assertTrue(result.matched)
        self.assertEqual(result.engine, "tesseract")

    def test_accepts_engine_result_models(self):
        classifier = self.make()
        self.assertTrue(classifier.classify(1, RAW_X9, {"opencv": EngineResult(**GOOD)}))

    def test_no_normalization_on_compare(self):
        classifier = self.make()
        padded = dict(GOOD, routingNumber=" 12345678")
        self.assertFalse(classifier.classify(1, RAW_X9, {"opencv": padded}))

    def test_fresh_mismatch_needs_evaluation(self):
        classifier = self.make()
        result = classifier.compare(2, RAW_X9, {"opencv": BAD})
        self.assertFalse(result.matched)
        self.assertEqual(result.bucket, Bucket.NEEDS_EVALUATION)
        self.assertEqual(classifier.to_evaluate, [2])
        self.assertEqual(classifier.mismatches, [2])

    def test_empty_outcome_mismatches(self):
        classifier = self.make()
        self.assertFalse(classifier.classify(2, RAW_X9, {}))
        self.assertEqual(classifier.to_evaluate, [2])

    # User value: a previously triaged failure that now passes is sent back for another look.
    def test_evaluated_id_now_matching_needs_reevaluation(self):
        ledger = EvaluationLedger(mismatchesByReason={"smudged": [3], "torn": [9]})
        classifier = self.make(ledger)
        classifier.classify(3, RAW_X9, {"opencv": GOOD})
        self.assertEqual(classifier.to_reevaluate, [3])
        self.assertEqual(classifier.to_evaluate, [])
        self.assertEqual(classifier.matches, [3])
        self.assertEqual(classifier.mismatches, [])
        self.assertEqual(classifier.total, 1)

    def test_evaluated_id_still_mismatching_needs_nothing(self):
        ledger = EvaluationLedger(mismatchesByReason={"smudged": [3]})
        classifier = self.make(ledger)
        result = classifier.compare(3, RAW_X9, {"opencv": BAD})
        self.assertEqual(result.bucket, Bucket.NONE)
        self.assertEqual(classifier.to_evaluate, [])
        self.assertEqual(classifier.mismatches, [3])

    # User value: a corrected check is scored against the correction and counted as wrong ground truth.
    def test_override_scores_against_correction(self):
        ledger = EvaluationLedger(correctX9={"4": "T111111111T222U333"})
        classifier = self.make(ledger)
        corrected = {"routingNumber": "111111111", "accountNumber": "222", "checkNumber": "333"}
        self.assertTrue(classifier.classify(4, RAW_X9, {"opencv": corrected}))
        self.assertEqual(classifier.wrong_in_ground_truth, [4])
        self.assertEqual(classifier.matches, [4])

    def test_override_mismatch_raises_no_review_signal(self):
        ledger = EvaluationLedger(correctX9={"4": "T111111111T222U333"}, mismatchesByReason={"x": [4]})
        classifier = self.make(ledger)
        self.assertFalse(classifier.classify(4, RAW_X9, {"opencv": GOOD}))
        self.assertEqual(classifier.wrong_in_ground_truth, [4])
        self.assertEqual(classifier.to_evaluate, [])
        self.assertEqual(classifier.to_reevaluate, [])
        self.assertEqual(classifier.mismatches, [4])

    # User value: a bad ground-truth record fails that one check without skewing the totals.
    def test_malformed_ground_truth_leaves_sets_untouched(self):
        classifier = self.make()
        classifier.classify(1, RAW_X9, {"opencv": GOOD})
        with self.assertRaises(GroundTruthError):
            classifier.classify(2, {"onUs": "1/"}, {"opencv": GOOD})
        self.assertEqual(classifier.matches, [1])
        self.assertEqual(classifier.mismatches, [])
        self.assertEqual(classifier.to_evaluate, [])
        self.assertEqual(classifier.total, 1)

    def test_sets_stay_disjoint_and_sorted(self):
        ledger = EvaluationLedger(mismatchesByReason={"r": [5, 6]}, correctX9={"7": "T111111111T222U333"})
        classifier = self.make(ledger)
        for check_id, result in [(9, BAD), (5, GOOD), (8, GOOD), (6, BAD), (7, GOOD), (1, BAD)]:
            classifier.classify(check_id, RAW_X9, {"opencv": result})

        self.assertEqual(classifier.total, 6)
        self.assertFalse(set(classifier.matches) & set(classifier.mismatches))
        self.assertEqual(classifier.mismatches, [1, 6, 7, 9])
        self.assertEqual(classifier.matches, [5, 8])
        self.assertEqual(classifier.to_evaluate, [1, 9])
        self.assertEqual(classifier.to_reevaluate, [5])
        self.assertEqual(classifier.wrong_in_ground_truth, [7])
        buckets = [set(classifier.to_evaluate), set(classifier.to_reevaluate), set(classifier.wrong_in_ground_truth)]
        for i, a in enumerate(buckets):
            for b in buckets[i + 1:]:
                self.assertFalse(a & b)

    def test_reclassified_id_keeps_latest_verdict(self):
        classifier = self.make()
        classifier.classify(2, RAW_X9, {"opencv": BAD})
        classifier.classify(2, RAW_X9, {"opencv": GOOD})
        self.assertEqual(classifier.matches, [2])
        self.assertEqual(classifier.mismatches, [])
        self.assertEqual(classifier.to_evaluate, [])
        self.assertEqual(classifier.total, 1)

    def test_running_percentage(self):
        classifier = self.make()
        self.assertIsNone(classifier.match_percentage)
        for check_id in range(1, 99):
            classifier.classify(check_id, RAW_X9, {"opencv": GOOD})
        classifier.classify(99, RAW_X9, {"opencv": BAD})
        classifier.classify(100, RAW_X9, {"opencv": BAD})
        self.assertEqual(classifier.match_percentage, "98.00%")


class AccuracyReportUnitTests(unittest.TestCase):
    def test_report_without_comparisons_is_silent(self):
        logger = quiet_logger()
        classifier = AccuracyClassifier(logger=logger)
        with self.assertNoLogs(logger, level="INFO"):
            self.assertIsNone(classifier.report())

    # User value: the end-of-run summary lists what to review and the headline numbers.
    def test_report_contents(self):
        ledger = EvaluationLedger(correctX9={"3": "T111111111T222U333"})
        classifier = AccuracyClassifier(ledger, logger=quiet_logger())
        classifier.classify(2, RAW_X9, {"opencv": BAD})
        classifier.classify(1, RAW_X9, {"opencv": GOOD})
        classifier.classify(3, RAW_X9, {"opencv": GOOD})
        classifier.classify(4, RAW_X9, {"opencv": GOOD})

        report = classifier.report()
        self.assertIsNone(report.matches)
        self.assertEqual(report.mismatches, [2, 3])
        self.assertEqual(report.to_evaluate, [2])
        self.assertEqual(report.wrong_in_ground_truth, [3])
        self.assertEqual(report.match_count, 2)
        self.assertEqual(report.wrong_ground_truth_count, 1)
        self.assertEqual(report.total, 4)
        self.assertEqual(report.match_percentage, "50.00%")
        self.assertEqual(report.wrong_ground_truth_percentage, "25.00%")

    def test_report_lists_matches_when_enabled(self):
        logger = quiet_logger()
        classifier = AccuracyClassifier(show_matches=True, logger=logger)
        classifier.classify(5, RAW_X9, {"opencv": GOOD})
        classifier.classify(2, RAW_X9, {"opencv": GOOD})
        with self.assertLogs(logger, level="INFO") as logs:
            report = classifier.report()
        self.assertEqual(report.matches, [2, 5])
        self.assertTrue(any("matches=[2, 5]" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()
