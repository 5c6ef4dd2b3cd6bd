# User value: This file runs one check through recognition and scoring so batch commands stay simple loops.
import base64
import logging
import os
from pathlib import Path
from typing import Any, List, Mapping, Optional

from schemas.recognition import CheckScanRequest, CheckScanResponse, ImagePayload
from services.check_store import check_file, image_format, load_ground_truth
from services.classification import AccuracyClassifier
from services.micr import ground_truth_line
from services.recognizer import Recognizer, RemoteRecognizer
from utils.correlation import scan_correlation_id, set_correlation_id
from utils.stage_logging import CHECK_COMPARE, CHECK_SCAN, log_stage

MICR_IMAGE_NAME = "MICR"


class CheckManager:
    def __init__(
        self,
        recognizer: Recognizer,
        *,
        checks_dir: str | os.PathLike,
        translators: List[str],
        logger: Optional[logging.Logger] = None,
    ):
        self._recognizer = recognizer
        self._checks_dir = Path(checks_dir)
        self._translators = list(translators)
        self._logger = logger or logging.getLogger("check.manager")
        self._source = "remote" if isinstance(recognizer, RemoteRecognizer) else "local"

    @property
    def checks_dir(self) -> Path:
        return self._checks_dir

    async def start(self) -> None:
        # Remote recognizers must answer /health before any scan is attempted.
        if self._source == "remote":
            health = await self._recognizer.health()
            self._logger.debug("recognizer_health_ok body=%s", health)

    async def stop(self) -> None:
        await self._recognizer.stop()

    def build_request(
        self,
        path: Path,
        *,
        request_id: str,
        debug: Optional[List[str]] = None,
        log_level: Optional[str] = None,
    ) -> CheckScanRequest:
        buffer = path.read_bytes()
        return CheckScanRequest(
            id=request_id,
            image=ImagePayload(
                buffer=base64.b64encode(buffer).decode("ascii"),
                format=image_format(path.suffix),
            ),
            translators=self._translators,
            debug=debug,
            logLevel=log_level,
        )

    async def scan_file(
        self,
        path: str | os.PathLike,
        *,
        check_id: Optional[int] = None,
        debug: Optional[List[str]] = None,
        log_level: Optional[str] = None,
    ) -> CheckScanResponse:
        path = Path(path)
        request_id = str(check_id) if check_id is not None else str(path)
        request = self.build_request(path, request_id=request_id, debug=debug, log_level=log_level)

        log_stage(check_id=request_id, stage=CHECK_SCAN, event="STARTED", source=self._source, file=str(path))
        try:
            response = await self._recognizer.scan(request)
        except Exception as exc:
            log_stage(check_id=request_id, stage=CHECK_SCAN, event="FAILED", source=self._source, error=str(exc))
            raise
        log_stage(
            check_id=request_id,
            stage=CHECK_SCAN,
            event="COMPLETED",
            source=self._source,
            engines=list(response.translators),
        )
        return response

    # User value: scans a numbered check and, when asked, scores it and saves it as training data.
    async def scan_by_id(
        self,
        check_id: int,
        *,
        classifier: Optional[AccuracyClassifier] = None,
        ground_truth_dir: Optional[str | os.PathLike] = None,
        log_level: Optional[str] = None,
    ) -> CheckScanResponse:
        set_correlation_id(scan_correlation_id(check_id))
        path = check_file(self._checks_dir, check_id)
        debug = [MICR_IMAGE_NAME] if ground_truth_dir else None
        response = await self.scan_file(path, check_id=check_id, debug=debug, log_level=log_level)

        if classifier is not None:
            log_stage(check_id=check_id, stage=CHECK_COMPARE, event="STARTED")
            try:
                raw = load_ground_truth(check_id, path)
                matched = classifier.classify(check_id, raw, response.outcome())
            except Exception as exc:
                log_stage(check_id=check_id, stage=CHECK_COMPARE, event="FAILED", error=str(exc))
                raise
            log_stage(check_id=check_id, stage=CHECK_COMPARE, event="COMPLETED", match=matched)
            if ground_truth_dir and matched:
                self.write_ground_truth(check_id, response, raw, ground_truth_dir, classifier)

        return response

    def write_ground_truth(
        self,
        check_id: int,
        response: CheckScanResponse,
        raw: Mapping[str, Any],
        out_dir: str | os.PathLike,
        classifier: AccuracyClassifier,
    ) -> Path:
        image = response.image(MICR_IMAGE_NAME)
        if image is None:
            raise ValueError(f"MICR image not found for check {check_id}")

        out = Path(out_dir)
        out.mkdir(parents=True, exist_ok=True)
        prefix = out / f"check-{check_id}"
        image_path = prefix.with_suffix(".tif")
        gt_path = Path(f"{prefix}.gt.txt")

        override = classifier.ledger.override_for(check_id)
        line = override if override is not None else ground_truth_line(check_id, raw)

        image_path.write_bytes(image.to_bytes())
        gt_path.write_text(line, encoding="utf-8")
        self._logger.info("ground_truth_written check_id=%s dir=%s", check_id, out)
        return gt_path
