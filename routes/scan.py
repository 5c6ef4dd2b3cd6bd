# User value: This endpoint lets other hosts delegate check scans to the engines running here.
from fastapi import APIRouter, Depends

from schemas.recognition import CheckScanRequest, CheckScanResponse
from services.recognizer import Recognizer, get_recognizer
from utils.correlation import get_correlation_id
from utils.stage_logging import REMOTE_SCAN, log_stage

router = APIRouter(tags=["check"])


@router.post("/check/scan", response_model=CheckScanResponse)
# User value: runs the requested engines on one check image and returns every engine's reading.
async def check_scan(payload: CheckScanRequest, recognizer: Recognizer = Depends(get_recognizer)):
    request_id = get_correlation_id() or ""
    log_stage(
        check_id=payload.id,
        stage=REMOTE_SCAN,
        event="STARTED",
        request_id=request_id,
        engines=payload.translators,
        image_format=payload.image.format.value,
    )
    try:
        response = await recognizer.scan(payload)
    except Exception as exc:
        log_stage(
            check_id=payload.id,
            stage=REMOTE_SCAN,
            event="FAILED",
            request_id=request_id,
            error=str(exc),
        )
        raise

    log_stage(
        check_id=payload.id,
        stage=REMOTE_SCAN,
        event="COMPLETED",
        request_id=request_id,
        engines=list(response.translators),
    )
    return response
