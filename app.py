# User value: This file serves check scans over HTTP so accuracy runs on other hosts can share one set of engines.
# app.py
import os
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from routes.health import router as health_router
from routes.scan import router as scan_router
from services.errors import GroundTruthError, RecognitionError
from services.recognizer import Recognizer, create_recognizer
from startup_env import validate_startup_env
from utils.correlation import REQUEST_ID_HEADER, get_correlation_id, normalize_request_id, set_correlation_id
from utils.json_logging import configure_json_logging

load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))


# User value: prepares a stable scan service before any request arrives.
def configure_logging() -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    configure_json_logging(service="check-recognition-api", level=level)


configure_logging()
logger = logging.getLogger("api.error")


def _extract_error_message(detail) -> str:
    if isinstance(detail, dict):
        return str(detail.get("error_message") or detail.get("message") or detail.get("detail") or detail)
    if isinstance(detail, list):
        return "; ".join(str(x) for x in detail)
    return str(detail)


def _to_error_code(status_code: int, detail) -> str:
    if isinstance(detail, dict) and detail.get("error_code"):
        return str(detail.get("error_code")).strip().upper()
    if status_code == 404:
        return "RESOURCE_NOT_FOUND"
    if status_code == 405:
        return "METHOD_NOT_ALLOWED"
    if status_code == 400:
        return "INVALID_REQUEST"
    if status_code == 503:
        return "SERVICE_UNAVAILABLE"
    return f"HTTP_{status_code}"


def _error_body(*, request: Request, status_code: int, detail, error_message: str | None = None) -> dict:
    request_id = get_correlation_id() or normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
    return {
        "error_code": _to_error_code(status_code, detail),
        "error_message": error_message or _extract_error_message(detail),
        "detail": detail,
        "path": request.url.path,
        "request_id": request_id,
    }


def create_app(recognizer: Optional[Recognizer] = None) -> FastAPI:
    """Build the scan service.

    With no ``recognizer`` the engines are loaded from ``RECOGNIZER_FACTORY``
    when the app starts and stopped when it shuts down.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = recognizer is None
        if owned:
            validate_startup_env(require_local_recognizer=True)
            app.state.recognizer = await create_recognizer(
                url=None,
                factory_path=os.getenv("RECOGNIZER_FACTORY"),
            )
        else:
            app.state.recognizer = recognizer
        try:
            yield
        finally:
            if owned:
                await app.state.recognizer.stop()
            app.state.recognizer = None

    app = FastAPI(title="Check Recognition API", lifespan=lifespan)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
        set_correlation_id(request_id)
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = int(getattr(response, "status_code", 500))
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            duration_ms = (time.perf_counter() - started) * 1000.0
            logging.getLogger("api.access").info(
                "request_completed method=%s path=%s status_code=%s duration_ms=%.1f",
                request.method.upper(),
                request.url.path,
                status_code,
                duration_ms,
            )
            set_correlation_id(None)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        body = _error_body(
            request=request,
            status_code=422,
            detail=exc.errors(),
            error_message="Request validation failed",
        )
        body["error_code"] = "VALIDATION_ERROR"
        logger.warning(
            "request_failed_validation status=422 path=%s request_id=%s error_code=%s",
            request.url.path,
            body["request_id"],
            body["error_code"],
        )
        return JSONResponse(status_code=422, content=jsonable_encoder(body))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        body = _error_body(request=request, status_code=exc.status_code, detail=exc.detail)
        logger.warning(
            "request_failed status=%s path=%s request_id=%s error_code=%s error_message=%s",
            exc.status_code,
            request.url.path,
            body["request_id"],
            body["error_code"],
            body["error_message"],
        )
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(GroundTruthError)
    async def ground_truth_exception_handler(request: Request, exc: GroundTruthError):
        body = _error_body(request=request, status_code=400, detail=str(exc))
        body["error_code"] = "GROUND_TRUTH_INVALID"
        logger.warning("request_failed status=400 path=%s request_id=%s error=%s", request.url.path, body["request_id"], exc)
        return JSONResponse(status_code=400, content=body)

    @app.exception_handler(RecognitionError)
    # User value: tells remote callers an engine failed, distinct from a bad request or a crash here.
    async def recognition_exception_handler(request: Request, exc: RecognitionError):
        body = _error_body(request=request, status_code=502, detail=str(exc))
        body["error_code"] = "RECOGNITION_FAILED"
        logger.error(
            "request_failed_recognition status=502 path=%s request_id=%s error=%s",
            request.url.path,
            body["request_id"],
            exc,
        )
        return JSONResponse(status_code=502, content=body)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        request_id = get_correlation_id() or normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
        logger.exception(
            "request_failed_unhandled path=%s request_id=%s error=%s: %s",
            request.url.path,
            request_id,
            exc.__class__.__name__,
            exc,
        )
        body = _error_body(
            request=request,
            status_code=500,
            detail="Unhandled server exception",
            error_message="Internal server error",
        )
        body["error_code"] = "INTERNAL_SERVER_ERROR"
        return JSONResponse(status_code=500, content=body)

    app.include_router(health_router)
    app.include_router(scan_router)
    return app


app = create_app()
