# User value: This file lets an accuracy run use engines in this process or delegate scans to a recognition service.
import importlib
import inspect
import logging
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

import httpx
from fastapi import HTTPException, Request

from schemas.recognition import CheckScanRequest, CheckScanResponse
from services.errors import RecognitionError

logger = logging.getLogger("check.recognizer")


@runtime_checkable
class Recognizer(Protocol):
    async def health(self) -> Dict[str, Any]:
        ...

    async def scan(self, request: CheckScanRequest) -> CheckScanResponse:
        ...

    async def stop(self) -> None:
        ...


class RemoteRecognizer:
    """Sends scan requests to a recognition service over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # trust_env=False: scans go straight to the service, never through HTTP(S)_PROXY.
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
                trust_env=False,
            )
        return self._client

    async def health(self) -> Dict[str, Any]:
        url = f"{self._base_url}/health"
        try:
            response = await self._get_client().get("/health")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = exc.response.text[:500] if exc.response.text else ""
            logger.error("remote_health_failed url=%s status=%s body=%s", url, exc.response.status_code, body)
            raise RecognitionError(
                f"Failed response from {url}: {exc.response.status_code}",
                status_code=exc.response.status_code,
                body=body,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("remote_health_failed url=%s error=%s", url, exc)
            raise RecognitionError(f"Failed response from {url}: {exc}") from exc

        data = response.json()
        logger.debug("remote_health_ok url=%s body=%s", url, data)
        return data

    async def scan(self, request: CheckScanRequest) -> CheckScanResponse:
        url = f"{self._base_url}/check/scan"
        logger.debug("remote_scan_sending url=%s check_id=%s", url, request.id)
        try:
            response = await self._get_client().post("/check/scan", content=request.model_dump_json())
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = exc.response.text[:500] if exc.response.text else ""
            logger.error(
                "remote_scan_failed url=%s check_id=%s status=%s body=%s",
                url,
                request.id,
                exc.response.status_code,
                body,
            )
            raise RecognitionError(
                f"Error from {url} for request {request.id}: {exc.response.status_code}",
                status_code=exc.response.status_code,
                body=body,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("remote_scan_failed url=%s check_id=%s error=%s", url, request.id, exc)
            raise RecognitionError(f"Error from {url} for request {request.id}: {exc}") from exc

        result = CheckScanResponse.model_validate(response.json())
        logger.debug("remote_scan_received url=%s check_id=%s engines=%s", url, request.id, list(result.translators))
        return result

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def load_recognizer_factory(path: str) -> Callable[[], Any]:
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"RECOGNIZER_FACTORY must look like 'package.module:callable', got {path!r}")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ValueError(f"RECOGNIZER_FACTORY {path!r} is not callable")
    return factory


async def create_recognizer(
    *,
    url: Optional[str],
    factory_path: Optional[str],
    timeout: float = 60.0,
) -> Recognizer:
    if url:
        logger.info("recognizer_selected mode=remote url=%s", url)
        return RemoteRecognizer(url, timeout=timeout)
    if factory_path:
        factory = load_recognizer_factory(factory_path)
        recognizer = factory()
        if inspect.isawaitable(recognizer):
            recognizer = await recognizer
        if not isinstance(recognizer, Recognizer):
            raise TypeError(f"{factory_path} returned {type(recognizer).__name__}, not a Recognizer")
        logger.info("recognizer_selected mode=local factory=%s", factory_path)
        return recognizer
    raise RuntimeError("Neither URL nor RECOGNIZER_FACTORY is configured")


# User value: hands route handlers the recognizer this service was started with.
def get_recognizer(request: Request) -> Recognizer:
    recognizer = getattr(request.app.state, "recognizer", None)
    if recognizer is None:
        raise HTTPException(
            status_code=503,
            detail={"error_code": "RECOGNIZER_UNAVAILABLE", "error_message": "Recognizer is not ready"},
        )
    return recognizer
