# User value: This test keeps the remote scan service answering in the shape accuracy runs on other hosts expect.
import unittest

from fastapi.testclient import TestClient

from app import create_app
from fakes import GOOD_RESULT, FakeRecognizer
from utils import stage_logging

SCAN_BODY = {
    "id": "17",
    "image": {"buffer": "aGVsbG8=", "format": "tif"},
    "translators": ["tesseract", "opencv"],
}


class ScanEndpointUnitTests(unittest.TestCase):
    def test_health_reports_recognizer(self):
        with TestClient(create_app(recognizer=FakeRecognizer())) as client:
            res = client.get("/health")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["status"], "OK")
        self.assertEqual(res.json()["recognizer"], {"engines": ["tesseract", "opencv"]})

    # User value: every requested engine's reading comes back keyed by engine name.
    def test_scan_returns_engine_results(self):
        recognizer = FakeRecognizer()
        with TestClient(create_app(recognizer=recognizer)) as client:
            res = client.post("/check/scan", json=SCAN_BODY)
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body["id"], "17")
        self.assertEqual(body["translators"]["opencv"]["result"]["routingNumber"], GOOD_RESULT["routingNumber"])
        self.assertEqual(set(body["translators"]), {"tesseract", "opencv"})
        self.assertEqual(recognizer.requests[0].image.to_bytes(), b"hello")
        self.assertTrue(res.headers["X-Request-ID"].startswith("req-"))

    def test_injected_recognizer_is_not_stopped(self):
        recognizer = FakeRecognizer()
        with TestClient(create_app(recognizer=recognizer)):
            pass
        self.assertEqual(recognizer.stopped, 0)

    # User value: an engine failure is reported as a bad gateway with the caller's request id.
    def test_engine_failure_is_502(self):
        with TestClient(create_app(recognizer=FakeRecognizer(failing=["17"]))) as client:
            res = client.post("/check/scan", json=SCAN_BODY, headers={"X-Request-ID": "scan-req-0001"})
        self.assertEqual(res.status_code, 502)
        body = res.json()
        self.assertEqual(body["error_code"], "RECOGNITION_FAILED")
        self.assertEqual(body["request_id"], "scan-req-0001")
        self.assertEqual(body["path"], "/check/scan")
        self.assertEqual(res.headers["X-Request-ID"], "scan-req-0001")

    def test_unexpected_engine_crash_is_500_and_logged(self):
        recognizer = FakeRecognizer()

        async def crash(request):
            raise KeyError("model weights")

        recognizer.scan = crash
        app = create_app(recognizer=recognizer)
        with self.assertLogs("check.stage", level="INFO") as logs:
            with TestClient(app, raise_server_exceptions=False) as client:
                res = client.post("/check/scan", json=SCAN_BODY)
        self.assertEqual(res.status_code, 500)
        self.assertTrue(any('"stage": "REMOTE_SCAN", "event": "FAILED"' in line for line in logs.output))
        self.assertFalse([key for key in stage_logging._started if key[1] == "17"])

    def test_invalid_body_is_422(self):
        with TestClient(create_app(recognizer=FakeRecognizer())) as client:
            res = client.post("/check/scan", json={"id": "17", "image": {"buffer": "", "format": "pdf"}})
        self.assertEqual(res.status_code, 422)
        self.assertEqual(res.json()["error_code"], "VALIDATION_ERROR")

    def test_recognizer_unavailable_is_503(self):
        client = TestClient(create_app(recognizer=FakeRecognizer()))
        res = client.get("/health")
        self.assertEqual(res.status_code, 503)
        self.assertEqual(res.json()["error_code"], "RECOGNIZER_UNAVAILABLE")


if __name__ == "__main__":
    unittest.main()
