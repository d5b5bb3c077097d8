import json
import unittest
from datetime import datetime, timezone
from urllib.parse import parse_qs

import httpx

from mathpractice.sheets import NOT_CONFIGURED, SheetsClient
from mathpractice.storage import schema

URL = "https://script.example.com/macros/s/abc/exec"
STUDENT = schema.StudentInfo(name="Nguyễn An", class_name="5A")
RESULT = schema.TestResult(
    id="test-1",
    date=datetime(2024, 5, 2, 7, 30, tzinfo=timezone.utc),
    semester=1,
    topics=["phan-so", "so-tu-nhien"],
    score=7.0,
    total_questions=10,
    correct_answers=7,
    time_spent=125,
)
PRACTICE = schema.PracticeSession(
    id="practice-1",
    date=datetime(2024, 5, 2, 8, 0, tzinfo=timezone.utc),
    mode="tinh-nhanh",
    questions_attempted=3,
    correct_answers=2,
    time_spent=59,
)


def _client(handler) -> SheetsClient:
    return SheetsClient(URL, transport=httpx.MockTransport(handler))


def _payload(request: httpx.Request) -> dict:
    form = parse_qs(request.content.decode("utf-8"))
    return json.loads(form["payload"][0])


class SubmitTests(unittest.TestCase):
    def test_unconfigured_client_reports_not_configured(self) -> None:
        client = SheetsClient("")
        self.assertFalse(client.configured)
        out = client.submit_test_result(RESULT, STUDENT)
        self.assertFalse(out.success)
        self.assertEqual(out.error, NOT_CONFIGURED)
        self.assertEqual(client.fetch_all_data().error, NOT_CONFIGURED)

    def test_test_payload(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True})

        out = _client(handler).submit_test_result(RESULT, STUDENT)
        self.assertTrue(out.success)
        self.assertEqual(seen[0].method, "POST")
        payload = _payload(seen[0])
        self.assertEqual(payload["action"], "submitTest")
        data = payload["data"]
        self.assertEqual(data["studentName"], "Nguyễn An")
        self.assertEqual(data["studentClass"], "5A")
        self.assertEqual(data["topics"], "phan-so, so-tu-nhien")
        self.assertEqual(data["wrongAnswers"], 3)
        self.assertEqual(data["accuracy"], 70)
        self.assertEqual(data["timeSpentFormatted"], "2 phút 5 giây")
        self.assertTrue(data["date"].startswith("2024-05-02T07:30:00"))

    def test_practice_payload(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(_payload(request))
            return httpx.Response(200, text="ok")

        self.assertTrue(_client(handler).submit_practice_result(PRACTICE, STUDENT).success)
        self.assertEqual(seen[0]["action"], "submitPractice")
        self.assertEqual(seen[0]["data"]["mode"], "tinh-nhanh")
        self.assertEqual(seen[0]["data"]["accuracy"], 67)
        self.assertEqual(seen[0]["data"]["timeSpentFormatted"], "0 phút 59 giây")

    def test_http_error_is_reported_not_raised(self) -> None:
        client = _client(lambda request: httpx.Response(500, text="boom"))
        with self.assertLogs("mathpractice.sheets", level="WARNING"):
            out = client.submit_test_result(RESULT, STUDENT)
        self.assertFalse(out.success)
        self.assertIn("500", out.error)

    def test_transport_error_is_reported_not_raised(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route", request=request)

        out = _client(handler).submit_practice_result(PRACTICE, STUDENT)
        self.assertFalse(out.success)
        self.assertIn("no route", out.error)


class FetchTests(unittest.TestCase):
    def test_fetch_all_data(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.method, "GET")
            self.assertEqual(request.url.params["action"], "getAllData")
            return httpx.Response(
                200,
                json={"success": True, "testResults": [{"testId": "test-1"}], "practiceResults": []},
            )

        data = _client(handler).fetch_all_data()
        self.assertTrue(data.success)
        self.assertEqual(data.test_results, [{"testId": "test-1"}])
        self.assertEqual(data.practice_results, [])

    def test_fetch_reports_remote_error(self) -> None:
        data = _client(lambda r: httpx.Response(200, json={"success": False, "error": "sheet missing"})).fetch_all_data()
        self.assertFalse(data.success)
        self.assertEqual(data.error, "sheet missing")

    def test_fetch_reports_bad_json(self) -> None:
        data = _client(lambda r: httpx.Response(200, text="<html>")).fetch_all_data()
        self.assertFalse(data.success)


if __name__ == "__main__":
    unittest.main()
