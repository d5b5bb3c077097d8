from __future__ import annotations

"""Google Sheets sync through an Apps Script web app.

Submissions are POSTed as a single form field ``payload`` holding
``{"action": ..., "data": {...}}``; the bulk read is a GET with
``?action=getAllData``. The camelCase keys inside ``data`` are the web
app's column contract. Nothing here raises: every failure is logged on the
``sheets`` channel and reported through the returned outcome.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ..logging_config import get_logger, log_with_context
from ..storage import PracticeSession, StudentInfo, TestResult
from ..util.formatting import format_duration, percent

logger = get_logger("sheets")

NOT_CONFIGURED = "Chưa cấu hình Google Sheets"


@dataclass(frozen=True)
class SubmitOutcome:
    success: bool
    error: Optional[str] = None


@dataclass
class SheetsData:
    success: bool
    test_results: List[Dict[str, Any]] = field(default_factory=list)
    practice_results: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None


def build_test_payload(result: TestResult, student: StudentInfo) -> Dict[str, Any]:
    return {
        "action": "submitTest",
        "data": {
            "studentName": student.name,
            "studentClass": student.class_name or "",
            "testId": result.id,
            "date": result.date.isoformat(),
            "semester": result.semester,
            "topics": ", ".join(result.topics),
            "score": result.score,
            "totalQuestions": result.total_questions,
            "correctAnswers": result.correct_answers,
            "wrongAnswers": result.total_questions - result.correct_answers,
            "accuracy": percent(result.correct_answers, result.total_questions),
            "timeSpent": result.time_spent,
            "timeSpentFormatted": format_duration(result.time_spent),
        },
    }


def build_practice_payload(session: PracticeSession, student: StudentInfo) -> Dict[str, Any]:
    return {
        "action": "submitPractice",
        "data": {
            "studentName": student.name,
            "studentClass": student.class_name or "",
            "date": session.date.isoformat(),
            "mode": session.mode,
            "questionsAttempted": session.questions_attempted,
            "correctAnswers": session.correct_answers,
            "accuracy": percent(session.correct_answers, session.questions_attempted),
            "timeSpent": session.time_spent,
            "timeSpentFormatted": format_duration(session.time_spent),
        },
    }


class SheetsClient:
    def __init__(
        self,
        script_url: str = "",
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.script_url = (script_url or "").strip()
        self.timeout = float(timeout)
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.script_url)

    def _client(self) -> httpx.Client:
        # Apps Script answers with a redirect to the content host.
        return httpx.Client(timeout=self.timeout, transport=self.transport, follow_redirects=True)

    def _post(self, payload: Dict[str, Any]) -> SubmitOutcome:
        if not self.configured:
            return SubmitOutcome(success=False, error=NOT_CONFIGURED)
        try:
            with self._client() as client:
                resp = client.post(self.script_url, data={"payload": json.dumps(payload, ensure_ascii=False)})
                resp.raise_for_status()
        except httpx.HTTPError as e:
            log_with_context(logger, "WARNING", "Sheet submission failed", {"action": payload.get("action"), "error": str(e)})
            return SubmitOutcome(success=False, error=str(e))
        log_with_context(logger, "INFO", "Sheet submission sent", {"action": payload.get("action")})
        return SubmitOutcome(success=True)

    def submit_test_result(self, result: TestResult, student: StudentInfo) -> SubmitOutcome:
        return self._post(build_test_payload(result, student))

    def submit_practice_result(self, session: PracticeSession, student: StudentInfo) -> SubmitOutcome:
        return self._post(build_practice_payload(session, student))

    def fetch_all_data(self) -> SheetsData:
        if not self.configured:
            return SheetsData(success=False, error=NOT_CONFIGURED)
        try:
            with self._client() as client:
                resp = client.get(self.script_url, params={"action": "getAllData"})
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            log_with_context(logger, "WARNING", "Fetching sheet data failed", {"error": str(e)})
            return SheetsData(success=False, error=str(e))
        if not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else "Unexpected response"
            log_with_context(logger, "WARNING", "Sheet returned an error", {"error": error})
            return SheetsData(success=False, error=error or "Unknown error")
        return SheetsData(
            success=True,
            test_results=list(body.get("testResults") or []),
            practice_results=list(body.get("practiceResults") or []),
        )
