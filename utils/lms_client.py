import logging

import requests

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A non-2xx response from the portal API."""

    def __init__(self, status_code, message, code=None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code

    @property
    def already_submitted(self):
        return self.code in ("AlreadySubmitted", "AlreadyCompleted")


class LMSClient:
    """Student-side client for the ``/api/student`` endpoints.

    Network failures surface as ``requests.RequestException``; HTTP errors as
    ``ApiError`` carrying the server's error code.
    """

    def __init__(self, base_url, token=None, timeout=10, session=None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method, path, **kwargs):
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = self.session.request(
            method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs
        )
        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.status_code >= 400:
            message = data.get("error") or f"HTTP {response.status_code}"
            logger.debug("%s %s failed: %s", method, path, message)
            raise ApiError(response.status_code, message, data.get("code"))
        return data

    def login(self, email, password):
        data = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        self.token = data["token"]
        return data["user"]

    def list_assessments(self):
        return self._request("GET", "/api/student/assessments")

    def start_quiz(self, assessment_id):
        return self._request("POST", f"/api/student/assessments/{assessment_id}/start-quiz")

    def save_answer(self, attempt_id, question_id, selected_answer):
        return self._request(
            "POST", f"/api/student/attempts/{attempt_id}/answer",
            json={"questionId": question_id, "selectedAnswer": selected_answer},
        )

    def record_telemetry(self, attempt_id, tab_switches, fullscreen_exits):
        return self._request(
            "POST", f"/api/student/attempts/{attempt_id}/telemetry",
            json={"tabSwitches": tab_switches, "fullscreenExits": fullscreen_exits},
        )

    def submit_quiz(self, attempt_id, tab_switches, fullscreen_exits, reason="manual"):
        return self._request(
            "POST", f"/api/student/attempts/{attempt_id}/submit",
            json={"tabSwitches": tab_switches, "fullscreenExits": fullscreen_exits, "reason": reason},
        )

    def coding_problems(self, assessment_id):
        return self._request("GET", f"/api/student/assessments/{assessment_id}/coding-problems")

    def submit_code(self, attempt_id, problem_id, code, language):
        data = self._request(
            "POST", "/api/student/coding/submit",
            json={"attemptId": attempt_id, "problemId": problem_id, "code": code, "language": language},
        )
        return data["submissionId"]

    def get_submission(self, submission_id):
        return self._request("GET", f"/api/student/coding/submissions/{submission_id}")["submission"]

    def submit_coding(self, attempt_id, tab_switches, fullscreen_exits, reason="manual"):
        return self._request(
            "POST", f"/api/student/coding/attempts/{attempt_id}/submit",
            json={"tabSwitches": tab_switches, "fullscreenExits": fullscreen_exits, "reason": reason},
        )
