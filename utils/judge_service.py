import logging
from concurrent.futures import ThreadPoolExecutor

import requests
from flask import current_app

logger = logging.getLogger(__name__)

# Judge0 language ids
LANGUAGE_IDS = {
    "c": 50,
    "cpp": 54,
    "java": 62,
    "python": 71,
    "javascript": 63,
}

STATUS_ACCEPTED = 3


class JudgeError(Exception):
    pass


class JudgeClient:
    """Thin client for a Judge0-compatible ``/submissions`` endpoint."""

    def __init__(self, base_url, api_key=None, timeout=15, cpu_time_limit=5,
                 memory_limit=512000, max_workers=8, session=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.cpu_time_limit = cpu_time_limit
        self.memory_limit = memory_limit
        self.max_workers = max_workers
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(
            base_url=config["JUDGE0_API_URL"],
            api_key=config.get("JUDGE0_API_KEY"),
            timeout=config.get("JUDGE0_REQUEST_TIMEOUT", 15),
            cpu_time_limit=config.get("JUDGE0_CPU_TIME_LIMIT", 5),
            memory_limit=config.get("JUDGE0_MEMORY_LIMIT", 512000),
            max_workers=config.get("JUDGE_MAX_WORKERS", 8),
        )

    def execute(self, source_code, language_id, stdin, expected_output=None,
                cpu_time_limit=None, memory_limit=None):
        """Run one program synchronously and return the judge's JSON response."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-Auth-Token"] = self.api_key
        payload = {
            "source_code": source_code,
            "language_id": language_id,
            "stdin": stdin,
            "expected_output": expected_output,
            "cpu_time_limit": cpu_time_limit or self.cpu_time_limit,
            "memory_limit": memory_limit or self.memory_limit,
        }
        response = self.session.post(
            f"{self.base_url}/submissions",
            params={"base64_encoded": "false", "wait": "true"},
            json=payload,
            headers=headers,
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            raise JudgeError(f"Judge returned HTTP {response.status_code}: {response.text[:200]}")
        try:
            return response.json()
        except ValueError as e:
            raise JudgeError("Judge returned a non-JSON response") from e

    def run_test_case(self, number, source_code, language_id, test_case,
                      cpu_time_limit=None, memory_limit=None):
        """Run a single test case. Judge failures come back as a failed result, never raise."""
        result = {
            "test_case_number": number,
            "input": test_case.get("input"),
            "expected_output": test_case.get("expected_output"),
            "is_hidden": bool(test_case.get("is_hidden")),
            "actual_output": "",
            "passed": False,
            "status": "Error",
            "error": None,
            "execution_time": 0.0,
        }
        try:
            data = self.execute(
                source_code, language_id, test_case.get("input"),
                expected_output=test_case.get("expected_output"),
                cpu_time_limit=cpu_time_limit, memory_limit=memory_limit,
            )
        except (requests.RequestException, JudgeError) as e:
            logger.warning("Judge call failed for test case %s: %s", number, e)
            result["error"] = str(e)
            return result

        status = data.get("status") or {}
        result["status"] = status.get("description", "Unknown")
        result["passed"] = status.get("id") == STATUS_ACCEPTED
        result["actual_output"] = data.get("stdout") or ""
        if not result["passed"]:
            result["error"] = data.get("compile_output") or data.get("stderr") or data.get("message")
        try:
            result["execution_time"] = float(data.get("time") or 0)
        except (TypeError, ValueError):
            result["execution_time"] = 0.0
        return result

    def run_test_cases(self, source_code, language_id, test_cases,
                       cpu_time_limit=None, memory_limit=None):
        """Run every test case in parallel; results come back in test-case order."""
        if not test_cases:
            return []
        workers = max(1, min(self.max_workers, len(test_cases)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self.run_test_case, number, source_code, language_id,
                            case, cpu_time_limit, memory_limit)
                for number, case in enumerate(test_cases, start=1)
            ]
            return [future.result() for future in futures]


def get_judge_client():
    """The app's judge client; tests swap in a fake via ``app.extensions``."""
    client = current_app.extensions.get("judge_client")
    if client is None:
        client = JudgeClient.from_config(current_app.config)
        current_app.extensions["judge_client"] = client
    return client
