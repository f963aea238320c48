import pytest

from utils.lms_client import ApiError, LMSClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    """Replays queued responses and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.requests.append({"method": method, "url": url, "headers": headers, "timeout": timeout, **kwargs})
        return self.responses.pop(0)


def test_login_stores_token_and_later_calls_send_it():
    session = FakeSession(
        FakeResponse(payload={"token": "abc", "user": {"id": 1, "role": "student"}}),
        FakeResponse(payload={"assessments": []}),
    )
    client = LMSClient("http://portal.local/", session=session, timeout=7)

    assert client.login("asha@example.edu", "secret")["id"] == 1
    client.list_assessments()

    login, listing = session.requests
    assert login["url"] == "http://portal.local/api/auth/login"
    assert "Authorization" not in login["headers"]
    assert listing["headers"]["Authorization"] == "Bearer abc"
    assert listing["timeout"] == 7


def test_conflict_carries_server_error_code():
    session = FakeSession(FakeResponse(409, {"error": "Attempt already submitted", "code": "AlreadySubmitted"}))
    client = LMSClient("http://portal.local", token="abc", session=session)

    with pytest.raises(ApiError) as info:
        client.submit_quiz(11, 2, 0, "timeout")

    error = info.value
    assert error.status_code == 409
    assert error.code == "AlreadySubmitted"
    assert error.already_submitted
    assert error.message == "Attempt already submitted"
    assert session.requests[0]["json"] == {"tabSwitches": 2, "fullscreenExits": 0, "reason": "timeout"}


def test_non_json_server_error():
    session = FakeSession(FakeResponse(502))
    client = LMSClient("http://portal.local", token="abc", session=session)

    with pytest.raises(ApiError) as info:
        client.save_answer(11, 3, "B")

    assert info.value.status_code == 502
    assert info.value.message == "HTTP 502"
    assert info.value.code is None
    assert not info.value.already_submitted


def test_submit_code_returns_submission_id():
    session = FakeSession(FakeResponse(202, {"submissionId": 42, "status": "pending"}))
    client = LMSClient("http://portal.local", token="abc", session=session)

    assert client.submit_code(11, 5, "print(1)", "python") == 42
    assert session.requests[0]["url"] == "http://portal.local/api/student/coding/submit"
