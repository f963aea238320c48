import pytest

from classes.submission_poller import EXPONENTIAL, STILL_PROCESSING, backoff_delays, poll_submission


class SequenceFetch:
    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.calls = 0

    def __call__(self, submission_id):
        status = self.statuses[min(self.calls, len(self.statuses) - 1)]
        self.calls += 1
        return {"id": submission_id, "status": status}


def test_stops_at_first_final_status():
    fetch = SequenceFetch(["pending", "processing", "accepted"])
    slept = []
    outcome = poll_submission(fetch, 9, interval=1.0, sleep=slept.append)
    assert outcome.finished
    assert outcome.submission["status"] == "accepted"
    assert outcome.polls == 3
    assert slept == [1.0, 1.0]


def test_gives_up_with_still_processing():
    fetch = SequenceFetch(["processing"])
    outcome = poll_submission(fetch, 9, max_attempts=4, sleep=lambda _: None)
    assert outcome.state == STILL_PROCESSING
    assert not outcome.finished
    assert fetch.calls == 4


def test_exponential_backoff_is_capped():
    delays = list(backoff_delays(interval=1.0, max_attempts=6, strategy=EXPONENTIAL, max_interval=5.0))
    assert delays == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        poll_submission(SequenceFetch(["pending"]), 1, max_attempts=0)
