"""Bounded polling for judge results."""
import logging
import time
from dataclasses import dataclass
from typing import Optional

from models.code_submissions import FINISHED_STATUSES

logger = logging.getLogger(__name__)

FIXED = "fixed"
EXPONENTIAL = "exponential"

STILL_PROCESSING = "still_processing"
FINISHED = "finished"


@dataclass
class PollOutcome:
    state: str
    submission: Optional[dict]
    polls: int

    @property
    def finished(self):
        return self.state == FINISHED


def backoff_delays(interval=1.0, max_attempts=30, strategy=FIXED, factor=2.0, max_interval=10.0):
    """Delays to wait before each poll after the first."""
    delay = interval
    for _ in range(max_attempts - 1):
        yield delay
        if strategy == EXPONENTIAL:
            delay = min(delay * factor, max_interval)


def poll_submission(fetch, submission_id, interval=1.0, max_attempts=30, strategy=FIXED,
                    factor=2.0, max_interval=10.0, sleep=time.sleep):
    """Poll ``fetch(submission_id)`` until the submission reaches a final status.

    Gives up after ``max_attempts`` polls and returns a ``still_processing``
    outcome carrying the last state seen, so callers can tell "not judged yet"
    apart from a failure.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    submission = fetch(submission_id)
    polls = 1
    if submission.get("status") in FINISHED_STATUSES:
        return PollOutcome(FINISHED, submission, polls)

    for delay in backoff_delays(interval, max_attempts, strategy, factor, max_interval):
        sleep(delay)
        submission = fetch(submission_id)
        polls += 1
        if submission.get("status") in FINISHED_STATUSES:
            return PollOutcome(FINISHED, submission, polls)

    logger.info("Submission %s still processing after %d polls", submission_id, polls)
    return PollOutcome(STILL_PROCESSING, submission, polls)
