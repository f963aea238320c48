"""Student-side driver for one attempt.

Owns the countdown and the integrity tracker for a single attempt and talks to
the portal through ``LMSClient``. The server stays authoritative: this class
only makes sure the student never submits twice, never keeps answering after
the deadline, and that a timeout submit eventually lands.
"""
import logging
import threading
import time

import requests

from classes.errors import AlreadySubmitted, AttemptNotActive
from classes.integrity_tracker import IntegrityTracker, TelemetryContext
from classes.session_clock import AttemptClock
from classes.submission_poller import poll_submission
from models.attempts import SUBMIT_MANUAL, SUBMIT_TIMEOUT
from utils.helpers import parse_datetime, utcnow
from utils.lms_client import ApiError

logger = logging.getLogger(__name__)


def _retryable(error):
    if isinstance(error, requests.RequestException):
        return True
    return isinstance(error, ApiError) and error.status_code >= 500


class ExamSession:
    def __init__(self, client, assessment_id, kind="Quiz", now_fn=utcnow, sleep=time.sleep,
                 save_retries=3, submit_retries=5, retry_delay=1.0,
                 debounce_seconds=0.5, schedule=None, request_fullscreen=None, on_warning=None):
        self.client = client
        self.assessment_id = assessment_id
        self.kind = kind
        self.now_fn = now_fn
        self.sleep = sleep
        self.save_retries = save_retries
        self.submit_retries = submit_retries
        self.retry_delay = retry_delay
        self.debounce_seconds = debounce_seconds
        self.schedule = schedule
        self.request_fullscreen = request_fullscreen
        self.on_warning = on_warning

        self.attempt = None
        self.clock = None
        self.tracker = None
        self.answers = {}
        self.unsaved = set()
        self.results = None
        self.submitted = False
        self.locked = False
        self.pending_auto_submit = False
        self._snapshot = None
        self._finalize_lock = threading.Lock()
        self._finalizing = False

    def start(self):
        """Start or resume the attempt and arm the clock and tracker."""
        if self.kind == "Coding":
            data = self.client.coding_problems(self.assessment_id)
        else:
            data = self.client.start_quiz(self.assessment_id)
        self.attempt = data["attempt"]

        deadline = parse_datetime(self.attempt.get("deadlineAt"))
        self.clock = AttemptClock(deadline, on_expire=self._on_expire, now_fn=self.now_fn)
        self.tracker = IntegrityTracker(
            TelemetryContext.from_attempt(self.attempt),
            debounce_seconds=self.debounce_seconds,
            schedule=self.schedule,
            request_fullscreen=self.request_fullscreen,
            on_warning=self.on_warning,
            now_fn=self.now_fn,
        )
        return data

    @property
    def attempt_id(self):
        return self.attempt["id"] if self.attempt else None

    def remaining_seconds(self):
        return self.clock.remaining() if self.clock else None

    def tick(self):
        """Drive the countdown; also re-drives a timeout submit that has not landed yet."""
        if self.pending_auto_submit and not self.submitted:
            self._auto_submit()
            return 0
        return self.clock.tick()

    def answer(self, question_id, option):
        """Save an answer. Returns False (and flags the question) if it could not be saved."""
        if self._past_deadline():
            self.locked = True
            self.tick()
        if self.locked or self.submitted or self._finalizing:
            raise AttemptNotActive()
        self.answers[question_id] = option
        return self._save(question_id, option)

    def _past_deadline(self):
        return self.clock is not None and self.clock.remaining() == 0

    def retry_unsaved(self):
        """Resend answers whose earlier saves failed. Returns the still-unsaved ids."""
        if self._past_deadline():
            self.locked = True
        for question_id in sorted(self.unsaved):
            if self.locked or self.submitted:
                break
            self._save(question_id, self.answers[question_id])
        return set(self.unsaved)

    def _save(self, question_id, option):
        for attempt_number in range(1, self.save_retries + 1):
            try:
                self.client.save_answer(self.attempt_id, question_id, option)
            except (requests.RequestException, ApiError) as e:
                if isinstance(e, ApiError) and e.status_code == 409:
                    # submitted or expired server-side
                    self.locked = True
                    raise AttemptNotActive(e.message)
                if not _retryable(e) or attempt_number == self.save_retries:
                    logger.warning("Answer for question %s not saved: %s", question_id, e)
                    self.unsaved.add(question_id)
                    return False
                self.sleep(self.retry_delay)
                continue
            self.unsaved.discard(question_id)
            return True
        return False

    def submit(self, reason=SUBMIT_MANUAL):
        """Finalize the attempt once. A second call while one is in flight, or after success, is refused."""
        with self._finalize_lock:
            if self.submitted or self._finalizing:
                raise AlreadySubmitted()
            self._finalizing = True

        if self._snapshot is None:
            self._snapshot = self.tracker.freeze()
        self.clock.stop()

        try:
            if self.kind == "Coding":
                data = self.client.submit_coding(
                    self.attempt_id, self._snapshot.tab_switches, self._snapshot.fullscreen_exits, reason,
                )
            else:
                data = self.client.submit_quiz(
                    self.attempt_id, self._snapshot.tab_switches, self._snapshot.fullscreen_exits, reason,
                )
        except ApiError as e:
            if e.already_submitted:
                self._mark_submitted(None)
                raise AlreadySubmitted(e.message)
            self._finalizing = False
            raise
        except requests.RequestException:
            self._finalizing = False
            raise

        self._mark_submitted(data.get("results"))
        return self.results

    def _mark_submitted(self, results):
        self.results = results
        self.submitted = True
        self.locked = True
        self.pending_auto_submit = False
        self._finalizing = False

    def _on_expire(self):
        self.locked = True
        self.pending_auto_submit = True
        self._auto_submit()

    def _auto_submit(self):
        for attempt_number in range(1, self.submit_retries + 1):
            try:
                self.submit(SUBMIT_TIMEOUT)
                return True
            except AlreadySubmitted:
                return True
            except (requests.RequestException, ApiError) as e:
                if not _retryable(e):
                    logger.error("Timeout submit for attempt %s refused: %s", self.attempt_id, e)
                    self.pending_auto_submit = False
                    return False
                logger.warning("Timeout submit for attempt %s failed (%d/%d): %s",
                               self.attempt_id, attempt_number, self.submit_retries, e)
                if attempt_number < self.submit_retries:
                    self.sleep(self.retry_delay)
        # left pending; the next tick tries again
        return False

    def submit_code(self, problem_id, code, language, poll_interval=1.0, max_polls=30, strategy="fixed"):
        """Send code to the judge and wait, boundedly, for its verdict."""
        if self._past_deadline():
            self.locked = True
            self.tick()
        if self.locked or self.submitted:
            raise AttemptNotActive()
        try:
            submission_id = self.client.submit_code(self.attempt_id, problem_id, code, language)
        except ApiError as e:
            if e.status_code == 409:
                self.locked = True
                raise AttemptNotActive(e.message)
            raise
        return poll_submission(
            self.client.get_submission, submission_id,
            interval=poll_interval, max_attempts=max_polls, strategy=strategy, sleep=self.sleep,
        )
