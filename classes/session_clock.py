"""Attempt countdown.

Remaining time is always recomputed from a stored deadline instant, never from
a count of elapsed ticks, so missed ticks (a suspended tab, a slow request)
cannot make the clock drift.
"""
import logging
import math
from datetime import timedelta
from enum import Enum

from utils.helpers import as_utc, utcnow

logger = logging.getLogger(__name__)


class ClockMode(str, Enum):
    FIXED_DURATION = "fixed_duration"
    WINDOW_BOUND = "window_bound"
    UNBOUNDED = "unbounded"


def compute_deadline(started_at, duration_minutes=None, end_date=None, unbounded_cap_minutes=None):
    """Return ``(mode, deadline)`` for an attempt that started at ``started_at``.

    A configured duration wins and ignores ``end_date``. Without a duration the
    attempt runs until ``end_date``. With neither, ``unbounded_cap_minutes``
    (when truthy) caps the attempt; otherwise the deadline is ``None``.
    """
    started_at = as_utc(started_at)
    if duration_minutes:
        return ClockMode.FIXED_DURATION, started_at + timedelta(minutes=duration_minutes)
    if end_date is not None:
        return ClockMode.WINDOW_BOUND, as_utc(end_date)
    if unbounded_cap_minutes:
        return ClockMode.UNBOUNDED, started_at + timedelta(minutes=unbounded_cap_minutes)
    return ClockMode.UNBOUNDED, None


def remaining_seconds(deadline, now=None):
    """Whole seconds left until ``deadline`` (rounded up), or None when unbounded."""
    if deadline is None:
        return None
    delta = (as_utc(deadline) - as_utc(now or utcnow())).total_seconds()
    return max(0, int(math.ceil(delta)))


class AttemptClock:
    """Per-attempt countdown that fires ``on_expire`` exactly once.

    ``tick`` is meant to be called about once a second by whatever drives the
    session; it is safe to call late, early, or repeatedly.
    """

    def __init__(self, deadline, on_expire=None, now_fn=utcnow):
        self.deadline = as_utc(deadline) if deadline is not None else None
        self.on_expire = on_expire
        self.now_fn = now_fn
        self.expired = False
        self.stopped = False

    @property
    def is_running(self):
        return not (self.stopped or self.expired)

    def remaining(self):
        return remaining_seconds(self.deadline, self.now_fn())

    def tick(self):
        """Recompute remaining time; trigger expiry the first time it reaches zero."""
        if not self.is_running:
            return 0 if self.expired else self.remaining()

        left = self.remaining()
        if left is None:
            return None
        if left == 0:
            self.expired = True
            logger.info("Attempt clock reached deadline %s", self.deadline.isoformat())
            if self.on_expire is not None:
                self.on_expire()
        return left

    def stop(self):
        self.stopped = True
