from enum import Enum
from utils.helpers import as_utc, utcnow


class WindowStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    ENDED = "ended"


INACTIVE = "inactive"


def evaluate(now, start_date=None, end_date=None):
    """Place ``now`` relative to an optional [start_date, end_date] window.

    Comparisons happen on aware UTC instants; naive datetimes are read as UTC
    and ISO strings are parsed. Both bounds are inclusive for ``active``.
    """
    now = as_utc(now)
    start_date = as_utc(start_date)
    end_date = as_utc(end_date)

    if start_date is not None and now < start_date:
        return WindowStatus.UPCOMING
    if end_date is not None and now > end_date:
        return WindowStatus.ENDED
    return WindowStatus.ACTIVE


def assessment_status(assessment, now=None):
    """Window status for an assessment, or 'inactive' when an admin switched it off."""
    if not assessment.is_active:
        return INACTIVE
    return evaluate(now or utcnow(), assessment.start_date, assessment.end_date).value
