from datetime import datetime, timezone
import bleach

OPTION_KEYS = ("A", "B", "C", "D")


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """Return an aware UTC datetime. Naive values are taken to be UTC already."""
    if value is None:
        return None
    if isinstance(value, str):
        value = parse_datetime(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value):
    """Parse an ISO-8601 string (a trailing 'Z' is accepted) into an aware datetime."""
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid datetime: {value!r}")
    return as_utc(parsed)


def isoformat(datetime_obj):
    if not datetime_obj:
        return None
    return as_utc(datetime_obj).isoformat()


def format_datetime(datetime_obj):
    """Format datetime to a readable string."""
    if not datetime_obj:
        return None
    return as_utc(datetime_obj).strftime('%Y-%m-%d %H:%M:%S')


def format_duration(seconds):
    """Render a duration the way reports show it: '12m 5s' or '40s'."""
    if seconds is None:
        return None
    seconds = max(0, int(seconds))
    minutes, remaining = divmod(seconds, 60)
    return f"{minutes}m {remaining}s" if minutes > 0 else f"{remaining}s"


def clean_text(value, allowed_tags=("b", "i", "code", "pre", "br", "p", "ul", "ol", "li")):
    """Strip markup from admin-authored text, keeping a small formatting whitelist."""
    if value is None:
        return None
    return bleach.clean(str(value), tags=set(allowed_tags), strip=True).strip()


def validate_quiz_question(question):
    if not isinstance(question, dict):
        raise ValueError("Each question must be an object.")
    if not question.get("question"):
        raise ValueError("Each question must have 'question' text.")
    options = question.get("options")
    if not isinstance(options, dict) or set(options) != set(OPTION_KEYS):
        raise ValueError("'options' must map each of A, B, C, D to its text.")
    if question.get("correctAnswer") not in OPTION_KEYS:
        raise ValueError("'correctAnswer' must be one of A, B, C, D.")
    marks = question.get("marks", 1)
    if not isinstance(marks, (int, float)) or marks < 0:
        raise ValueError("'marks' must be a non-negative number.")


def validate_coding_problem(problem):
    if not isinstance(problem, dict):
        raise ValueError("Each problem must be an object.")
    for field in ("title", "description"):
        if not problem.get(field):
            raise ValueError(f"Each problem must have '{field}'.")
    test_cases = problem.get("testCases")
    if not isinstance(test_cases, list) or not test_cases:
        raise ValueError("Each problem needs at least one test case.")
    for case in test_cases:
        if not isinstance(case, dict) or "input" not in case or "expectedOutput" not in case:
            raise ValueError("Each test case must have 'input' and 'expectedOutput'.")
