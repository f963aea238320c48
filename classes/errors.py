class AssessmentError(Exception):
    """Base error for the assessment engine; rendered as a JSON error body."""

    status_code = 400
    message = "Assessment error"

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def code(self):
        return type(self).__name__

    def to_dict(self):
        return {"error": self.message, "code": self.code}


class ValidationError(AssessmentError):
    status_code = 400
    message = "Invalid request"


class AccessDenied(AssessmentError):
    status_code = 403
    message = "Access denied"


class NotFound(AssessmentError):
    status_code = 404
    message = "Not found"


class WindowClosed(AssessmentError):
    """Assessment is upcoming or has ended; no attempt may be created."""

    status_code = 403
    message = "Assessment is not currently active"

    def __init__(self, window_status, message=None):
        self.window_status = getattr(window_status, "value", window_status)
        super().__init__(message or f"Assessment is {self.window_status}")

    def to_dict(self):
        data = super().to_dict()
        data["window_status"] = self.window_status
        return data


class AlreadyCompleted(AssessmentError):
    status_code = 409
    message = "already submitted"


class AlreadySubmitted(AssessmentError):
    status_code = 409
    message = "Attempt already submitted"


class AttemptNotActive(AssessmentError):
    status_code = 409
    message = "session expired, please restart"


class Conflict(AssessmentError):
    status_code = 409
    message = "Resource already exists"
