from models import db
from utils.helpers import utcnow, isoformat

PENDING = "pending"
PROCESSING = "processing"
ACCEPTED = "accepted"
WRONG_ANSWER = "wrong_answer"
ERROR = "error"

FINISHED_STATUSES = (ACCEPTED, WRONG_ANSWER, ERROR)


class CodeSubmission(db.Model):
    __tablename__ = "code_submissions"

    id = db.Column(db.Integer, primary_key=True)
    attempt_id = db.Column(db.Integer, db.ForeignKey("attempts.id"), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    problem_id = db.Column(db.Integer, db.ForeignKey("coding_problems.id"), nullable=False, index=True)
    source_code = db.Column(db.Text, nullable=False)
    language = db.Column(db.String(20), nullable=False)
    language_id = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=PENDING, index=True)
    message = db.Column(db.Text, nullable=True)
    test_results = db.Column(db.JSON, nullable=True)
    passed_count = db.Column(db.Integer, nullable=False, default=0)
    total_count = db.Column(db.Integer, nullable=False, default=0)
    execution_time = db.Column(db.Float, nullable=False, default=0)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    attempt = db.relationship("Attempt", back_populates="code_submissions")
    problem = db.relationship("CodingProblem")

    __table_args__ = (
        db.Index("ix_code_submissions_attempt_problem", "attempt_id", "problem_id", "submitted_at"),
    )

    @property
    def is_finished(self):
        return self.status in FINISHED_STATUSES

    @property
    def all_passed(self):
        return self.total_count > 0 and self.passed_count == self.total_count

    def to_dict(self, hide_hidden=True, include_code=False):
        results = []
        for result in self.test_results or []:
            if hide_hidden and result.get("is_hidden"):
                # hidden cases still report pass/fail, never their data
                results.append({
                    "testCaseNumber": result.get("test_case_number"),
                    "status": result.get("status"),
                    "passed": result.get("passed"),
                    "isHidden": True,
                    "executionTime": result.get("execution_time"),
                })
                continue
            results.append({
                "testCaseNumber": result.get("test_case_number"),
                "status": result.get("status"),
                "passed": result.get("passed"),
                "isHidden": bool(result.get("is_hidden")),
                "input": result.get("input"),
                "expectedOutput": result.get("expected_output"),
                "actualOutput": result.get("actual_output"),
                "error": result.get("error"),
                "executionTime": result.get("execution_time"),
            })
        data = {
            "id": self.id,
            "attemptId": self.attempt_id,
            "problemId": self.problem_id,
            "language": self.language,
            "status": self.status,
            "message": self.message,
            "passedTestCases": self.passed_count,
            "totalTestCases": self.total_count,
            "executionTime": self.execution_time,
            "submittedAt": isoformat(self.submitted_at),
            "testResults": results,
        }
        if include_code:
            data["code"] = self.source_code
        return data
