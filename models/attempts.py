from models import db
from utils.helpers import utcnow, isoformat, as_utc

IN_PROGRESS = "in_progress"
SUBMITTED = "submitted"

SUBMIT_MANUAL = "manual"
SUBMIT_TIMEOUT = "timeout"


class Attempt(db.Model):
    """One student's access to one assessment. Rows are never deleted."""

    __tablename__ = "attempts"

    id = db.Column(db.Integer, primary_key=True)
    assessment_id = db.Column(db.Integer, db.ForeignKey("assessments.id"), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=IN_PROGRESS, index=True)
    submit_reason = db.Column(db.String(20), nullable=True)

    started_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    deadline_at = db.Column(db.DateTime(timezone=True), nullable=True)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    tab_switches = db.Column(db.Integer, nullable=False, default=0)
    fullscreen_exits = db.Column(db.Integer, nullable=False, default=0)

    score = db.Column(db.Float, nullable=False, default=0)
    total_marks = db.Column(db.Float, nullable=False, default=0)
    percentage = db.Column(db.Float, nullable=False, default=0)

    assessment = db.relationship("Assessment", back_populates="attempts")
    student = db.relationship("User", back_populates="attempts")
    answers = db.relationship("AnswerRecord", back_populates="attempt", lazy=True)
    code_submissions = db.relationship("CodeSubmission", back_populates="attempt", lazy=True)

    __table_args__ = (
        # one attempt row per (assessment, student); a second start resumes or is refused
        db.UniqueConstraint("assessment_id", "student_id", name="uq_attempt_assessment_student"),
        db.Index("ix_attempts_assessment_status", "assessment_id", "status"),
    )

    @property
    def is_active(self):
        return self.status == IN_PROGRESS

    @property
    def is_submitted(self):
        return self.status == SUBMITTED

    @property
    def time_spent_seconds(self):
        if not self.started_at or not self.submitted_at:
            return None
        return int((as_utc(self.submitted_at) - as_utc(self.started_at)).total_seconds())

    def is_past_deadline(self, now=None):
        if self.deadline_at is None:
            return False
        return as_utc(now or utcnow()) >= as_utc(self.deadline_at)

    def __repr__(self):
        return f"<Attempt {self.id} assessment={self.assessment_id} student={self.student_id} {self.status}>"

    def to_dict(self):
        return {
            "id": self.id,
            "assessmentId": self.assessment_id,
            "studentId": self.student_id,
            "status": self.status,
            "submitReason": self.submit_reason,
            "startedAt": isoformat(self.started_at),
            "deadlineAt": isoformat(self.deadline_at),
            "submittedAt": isoformat(self.submitted_at),
            "tabSwitches": self.tab_switches,
            "fullscreenExits": self.fullscreen_exits,
            "score": self.score,
            "totalMarks": self.total_marks,
            "percentage": self.percentage,
            "timeSpent": self.time_spent_seconds,
        }
