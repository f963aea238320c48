from models import db
from utils.helpers import utcnow, isoformat

KINDS = ("Quiz", "Coding")

DEFAULT_SETTINGS = {
    "shuffleQuestions": False,
    "showResultsImmediately": True,
    "maxTabSwitches": 3,
}


class Assessment(db.Model):
    __tablename__ = "assessments"

    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    college = db.Column(db.String(120), nullable=False, index=True)
    branch = db.Column(db.String(120), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    kind = db.Column(db.String(10), nullable=False, index=True)  # 'Quiz' | 'Coding'
    description = db.Column(db.Text, nullable=True, default="")
    start_date = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    duration_minutes = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    settings = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    questions = db.relationship(
        "QuizQuestion", back_populates="assessment",
        order_by="QuizQuestion.question_number", cascade="all, delete-orphan",
    )
    problems = db.relationship(
        "CodingProblem", back_populates="assessment",
        order_by="CodingProblem.problem_number", cascade="all, delete-orphan",
    )
    attempts = db.relationship("Attempt", back_populates="assessment", lazy=True)

    @property
    def is_quiz(self):
        return self.kind == "Quiz"

    @property
    def is_coding(self):
        return self.kind == "Coding"

    @property
    def effective_settings(self):
        return {**DEFAULT_SETTINGS, **(self.settings or {})}

    @property
    def total_marks(self):
        """Dynamically sum marks over questions or problems without storing it"""
        items = self.questions if self.is_quiz else self.problems
        return sum(item.marks or 0 for item in items)

    def __repr__(self):
        return f"<Assessment {self.name} ({self.kind})>"

    def to_dict(self):
        return {
            "id": self.id,
            "adminId": self.admin_id,
            "college": self.college,
            "branch": self.branch,
            "name": self.name,
            "type": self.kind,
            "description": self.description,
            "startDate": isoformat(self.start_date),
            "endDate": isoformat(self.end_date),
            "duration": self.duration_minutes,
            "isActive": self.is_active,
            "settings": self.effective_settings,
            "totalMarks": self.total_marks,
            "createdAt": isoformat(self.created_at),
        }
