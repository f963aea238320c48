from models import db
from utils.helpers import utcnow, isoformat


class AnswerRecord(db.Model):
    __tablename__ = "answer_records"

    id = db.Column(db.Integer, primary_key=True)
    attempt_id = db.Column(db.Integer, db.ForeignKey("attempts.id"), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey("quiz_questions.id"), nullable=False)
    selected_option = db.Column(db.String(1), nullable=True)
    answered_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    attempt = db.relationship("Attempt", back_populates="answers")
    question = db.relationship("QuizQuestion")

    __table_args__ = (
        db.UniqueConstraint("attempt_id", "question_id", name="uq_answer_attempt_question"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "attemptId": self.attempt_id,
            "questionId": self.question_id,
            "selectedAnswer": self.selected_option,
            "answeredAt": isoformat(self.answered_at),
        }
