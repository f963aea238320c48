from models import db


class QuizQuestion(db.Model):
    __tablename__ = "quiz_questions"

    id = db.Column(db.Integer, primary_key=True)
    assessment_id = db.Column(db.Integer, db.ForeignKey("assessments.id"), nullable=False, index=True)
    question_number = db.Column(db.Integer, nullable=False)
    question_text = db.Column(db.Text, nullable=False)
    options = db.Column(db.JSON, nullable=False)  # {"A": ..., "B": ..., "C": ..., "D": ...}
    correct_option = db.Column(db.String(1), nullable=False)
    marks = db.Column(db.Float, nullable=False, default=1)

    assessment = db.relationship("Assessment", back_populates="questions")

    def to_dict(self, include_answer=False):
        data = {
            "id": self.id,
            "assessmentId": self.assessment_id,
            "questionNumber": self.question_number,
            "question": self.question_text,
            "options": self.options,
            "marks": self.marks,
        }
        if include_answer:
            data["correctAnswer"] = self.correct_option
        return data
