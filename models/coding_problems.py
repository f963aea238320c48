from models import db

DIFFICULTIES = ("Easy", "Medium", "Hard")


class CodingProblem(db.Model):
    __tablename__ = "coding_problems"

    id = db.Column(db.Integer, primary_key=True)
    assessment_id = db.Column(db.Integer, db.ForeignKey("assessments.id"), nullable=False, index=True)
    problem_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    input_format = db.Column(db.Text, nullable=True)
    output_format = db.Column(db.Text, nullable=True)
    constraints = db.Column(db.Text, nullable=True, default="")
    difficulty = db.Column(db.String(10), nullable=False, default="Medium")
    marks = db.Column(db.Float, nullable=False, default=10)
    time_limit_seconds = db.Column(db.Float, nullable=False, default=2)
    memory_limit_kb = db.Column(db.Integer, nullable=False, default=256000)
    # [{"input": str, "expected_output": str, "is_hidden": bool}, ...]
    test_cases = db.Column(db.JSON, nullable=False, default=list)

    assessment = db.relationship("Assessment", back_populates="problems")

    @property
    def total_test_cases(self):
        return len(self.test_cases or [])

    def to_dict(self, include_hidden=False):
        cases = []
        for number, case in enumerate(self.test_cases or [], start=1):
            if case.get("is_hidden") and not include_hidden:
                continue
            cases.append({
                "testCaseNumber": number,
                "input": case.get("input"),
                "expectedOutput": case.get("expected_output"),
                "isHidden": bool(case.get("is_hidden")),
            })
        return {
            "id": self.id,
            "assessmentId": self.assessment_id,
            "problemNumber": self.problem_number,
            "title": self.title,
            "description": self.description,
            "inputFormat": self.input_format,
            "outputFormat": self.output_format,
            "constraints": self.constraints,
            "difficulty": self.difficulty,
            "marks": self.marks,
            "timeLimit": self.time_limit_seconds,
            "memoryLimit": self.memory_limit_kb,
            "totalTestCases": self.total_test_cases,
            "testCases": cases,
        }
