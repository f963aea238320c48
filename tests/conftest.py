import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app
from models import db
from models.users import User
from models.assessments import Assessment
from models.quiz_questions import QuizQuestion
from models.coding_problems import CodingProblem
from utils.tokens import get_jwt_token

COLLEGE = "GradeUpNow Institute of Technology"
BRANCH = "CSE"
T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeJudge:
    """Stands in for the Judge0 client: a case passes when its expected output appears in the code."""

    def __init__(self):
        self.calls = []

    def run_test_cases(self, source_code, language_id, test_cases, cpu_time_limit=None, memory_limit=None):
        self.calls.append((source_code, language_id, len(test_cases)))
        results = []
        for number, case in enumerate(test_cases, start=1):
            passed = case["expected_output"] in source_code
            results.append({
                "test_case_number": number,
                "input": case["input"],
                "expected_output": case["expected_output"],
                "is_hidden": bool(case.get("is_hidden")),
                "actual_output": case["expected_output"] if passed else "",
                "passed": passed,
                "status": "Accepted" if passed else "Wrong Answer",
                "error": None,
                "execution_time": 0.01,
            })
        return results


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        app.extensions["judge_client"] = FakeJudge()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fake_judge(app):
    return app.extensions["judge_client"]


def make_user(email, role="student", registration_number=None, college=COLLEGE, branch=BRANCH,
              password="secret123", name=None):
    user = User(
        email=email,
        name=name or email.split("@")[0].title(),
        role=role,
        registration_number=registration_number,
        college=college,
        branch=branch,
        section="A",
        year="3",
        semester="5",
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def student(app):
    return make_user("asha@example.edu", registration_number="21CSE001", name="Asha Rao")


@pytest.fixture
def other_student(app):
    return make_user("ravi@example.edu", registration_number="21CSE002", name="Ravi Kumar")


@pytest.fixture
def admin(app):
    return make_user("admin@example.edu", role="admin")


def auth_headers(user):
    token = get_jwt_token({"user_id": user.id, "email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


def make_quiz(start=None, end=None, duration=60, answers=("A", "B", "C", "D", "A"), **kwargs):
    now = datetime.now(timezone.utc)
    quiz = Assessment(
        college=COLLEGE,
        branch=BRANCH,
        name=kwargs.pop("name", "Data Structures Quiz"),
        kind="Quiz",
        start_date=start or now - timedelta(hours=1),
        end_date=end or now + timedelta(hours=5),
        duration_minutes=duration,
        **kwargs,
    )
    for number, correct in enumerate(answers, start=1):
        quiz.questions.append(QuizQuestion(
            question_number=number,
            question_text=f"Question {number}?",
            options={"A": "one", "B": "two", "C": "three", "D": "four"},
            correct_option=correct,
            marks=1,
        ))
    db.session.add(quiz)
    db.session.commit()
    return quiz


def make_coding_test(start=None, end=None, duration=90, problems=2, cases=5, **kwargs):
    now = datetime.now(timezone.utc)
    test = Assessment(
        college=COLLEGE,
        branch=BRANCH,
        name=kwargs.pop("name", "Algorithms Lab Test"),
        kind="Coding",
        start_date=start or now - timedelta(hours=1),
        end_date=end or now + timedelta(hours=5),
        duration_minutes=duration,
        **kwargs,
    )
    for number in range(1, problems + 1):
        test.problems.append(CodingProblem(
            problem_number=number,
            title=f"Problem {number}",
            description="Print the expected value.",
            marks=10,
            test_cases=[
                {"input": str(i), "expected_output": f"p{number}-out{i}", "is_hidden": i > 2}
                for i in range(1, cases + 1)
            ],
        ))
    db.session.add(test)
    db.session.commit()
    return test
