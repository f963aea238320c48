"""Quiz and coding-test scoring.

Pure functions over model rows (or anything with the same attributes); nothing
here touches the session.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from utils.helpers import as_utc

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

PROPORTIONAL = "proportional"
ALL_OR_NOTHING = "all_or_nothing"
POLICIES = (PROPORTIONAL, ALL_OR_NOTHING)


def percentage_of(score, total):
    if not total:
        return 0.0
    return round(score / total * 100, 2)


@dataclass
class QuestionResult:
    question_id: int
    question_number: int
    selected_option: Optional[str]
    correct_option: str
    is_correct: bool
    marks: float
    marks_awarded: float


@dataclass
class QuizScore:
    score: float
    total_marks: float
    percentage: float
    correct_answers: int
    total_questions: int
    breakdown: List[QuestionResult] = field(default_factory=list)

    def to_dict(self):
        return {
            "score": self.score,
            "totalMarks": self.total_marks,
            "percentage": self.percentage,
            "correctAnswers": self.correct_answers,
            "totalQuestions": self.total_questions,
            "answers": [
                {
                    "questionId": r.question_id,
                    "questionNumber": r.question_number,
                    "selectedAnswer": r.selected_option,
                    "correctAnswer": r.correct_option,
                    "isCorrect": r.is_correct,
                    "marksAwarded": r.marks_awarded,
                }
                for r in self.breakdown
            ],
        }


def score_quiz(questions, answers):
    """Grade a quiz: a question is correct iff the saved option equals the configured one.

    ``answers`` holds the latest AnswerRecord per question; unanswered questions
    score zero.
    """
    selected = {answer.question_id: answer.selected_option for answer in answers}

    breakdown = []
    score = 0.0
    total = 0.0
    for question in sorted(questions, key=lambda q: q.question_number):
        marks = question.marks or 0
        total += marks
        choice = selected.get(question.id)
        is_correct = choice is not None and choice == question.correct_option
        awarded = marks if is_correct else 0
        score += awarded
        breakdown.append(QuestionResult(
            question_id=question.id,
            question_number=question.question_number,
            selected_option=choice,
            correct_option=question.correct_option,
            is_correct=is_correct,
            marks=marks,
            marks_awarded=awarded,
        ))

    correct = sum(1 for r in breakdown if r.is_correct)
    return QuizScore(
        score=score,
        total_marks=total,
        percentage=percentage_of(score, total),
        correct_answers=correct,
        total_questions=len(breakdown),
        breakdown=breakdown,
    )


def _ranking(submission):
    return (
        submission.passed_count or 0,
        as_utc(submission.submitted_at) or EPOCH,
        submission.id or 0,
    )


def best_submission(submissions):
    """Highest passed count wins; ties go to the most recent submission."""
    submissions = list(submissions)
    if not submissions:
        return None
    return max(submissions, key=_ranking)


def problem_marks(marks, passed, total, policy=PROPORTIONAL):
    if not total:
        return 0.0
    if policy == ALL_OR_NOTHING:
        return float(marks) if passed == total else 0.0
    return round(marks * passed / total, 2)


@dataclass
class ProblemResult:
    problem_id: int
    problem_number: int
    title: str
    marks: float
    marks_awarded: float
    passed_test_cases: int
    total_test_cases: int
    submissions_count: int
    not_attempted: bool
    fully_solved: bool
    best_submission_id: Optional[int] = None

    def to_dict(self):
        return {
            "problemId": self.problem_id,
            "problemNumber": self.problem_number,
            "title": self.title,
            "marks": self.marks,
            "marksAwarded": self.marks_awarded,
            "passedTestCases": self.passed_test_cases,
            "totalTestCases": self.total_test_cases,
            "submissionsCount": self.submissions_count,
            "notAttempted": self.not_attempted,
            "fullySolved": self.fully_solved,
            "bestSubmissionId": self.best_submission_id,
        }


@dataclass
class CodingScore:
    score: float
    total_marks: float
    percentage: float
    policy: str
    problems: List[ProblemResult] = field(default_factory=list)

    @property
    def passed_test_cases(self):
        return sum(p.passed_test_cases for p in self.problems)

    @property
    def total_test_cases(self):
        return sum(p.total_test_cases for p in self.problems)

    def to_dict(self):
        return {
            "score": self.score,
            "totalMarks": self.total_marks,
            "percentage": self.percentage,
            "policy": self.policy,
            "passedTestCases": self.passed_test_cases,
            "totalTestCases": self.total_test_cases,
            "problems": [p.to_dict() for p in self.problems],
        }


def score_coding(problems, submissions, policy=PROPORTIONAL):
    """Grade a coding test from the best submission of each problem."""
    if policy not in POLICIES:
        raise ValueError(f"Unknown coding score policy: {policy}")

    by_problem = {}
    for submission in submissions:
        by_problem.setdefault(submission.problem_id, []).append(submission)

    results = []
    for problem in sorted(problems, key=lambda p: p.problem_number):
        candidates = by_problem.get(problem.id, [])
        best = best_submission(candidates)
        marks = problem.marks or 0
        if best is None:
            results.append(ProblemResult(
                problem_id=problem.id,
                problem_number=problem.problem_number,
                title=problem.title,
                marks=marks,
                marks_awarded=0.0,
                passed_test_cases=0,
                total_test_cases=problem.total_test_cases,
                submissions_count=0,
                not_attempted=True,
                fully_solved=False,
            ))
            continue

        total = best.total_count or problem.total_test_cases
        results.append(ProblemResult(
            problem_id=problem.id,
            problem_number=problem.problem_number,
            title=problem.title,
            marks=marks,
            marks_awarded=problem_marks(marks, best.passed_count, total, policy),
            passed_test_cases=best.passed_count,
            total_test_cases=total,
            submissions_count=len(candidates),
            not_attempted=False,
            fully_solved=total > 0 and best.passed_count == total,
            best_submission_id=best.id,
        ))

    score = round(sum(r.marks_awarded for r in results), 2)
    total_marks = sum(r.marks for r in results)
    return CodingScore(
        score=score,
        total_marks=total_marks,
        percentage=percentage_of(score, total_marks),
        policy=policy,
        problems=results,
    )
