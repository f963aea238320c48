from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from classes.scoring import (
    ALL_OR_NOTHING, PROPORTIONAL, best_submission, percentage_of, score_coding, score_quiz,
)


T = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def question(qid, correct, marks=1):
    return SimpleNamespace(id=qid, question_number=qid, correct_option=correct, marks=marks)


def answer(qid, option):
    return SimpleNamespace(question_id=qid, selected_option=option)


def problem(pid, cases=5, marks=10):
    return SimpleNamespace(id=pid, problem_number=pid, title=f"P{pid}", marks=marks, total_test_cases=cases)


def submission(sid, pid, passed, total=5, minutes=0):
    return SimpleNamespace(
        id=sid, problem_id=pid, passed_count=passed, total_count=total,
        submitted_at=T + timedelta(minutes=minutes),
    )


def test_three_of_five_is_sixty_percent():
    questions = [question(i, "A") for i in range(1, 6)]
    answers = [answer(1, "A"), answer(2, "A"), answer(3, "A"), answer(4, "B")]
    result = score_quiz(questions, answers)
    assert result.score == 3
    assert result.total_marks == 5
    assert result.percentage == 60.0
    assert result.correct_answers == 3
    assert result.total_questions == 5
    unanswered = result.to_dict()["answers"][4]
    assert unanswered["selectedAnswer"] is None and unanswered["isCorrect"] is False


def test_marks_are_weighted():
    questions = [question(1, "A", marks=2), question(2, "B", marks=3)]
    result = score_quiz(questions, [answer(2, "B")])
    assert (result.score, result.total_marks, result.percentage) == (3, 5, 60.0)


def test_empty_quiz_scores_zero_percent():
    assert score_quiz([], []).percentage == 0.0
    assert percentage_of(0, 0) == 0.0


def test_best_submission_prefers_more_passes_then_latest():
    early = submission(1, 1, passed=4, minutes=1)
    late = submission(2, 1, passed=4, minutes=9)
    worse = submission(3, 1, passed=2, minutes=20)
    assert best_submission([early, worse, late]) is late
    assert best_submission([]) is None


def test_not_attempted_differs_from_zero_passes():
    problems = [problem(1), problem(2)]
    result = score_coding(problems, [submission(1, 2, passed=0)])

    untouched, failed = result.problems
    assert untouched.not_attempted and untouched.passed_test_cases == 0
    assert untouched.total_test_cases == 5
    assert not failed.not_attempted
    assert (failed.passed_test_cases, failed.total_test_cases) == (0, 5)


def test_proportional_and_all_or_nothing():
    problems = [problem(1), problem(2)]
    submissions = [submission(1, 1, passed=3), submission(2, 2, passed=5)]

    proportional = score_coding(problems, submissions, PROPORTIONAL)
    assert proportional.score == 16.0
    assert proportional.percentage == 80.0
    assert proportional.passed_test_cases == 8 and proportional.total_test_cases == 10

    strict = score_coding(problems, submissions, ALL_OR_NOTHING)
    assert strict.score == 10.0
    assert strict.problems[1].fully_solved


def test_unknown_policy_is_rejected():
    with pytest.raises(ValueError):
        score_coding([], [], "best_effort")
