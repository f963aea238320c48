from datetime import timedelta

import pytest
from sqlalchemy.orm.attributes import set_committed_value

from conftest import T0, make_quiz, make_coding_test, make_user
from classes.attempt_manager import AttemptManager
from classes.errors import (
    AccessDenied, AlreadyCompleted, AlreadySubmitted, AttemptNotActive, ValidationError, WindowClosed,
)
from classes.reporting import assessment_attempts_report
from models import db
from models.attempts import Attempt, SUBMITTED, SUBMIT_TIMEOUT
from models.answer_records import AnswerRecord
from models.code_submissions import ACCEPTED, PENDING, WRONG_ANSWER, CodeSubmission


@pytest.fixture
def quiz(app):
    return make_quiz(start=T0 - timedelta(hours=1), end=T0 + timedelta(hours=4), duration=60)


def test_start_is_idempotent(quiz, student):
    first, created = AttemptManager.start_or_resume(quiz, student, now=T0)
    second, created_again = AttemptManager.start_or_resume(quiz, student, now=T0 + timedelta(minutes=5))

    assert created and not created_again
    assert first.id == second.id
    assert Attempt.query.filter_by(assessment_id=quiz.id, student_id=student.id).count() == 1


def test_deadline_is_stored_from_duration(quiz, student):
    attempt, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    assert attempt.is_past_deadline(T0 + timedelta(minutes=59, seconds=59)) is False
    assert attempt.is_past_deadline(T0 + timedelta(minutes=60)) is True


def test_unbounded_attempt_gets_the_configured_cap(app, student):
    quiz = make_quiz(start=T0 - timedelta(hours=1), end=None, duration=None)
    quiz.end_date = None
    db.session.commit()

    attempt, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    assert attempt.is_past_deadline(T0 + timedelta(minutes=179)) is False
    assert attempt.is_past_deadline(T0 + timedelta(minutes=180)) is True


def test_upcoming_window_refuses_and_creates_nothing(app, student):
    quiz = make_quiz(start=T0 + timedelta(hours=1), end=T0 + timedelta(hours=3))
    with pytest.raises(WindowClosed) as info:
        AttemptManager.start_or_resume(quiz, student, now=T0)
    assert info.value.window_status == "upcoming"
    assert Attempt.query.count() == 0


def test_ended_window_refuses(app, student):
    quiz = make_quiz(start=T0 - timedelta(hours=3), end=T0 - timedelta(hours=1))
    with pytest.raises(WindowClosed):
        AttemptManager.start_or_resume(quiz, student, now=T0)


def test_other_branch_cannot_start(quiz):
    outsider = make_user("meera@example.edu", registration_number="21ECE001", branch="ECE")
    with pytest.raises(AccessDenied):
        AttemptManager.start_or_resume(quiz, outsider, now=T0)


def test_wrong_kind_is_rejected(quiz, student):
    with pytest.raises(ValidationError):
        AttemptManager.start_or_resume(quiz, student, kind="Coding", now=T0)


def test_latest_answer_wins(quiz, student):
    attempt, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    question = quiz.questions[0]

    AttemptManager.save_answer(attempt, question.id, "B", now=T0 + timedelta(minutes=1))
    AttemptManager.save_answer(attempt, question.id, "C", now=T0 + timedelta(minutes=2))

    records = AnswerRecord.query.filter_by(attempt_id=attempt.id, question_id=question.id).all()
    assert len(records) == 1
    assert records[0].selected_option == "C"


def test_answer_must_be_an_option_of_the_question(quiz, student):
    attempt, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    with pytest.raises(ValidationError):
        AttemptManager.save_answer(attempt, quiz.questions[0].id, "E", now=T0)


def test_finalize_scores_and_happens_once(quiz, student):
    attempt, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    # correct answers are A, B, C, D, A
    for question, option in zip(quiz.questions, ["A", "B", "C", "A", "B"]):
        AttemptManager.save_answer(attempt, question.id, option, now=T0)

    attempt, score = AttemptManager.finalize(attempt.id, 2, 1, now=T0 + timedelta(minutes=20))
    assert attempt.status == SUBMITTED
    assert (score.score, score.percentage) == (3, 60.0)
    assert (attempt.tab_switches, attempt.fullscreen_exits) == (2, 1)
    assert attempt.time_spent_seconds == 20 * 60

    with pytest.raises(AlreadySubmitted):
        AttemptManager.finalize(attempt.id, 9, 9, now=T0 + timedelta(minutes=21))
    db.session.expire_all()
    assert db.session.get(Attempt, attempt.id).tab_switches == 2


def test_no_edits_after_submit(quiz, student):
    attempt, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    AttemptManager.finalize(attempt.id, now=T0 + timedelta(minutes=1))

    with pytest.raises(AttemptNotActive):
        AttemptManager.save_answer(attempt, quiz.questions[0].id, "A", now=T0 + timedelta(minutes=2))
    with pytest.raises(AttemptNotActive):
        AttemptManager.record_telemetry(attempt, 5, 5)
    with pytest.raises(AlreadyCompleted):
        AttemptManager.start_or_resume(quiz, student, now=T0 + timedelta(minutes=3))


def test_answer_after_deadline_expires_the_attempt(quiz, student):
    attempt, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    AttemptManager.save_answer(attempt, quiz.questions[0].id, "A", now=T0 + timedelta(minutes=10))

    with pytest.raises(AttemptNotActive):
        AttemptManager.save_answer(attempt, quiz.questions[1].id, "B", now=T0 + timedelta(minutes=61))

    db.session.expire_all()
    attempt = db.session.get(Attempt, attempt.id)
    assert attempt.status == SUBMITTED
    assert attempt.submit_reason == SUBMIT_TIMEOUT
    assert attempt.score == 1


def test_resume_after_deadline_finalizes_with_saved_answers(quiz, student):
    attempt, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    AttemptManager.save_answer(attempt, quiz.questions[0].id, "A", now=T0 + timedelta(minutes=5))
    AttemptManager.record_telemetry(attempt, 3, 1)

    with pytest.raises(AlreadyCompleted):
        AttemptManager.start_or_resume(quiz, student, now=T0 + timedelta(minutes=75))

    db.session.expire_all()
    attempt = db.session.get(Attempt, attempt.id)
    assert attempt.submit_reason == SUBMIT_TIMEOUT
    assert attempt.score == 1
    assert (attempt.tab_switches, attempt.fullscreen_exits) == (3, 1)
    # capped at the deadline, not the moment the sweep noticed
    assert attempt.time_spent_seconds == 60 * 60


def test_overdue_attempt_is_finalized_after_the_window_closes(app, student):
    quiz = make_quiz(start=T0 - timedelta(hours=1), end=T0 + timedelta(minutes=30), duration=60)
    attempt, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    AttemptManager.save_answer(attempt, quiz.questions[0].id, "A", now=T0 + timedelta(minutes=5))

    # window over, own deadline not yet reached: refused, still open
    with pytest.raises(WindowClosed):
        AttemptManager.start_or_resume(quiz, student, now=T0 + timedelta(minutes=45))
    db.session.expire_all()
    assert db.session.get(Attempt, attempt.id).is_active

    with pytest.raises(AlreadyCompleted):
        AttemptManager.start_or_resume(quiz, student, now=T0 + timedelta(hours=2))

    db.session.expire_all()
    attempt = db.session.get(Attempt, attempt.id)
    assert attempt.status == SUBMITTED
    assert attempt.submit_reason == SUBMIT_TIMEOUT
    rows = assessment_attempts_report(quiz)["attempts"]
    assert [r["attemptId"] for r in rows] == [attempt.id]
    assert rows[0]["score"] == 1


def test_telemetry_checkpoints_only_grow(quiz, student):
    attempt, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    AttemptManager.record_telemetry(attempt, 4, 2)
    AttemptManager.record_telemetry(attempt, 1, 0)
    assert (attempt.tab_switches, attempt.fullscreen_exits) == (4, 2)

    attempt, _ = AttemptManager.finalize(attempt.id, 3, 3, now=T0 + timedelta(minutes=5))
    assert (attempt.tab_switches, attempt.fullscreen_exits) == (4, 3)


def test_stale_checkpoint_cannot_lower_counters(quiz, student):
    attempt, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    AttemptManager.record_telemetry(attempt, 6, 2)

    # another request read the row before the checkpoint above landed
    set_committed_value(attempt, "tab_switches", 0)
    set_committed_value(attempt, "fullscreen_exits", 0)
    AttemptManager.record_telemetry(attempt, 1, 1)

    db.session.expire_all()
    stored = db.session.get(Attempt, attempt.id)
    assert (stored.tab_switches, stored.fullscreen_exits) == (6, 2)


def test_negative_counters_are_rejected(quiz, student):
    attempt, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    with pytest.raises(ValidationError):
        AttemptManager.record_telemetry(attempt, -1, 0)


def test_expire_overdue_sweeps_only_past_deadline(quiz, student, other_student):
    late, _ = AttemptManager.start_or_resume(quiz, student, now=T0)
    fresh, _ = AttemptManager.start_or_resume(quiz, other_student, now=T0 + timedelta(minutes=30))

    assert AttemptManager.expire_overdue(now=T0 + timedelta(minutes=61)) == 1
    db.session.expire_all()
    assert db.session.get(Attempt, late.id).status == SUBMITTED
    assert db.session.get(Attempt, fresh.id).is_active


def test_code_submission_is_judged_and_scored(app, student, fake_judge):
    test = make_coding_test(start=T0 - timedelta(hours=1), end=T0 + timedelta(hours=4), problems=2, cases=5)
    attempt, _ = AttemptManager.start_or_resume(test, student, kind="Coding", now=T0)
    first, second = test.problems

    partial = AttemptManager.save_code_submission(
        attempt, first.id, "print('p1-out1 p1-out2 p1-out3')", "python", now=T0 + timedelta(minutes=5))
    assert partial.status == WRONG_ANSWER
    assert (partial.passed_count, partial.total_count) == (3, 5)
    assert partial.language_id == 71

    full = AttemptManager.save_code_submission(
        attempt, first.id, " ".join(f"p1-out{i}" for i in range(1, 6)), "cpp", now=T0 + timedelta(minutes=9))
    assert full.status == ACCEPTED
    assert fake_judge.calls[-1][1] == 54

    attempt, score = AttemptManager.finalize(attempt.id, now=T0 + timedelta(minutes=30))
    assert score.score == 10.0
    assert score.problems[0].best_submission_id == full.id
    assert score.problems[1].not_attempted
    assert second.id == score.problems[1].problem_id


def test_unsupported_language_is_rejected(app, student):
    test = make_coding_test(start=T0 - timedelta(hours=1), end=T0 + timedelta(hours=4))
    attempt, _ = AttemptManager.start_or_resume(test, student, kind="Coding", now=T0)
    with pytest.raises(ValidationError):
        AttemptManager.save_code_submission(attempt, test.problems[0].id, "puts 1", "ruby", now=T0)


def test_judge_crash_marks_submission_as_error(app, student):
    class BrokenJudge:
        def run_test_cases(self, *args, **kwargs):
            raise RuntimeError("judge unreachable")

    app.extensions["judge_client"] = BrokenJudge()
    test = make_coding_test(start=T0 - timedelta(hours=1), end=T0 + timedelta(hours=4))
    attempt, _ = AttemptManager.start_or_resume(test, student, kind="Coding", now=T0)

    submission = AttemptManager.save_code_submission(attempt, test.problems[0].id, "x", "c", now=T0)
    assert submission.status == "error"
    assert submission.passed_count == 0


def pending_submission(attempt, problem, code):
    submission = CodeSubmission(
        attempt_id=attempt.id,
        student_id=attempt.student_id,
        problem_id=problem.id,
        source_code=code,
        language="python",
        language_id=71,
        status=PENDING,
        total_count=problem.total_test_cases,
        submitted_at=T0 + timedelta(minutes=5),
    )
    db.session.add(submission)
    db.session.commit()
    return submission


def test_finalize_judges_unfinished_submissions_before_scoring(app, student):
    test = make_coding_test(start=T0 - timedelta(hours=1), end=T0 + timedelta(hours=4), problems=1, cases=5)
    attempt, _ = AttemptManager.start_or_resume(test, student, kind="Coding", now=T0)
    problem = test.problems[0]
    submission = pending_submission(attempt, problem, " ".join(f"p1-out{i}" for i in range(1, 6)))

    attempt, score = AttemptManager.finalize(attempt.id, reason=SUBMIT_TIMEOUT, now=T0 + timedelta(minutes=91))
    assert score.score == 10.0
    assert attempt.score == 10.0

    db.session.expire_all()
    assert db.session.get(CodeSubmission, submission.id).status == ACCEPTED
    row = assessment_attempts_report(test)["attempts"][0]
    assert row["score"] == row["breakdown"][0]["marksAwarded"] == 10.0


def test_verdict_landing_after_submit_rescores_the_attempt(app, student):
    test = make_coding_test(start=T0 - timedelta(hours=1), end=T0 + timedelta(hours=4), problems=1, cases=5)
    attempt, _ = AttemptManager.start_or_resume(test, student, kind="Coding", now=T0)
    attempt, score = AttemptManager.finalize(attempt.id, now=T0 + timedelta(minutes=10))
    assert score.score == 0

    submission = pending_submission(attempt, test.problems[0], "p1-out1 p1-out2")
    AttemptManager.run_submission(submission.id)

    db.session.expire_all()
    stored = db.session.get(Attempt, attempt.id)
    assert stored.score == 4.0
    assert stored.percentage == 40.0
    row = assessment_attempts_report(test)["attempts"][0]
    assert row["score"] == row["breakdown"][0]["marksAwarded"]
