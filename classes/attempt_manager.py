import logging
from concurrent.futures import ThreadPoolExecutor

from flask import current_app
from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError

from models import db
from models.attempts import Attempt, IN_PROGRESS, SUBMITTED, SUBMIT_MANUAL, SUBMIT_TIMEOUT
from models.answer_records import AnswerRecord
from models.coding_problems import CodingProblem
from models.code_submissions import (
    CodeSubmission, PENDING, PROCESSING, ACCEPTED, WRONG_ANSWER, ERROR,
)
from models.quiz_questions import QuizQuestion
from classes.access_window import WindowStatus, INACTIVE, evaluate
from classes.errors import (
    AccessDenied, AlreadyCompleted, AlreadySubmitted, AttemptNotActive,
    NotFound, ValidationError, WindowClosed,
)
from classes.scoring import score_quiz, score_coding
from classes.session_clock import compute_deadline
from utils.helpers import as_utc, utcnow
from utils.judge_service import LANGUAGE_IDS, get_judge_client

logger = logging.getLogger(__name__)

SUBMIT_REASONS = (SUBMIT_MANUAL, SUBMIT_TIMEOUT)

_judge_pool = None


def _background_pool():
    global _judge_pool
    if _judge_pool is None:
        _judge_pool = ThreadPoolExecutor(
            max_workers=current_app.config.get("JUDGE_MAX_WORKERS", 8),
            thread_name_prefix="judge",
        )
    return _judge_pool


def _counter(value, name):
    try:
        value = int(value or 0)
    except (TypeError, ValueError):
        raise ValidationError(f"'{name}' must be a whole number")
    if value < 0:
        raise ValidationError(f"'{name}' cannot be negative")
    return value


def _grow(column, value):
    """SQL expression for the larger of the stored counter and ``value``."""
    stored = func.coalesce(column, 0)
    return case((stored > value, stored), else_=value)


class AttemptManager:
    """Creates, resumes and finalizes attempts.

    Every state change goes through here so that the storage-level guards
    (the unique attempt per student and assessment, and the conditional
    finalize update) apply to manual submits and timeouts alike.
    """

    @staticmethod
    def check_scope(assessment, student):
        if student.role != "student":
            raise AccessDenied("Only students can take assessments")
        if student.college != assessment.college or student.branch != assessment.branch:
            raise AccessDenied("This assessment is not available to you")

    @staticmethod
    def get_owned_attempt(attempt_id, student):
        attempt = db.session.get(Attempt, attempt_id)
        if attempt is None:
            raise NotFound("Attempt not found")
        if attempt.student_id != student.id:
            raise AccessDenied("This attempt belongs to another student")
        return attempt

    @staticmethod
    def start_or_resume(assessment, student, kind=None, now=None):
        """Return ``(attempt, created)`` for the student's single attempt at ``assessment``.

        An overdue attempt is finalized through the timeout path before the
        window is consulted, so a closed window never leaves it open. The
        window only decides whether an attempt may be created or resumed.
        """
        now = as_utc(now or utcnow())

        AttemptManager.check_scope(assessment, student)
        if kind and assessment.kind != kind:
            raise ValidationError(f"This is not a {kind} assessment")

        existing = Attempt.query.filter_by(assessment_id=assessment.id, student_id=student.id).first()
        if existing is not None:
            if existing.is_submitted:
                raise AlreadyCompleted()
            if AttemptManager.expire_if_due(existing, now):
                raise AlreadyCompleted()

        if not assessment.is_active:
            raise WindowClosed(INACTIVE)
        status = evaluate(now, assessment.start_date, assessment.end_date)
        if status != WindowStatus.ACTIVE:
            raise WindowClosed(status)

        if existing is not None:
            logger.info("Resuming attempt %s for student %s", existing.id, student.id)
            return existing, False

        mode, deadline = compute_deadline(
            now,
            duration_minutes=assessment.duration_minutes,
            end_date=assessment.end_date,
            unbounded_cap_minutes=current_app.config.get("UNBOUNDED_ATTEMPT_CAP_MINUTES"),
        )
        attempt = Attempt(
            assessment_id=assessment.id,
            student_id=student.id,
            status=IN_PROGRESS,
            started_at=now,
            deadline_at=deadline,
            total_marks=assessment.total_marks,
        )
        db.session.add(attempt)
        try:
            db.session.commit()
        except IntegrityError:
            # a concurrent start won the insert; use its row
            db.session.rollback()
            winner = Attempt.query.filter_by(assessment_id=assessment.id, student_id=student.id).first()
            if winner is None:
                raise
            if winner.is_submitted:
                raise AlreadyCompleted()
            return winner, False

        logger.info(
            "Started attempt %s for student %s on assessment %s (%s, deadline %s)",
            attempt.id, student.id, assessment.id, mode.value, deadline,
        )
        return attempt, True

    @staticmethod
    def ensure_writable(attempt, now=None):
        """Refuse edits to a submitted or overdue attempt, finalizing the latter."""
        if not attempt.is_active:
            raise AttemptNotActive()
        if AttemptManager.expire_if_due(attempt, now):
            raise AttemptNotActive()

    @staticmethod
    def save_answer(attempt, question_id, selected_option, now=None):
        """Upsert the answer for one question; the latest save wins."""
        AttemptManager.ensure_writable(attempt, now)

        question = QuizQuestion.query.filter_by(id=question_id, assessment_id=attempt.assessment_id).first()
        if question is None:
            raise NotFound("Question not found in this assessment")
        if selected_option is not None and selected_option not in (question.options or {}):
            raise ValidationError(f"'{selected_option}' is not an option for this question")

        answered_at = as_utc(now or utcnow())
        record = AnswerRecord.query.filter_by(attempt_id=attempt.id, question_id=question.id).first()
        if record is None:
            record = AnswerRecord(attempt_id=attempt.id, question_id=question.id)
            db.session.add(record)
        record.selected_option = selected_option
        record.answered_at = answered_at
        try:
            db.session.commit()
        except IntegrityError:
            # lost an insert race for the same question; overwrite the winner
            db.session.rollback()
            record = AnswerRecord.query.filter_by(attempt_id=attempt.id, question_id=question.id).one()
            record.selected_option = selected_option
            record.answered_at = answered_at
            db.session.commit()
        return record

    @staticmethod
    def record_telemetry(attempt, tab_switches, fullscreen_exits):
        """Checkpoint tamper counters. Stored values only ever grow."""
        tab_switches = _counter(tab_switches, "tabSwitches")
        fullscreen_exits = _counter(fullscreen_exits, "fullscreenExits")
        if not attempt.is_active:
            raise AttemptNotActive()

        result = db.session.execute(
            update(Attempt)
            .where(Attempt.id == attempt.id, Attempt.status == IN_PROGRESS)
            .values(
                tab_switches=_grow(Attempt.tab_switches, tab_switches),
                fullscreen_exits=_grow(Attempt.fullscreen_exits, fullscreen_exits),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.session.rollback()
            raise AttemptNotActive()
        db.session.commit()
        db.session.refresh(attempt)
        return attempt

    @staticmethod
    def score(attempt):
        """Score an attempt from what is stored right now."""
        assessment = attempt.assessment
        if assessment.is_quiz:
            answers = AnswerRecord.query.filter_by(attempt_id=attempt.id).all()
            return score_quiz(assessment.questions, answers)
        submissions = CodeSubmission.query.filter_by(attempt_id=attempt.id).all()
        policy = current_app.config.get("CODING_SCORE_POLICY", "proportional")
        return score_coding(assessment.problems, submissions, policy)

    @staticmethod
    def settle_submissions(attempt_id):
        """Judge, inline, every submission of the attempt that has no verdict yet."""
        unfinished = CodeSubmission.query.filter(
            CodeSubmission.attempt_id == attempt_id,
            CodeSubmission.status.in_((PENDING, PROCESSING)),
        ).all()
        for submission in unfinished:
            logger.info("Judging submission %s before attempt %s is scored", submission.id, attempt_id)
            AttemptManager.run_submission(submission.id)
        return len(unfinished)

    @staticmethod
    def rescore(attempt):
        """Refresh the stored score of a submitted attempt from its current submissions."""
        result = AttemptManager.score(attempt)
        db.session.execute(
            update(Attempt)
            .where(Attempt.id == attempt.id, Attempt.status == SUBMITTED)
            .values(score=result.score, total_marks=result.total_marks, percentage=result.percentage)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        db.session.refresh(attempt)
        logger.info("Attempt %s rescored: %s/%s", attempt.id, result.score, result.total_marks)
        return result

    @staticmethod
    def finalize(attempt_id, tab_switches=0, fullscreen_exits=0, reason=SUBMIT_MANUAL, now=None):
        """Submit an attempt exactly once. Returns ``(attempt, score)``.

        The status flip is a conditional update on ``status='in_progress'``;
        whoever updates zero rows lost the race and gets ``AlreadySubmitted``.
        """
        if reason not in SUBMIT_REASONS:
            raise ValidationError(f"Unknown submit reason: {reason}")
        tab_switches = _counter(tab_switches, "tabSwitches")
        fullscreen_exits = _counter(fullscreen_exits, "fullscreenExits")
        now = as_utc(now or utcnow())

        attempt = db.session.get(Attempt, attempt_id)
        if attempt is None:
            raise NotFound("Attempt not found")
        if attempt.is_submitted:
            raise AlreadySubmitted()

        submitted_at = now
        if reason == SUBMIT_TIMEOUT and attempt.deadline_at is not None:
            submitted_at = min(now, as_utc(attempt.deadline_at))

        if not attempt.assessment.is_quiz:
            AttemptManager.settle_submissions(attempt.id)
        result = AttemptManager.score(attempt)
        update_result = db.session.execute(
            update(Attempt)
            .where(Attempt.id == attempt.id, Attempt.status == IN_PROGRESS)
            .values(
                status=SUBMITTED,
                submit_reason=reason,
                submitted_at=submitted_at,
                tab_switches=_grow(Attempt.tab_switches, tab_switches),
                fullscreen_exits=_grow(Attempt.fullscreen_exits, fullscreen_exits),
                score=result.score,
                total_marks=result.total_marks,
                percentage=result.percentage,
            )
            .execution_options(synchronize_session=False)
        )
        if update_result.rowcount == 0:
            db.session.rollback()
            raise AlreadySubmitted()
        db.session.commit()
        db.session.refresh(attempt)

        logger.info(
            "Attempt %s submitted (%s): %s/%s",
            attempt.id, reason, result.score, result.total_marks,
        )
        return attempt, result

    @staticmethod
    def expire_if_due(attempt, now=None):
        """Finalize an overdue in-progress attempt through the timeout path.

        Returns True when the attempt is (now) submitted because its deadline passed.
        """
        if not attempt.is_active or not attempt.is_past_deadline(now):
            return False
        try:
            AttemptManager.finalize(
                attempt.id, attempt.tab_switches, attempt.fullscreen_exits, SUBMIT_TIMEOUT, now,
            )
        except AlreadySubmitted:
            logger.info("Attempt %s was submitted concurrently", attempt.id)
            db.session.refresh(attempt)
        return True

    @staticmethod
    def expire_overdue(now=None):
        """Sweep every overdue in-progress attempt. Returns how many were finalized."""
        now = as_utc(now or utcnow())
        overdue = Attempt.query.filter(
            Attempt.status == IN_PROGRESS,
            Attempt.deadline_at.isnot(None),
            Attempt.deadline_at <= now,
        ).all()
        count = 0
        for attempt in overdue:
            if AttemptManager.expire_if_due(attempt, now):
                count += 1
        return count

    @staticmethod
    def save_code_submission(attempt, problem_id, code, language, now=None):
        """Persist a pending submission and dispatch it to the judge."""
        AttemptManager.ensure_writable(attempt, now)

        if not code or not str(code).strip():
            raise ValidationError("Code cannot be empty")
        language = (language or "").lower()
        if language not in LANGUAGE_IDS:
            raise ValidationError(
                f"Unsupported language '{language}'. Use one of: {', '.join(LANGUAGE_IDS)}"
            )
        problem = CodingProblem.query.filter_by(id=problem_id, assessment_id=attempt.assessment_id).first()
        if problem is None:
            raise NotFound("Problem not found in this assessment")

        submission = CodeSubmission(
            attempt_id=attempt.id,
            student_id=attempt.student_id,
            problem_id=problem.id,
            source_code=code,
            language=language,
            language_id=LANGUAGE_IDS[language],
            status=PENDING,
            total_count=problem.total_test_cases,
            submitted_at=as_utc(now or utcnow()),
        )
        db.session.add(submission)
        db.session.commit()

        AttemptManager.dispatch(submission.id)
        return submission

    @staticmethod
    def dispatch(submission_id):
        if current_app.config.get("JUDGE_SYNC_EXECUTION"):
            AttemptManager.run_submission(submission_id)
            return

        app = current_app._get_current_object()

        def job():
            with app.app_context():
                AttemptManager.run_submission(submission_id)
                db.session.remove()

        _background_pool().submit(job)

    @staticmethod
    def run_submission(submission_id):
        """Judge every test case of a submission and store the outcome.

        Judge failures are recorded as failed test cases; nothing raises out of here.
        """
        submission = db.session.get(CodeSubmission, submission_id)
        if submission is None:
            logger.warning("Submission %s vanished before judging", submission_id)
            return None

        submission.status = PROCESSING
        db.session.commit()

        try:
            problem = submission.problem
            results = get_judge_client().run_test_cases(
                submission.source_code,
                submission.language_id,
                problem.test_cases or [],
                cpu_time_limit=problem.time_limit_seconds,
                memory_limit=problem.memory_limit_kb,
            )
        except Exception as e:
            logger.exception("Judging submission %s failed", submission_id)
            db.session.rollback()
            submission.status = ERROR
            submission.message = f"Execution failed: {e}"
            submission.test_results = []
            submission.passed_count = 0
            db.session.commit()
            return submission

        passed = sum(1 for r in results if r["passed"])
        total = len(results)
        submission.test_results = results
        submission.passed_count = passed
        submission.total_count = total
        submission.execution_time = round(sum(r.get("execution_time") or 0 for r in results), 3)

        if total and passed == total:
            submission.status = ACCEPTED
            submission.message = "All test cases passed"
        elif results and passed == 0 and all(r.get("error") for r in results):
            submission.status = ERROR
            submission.message = results[0]["error"]
        else:
            submission.status = WRONG_ANSWER
            submission.message = f"{passed}/{total} test cases passed"
        db.session.commit()

        logger.info("Submission %s judged: %s (%d/%d)", submission.id, submission.status, passed, total)
        if submission.attempt.is_submitted:
            # the attempt was finalized while this was being judged
            AttemptManager.rescore(submission.attempt)
        return submission
