import random
from flask import Blueprint, jsonify, g, request, current_app

from models import db
from models.assessments import Assessment
from models.attempts import Attempt, SUBMIT_MANUAL
from models.answer_records import AnswerRecord
from models.code_submissions import CodeSubmission
from classes.access_window import assessment_status
from classes.attempt_manager import AttemptManager
from classes.errors import NotFound, AccessDenied, ValidationError
from classes.reporting import student_coding_results
from classes.session_clock import remaining_seconds
from utils.utils import login_required, role_required

# Students' blueprint
student_bp = Blueprint("student", __name__)

student_only = role_required("student")


def get_visible_assessment(assessment_id):
    """Assessment the current student may see, or 404."""
    assessment = db.session.get(Assessment, assessment_id)
    student = g.current_user
    if (assessment is None or not assessment.is_active
            or assessment.college != student.college or assessment.branch != student.branch):
        raise NotFound("Assessment not found")
    return assessment


def own_attempt(assessment_id):
    return Attempt.query.filter_by(assessment_id=assessment_id, student_id=g.current_user.id).first()


def ordered_questions(assessment, attempt):
    questions = list(assessment.questions)
    if assessment.effective_settings.get("shuffleQuestions"):
        # seeded by attempt so a resumed attempt sees the same order
        random.Random(attempt.id).shuffle(questions)
    return questions


def visible_results(attempt, score):
    if attempt.assessment.effective_settings.get("showResultsImmediately"):
        return score.to_dict()
    return None


def read_counters(data):
    return data.get("tabSwitches", 0), data.get("fullscreenExits", 0)


# List assessments for the student's college and branch
@student_bp.route("/assessments", methods=["GET"])
@login_required
@student_only
def list_assessments():
    student = g.current_user
    assessments = Assessment.query.filter_by(
        college=student.college, branch=student.branch, is_active=True
    ).order_by(Assessment.start_date.asc()).all()

    attempts = {
        a.assessment_id: a
        for a in Attempt.query.filter_by(student_id=student.id).all()
    }

    result = []
    for assessment in assessments:
        data = assessment.to_dict()
        attempt = attempts.get(assessment.id)
        data["status"] = assessment_status(assessment)
        data["attemptStatus"] = attempt.status if attempt else None
        data["hasAttempted"] = bool(attempt and attempt.is_submitted)
        result.append(data)

    return jsonify({"assessments": result, "count": len(result)}), 200


@student_bp.route("/assessments/<int:assessment_id>", methods=["GET"])
@login_required
@student_only
def get_assessment(assessment_id):
    assessment = get_visible_assessment(assessment_id)
    attempt = own_attempt(assessment.id)

    data = assessment.to_dict()
    data["status"] = assessment_status(assessment)
    data["questionCount"] = len(assessment.questions) if assessment.is_quiz else len(assessment.problems)
    return jsonify({
        "assessment": data,
        "attempt": attempt.to_dict() if attempt else None,
    }), 200


# Start or resume a quiz attempt
@student_bp.route("/assessments/<int:assessment_id>/start-quiz", methods=["POST"])
@login_required
@student_only
def start_quiz(assessment_id):
    assessment = get_visible_assessment(assessment_id)
    attempt, created = AttemptManager.start_or_resume(assessment, g.current_user, kind="Quiz")

    saved = {
        a.question_id: a.selected_option
        for a in AnswerRecord.query.filter_by(attempt_id=attempt.id).all()
    }

    return jsonify({
        "message": "Quiz started" if created else "Quiz resumed",
        "assessment": assessment.to_dict(),
        "attempt": attempt.to_dict(),
        "questions": [q.to_dict() for q in ordered_questions(assessment, attempt)],
        "savedAnswers": saved,
        "remaining_seconds": remaining_seconds(attempt.deadline_at),
    }), 201 if created else 200


@student_bp.route("/attempts/<int:attempt_id>/answer", methods=["POST"])
@login_required
@student_only
def save_answer(attempt_id):
    attempt = AttemptManager.get_owned_attempt(attempt_id, g.current_user)
    data = request.get_json(silent=True) or {}

    question_id = data.get("questionId")
    if question_id is None:
        raise ValidationError("'questionId' is required")

    record = AttemptManager.save_answer(attempt, question_id, data.get("selectedAnswer"))
    return jsonify({
        "message": "Answer saved",
        "answer": record.to_dict(),
        "remaining_seconds": remaining_seconds(attempt.deadline_at),
    }), 200


@student_bp.route("/attempts/<int:attempt_id>/telemetry", methods=["POST"])
@login_required
@student_only
def record_telemetry(attempt_id):
    attempt = AttemptManager.get_owned_attempt(attempt_id, g.current_user)
    tab_switches, fullscreen_exits = read_counters(request.get_json(silent=True) or {})
    attempt = AttemptManager.record_telemetry(attempt, tab_switches, fullscreen_exits)
    return jsonify({
        "tabSwitches": attempt.tab_switches,
        "fullscreenExits": attempt.fullscreen_exits,
    }), 200


@student_bp.route("/attempts/<int:attempt_id>/submit", methods=["POST"])
@login_required
@student_only
def submit_quiz(attempt_id):
    attempt = AttemptManager.get_owned_attempt(attempt_id, g.current_user)
    data = request.get_json(silent=True) or {}
    tab_switches, fullscreen_exits = read_counters(data)

    attempt, score = AttemptManager.finalize(
        attempt.id, tab_switches, fullscreen_exits, data.get("reason") or SUBMIT_MANUAL
    )
    current_app.logger.info("Student %s submitted attempt %s", g.current_user.id, attempt.id)

    return jsonify({
        "message": "Quiz submitted successfully",
        "attempt": attempt.to_dict(),
        "results": visible_results(attempt, score),
    }), 200


@student_bp.route("/attempts", methods=["GET"])
@login_required
@student_only
def my_attempts():
    attempts = Attempt.query.filter_by(student_id=g.current_user.id).order_by(Attempt.started_at.desc()).all()
    history = []
    for attempt in attempts:
        data = attempt.to_dict()
        data["assessmentName"] = attempt.assessment.name
        data["assessmentType"] = attempt.assessment.kind
        history.append(data)
    return jsonify({"attempts": history, "count": len(history)}), 200


# Coding tests
@student_bp.route("/assessments/<int:assessment_id>/coding-problems", methods=["GET"])
@login_required
@student_only
def coding_problems(assessment_id):
    assessment = get_visible_assessment(assessment_id)
    attempt, created = AttemptManager.start_or_resume(assessment, g.current_user, kind="Coding")

    return jsonify({
        "assessment": assessment.to_dict(),
        "attempt": attempt.to_dict(),
        "problems": [p.to_dict(include_hidden=False) for p in assessment.problems],
        "remaining_seconds": remaining_seconds(attempt.deadline_at),
    }), 200


@student_bp.route("/coding/submit", methods=["POST"])
@login_required
@student_only
def submit_code():
    data = request.get_json(silent=True) or {}
    for field in ("attemptId", "problemId", "code", "language"):
        if not data.get(field):
            raise ValidationError(f"'{field}' is required")

    try:
        attempt_id, problem_id = int(data["attemptId"]), int(data["problemId"])
    except (TypeError, ValueError):
        raise ValidationError("'attemptId' and 'problemId' must be integers")

    attempt = AttemptManager.get_owned_attempt(attempt_id, g.current_user)
    submission = AttemptManager.save_code_submission(
        attempt, problem_id, data["code"], data["language"]
    )
    return jsonify({
        "message": "Code submitted for evaluation",
        "submissionId": submission.id,
        "status": submission.status,
    }), 202


@student_bp.route("/coding/submissions/<int:submission_id>", methods=["GET"])
@login_required
@student_only
def get_submission(submission_id):
    submission = db.session.get(CodeSubmission, submission_id)
    if submission is None:
        raise NotFound("Submission not found")
    if submission.student_id != g.current_user.id:
        raise AccessDenied("This submission belongs to another student")
    return jsonify({"submission": submission.to_dict(hide_hidden=True, include_code=True)}), 200


@student_bp.route("/coding/problems/<int:problem_id>/submissions", methods=["GET"])
@login_required
@student_only
def problem_submissions(problem_id):
    query = CodeSubmission.query.filter_by(problem_id=problem_id, student_id=g.current_user.id)
    attempt_id = request.args.get("attemptId", type=int)
    if attempt_id:
        query = query.filter_by(attempt_id=attempt_id)
    submissions = query.order_by(CodeSubmission.submitted_at.desc()).all()
    return jsonify({
        "submissions": [s.to_dict(hide_hidden=True) for s in submissions],
        "count": len(submissions),
    }), 200


@student_bp.route("/coding/attempts/<int:attempt_id>/submit", methods=["POST"])
@login_required
@student_only
def submit_coding_test(attempt_id):
    attempt = AttemptManager.get_owned_attempt(attempt_id, g.current_user)
    data = request.get_json(silent=True) or {}
    tab_switches, fullscreen_exits = read_counters(data)

    attempt, score = AttemptManager.finalize(
        attempt.id, tab_switches, fullscreen_exits, data.get("reason") or SUBMIT_MANUAL
    )
    return jsonify({
        "message": "Coding test submitted successfully",
        "attempt": attempt.to_dict(),
        "results": visible_results(attempt, score),
    }), 200


@student_bp.route("/coding/results/<int:assessment_id>", methods=["GET"])
@login_required
@student_only
def coding_results(assessment_id):
    attempt = own_attempt(assessment_id)
    if attempt is None:
        raise NotFound("You have not attempted this assessment")
    if not attempt.is_submitted:
        AttemptManager.expire_if_due(attempt)
    if not attempt.is_submitted:
        raise ValidationError("Submit the test to see your results")
    return jsonify(student_coding_results(attempt)), 200
