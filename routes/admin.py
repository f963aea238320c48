from flask import Blueprint, request, jsonify, g, current_app

from models import db
from models.users import User
from models.assessments import Assessment, KINDS
from models.attempts import Attempt
from models.quiz_questions import QuizQuestion
from models.coding_problems import CodingProblem, DIFFICULTIES
from classes.access_window import assessment_status
from classes.errors import NotFound, ValidationError, Conflict, AccessDenied
from classes.reporting import assessment_attempts_report, assessment_analytics, coding_results_report
from classes.student_manager import StudentManager
from utils.helpers import as_utc, clean_text, parse_datetime, validate_quiz_question, validate_coding_problem
from utils.utils import login_required, role_required

admin_bp = Blueprint('admin', __name__)

admin_only = role_required("admin", "super_admin")


def get_authorized_assessment(assessment_id):
    """Assessment the current admin manages: super admins see everything, admins their college."""
    assessment = db.session.get(Assessment, assessment_id)
    if assessment is None:
        raise NotFound("Assessment not found")
    admin = g.current_user
    if admin.role != "super_admin" and assessment.admin_id != admin.id and (
            not admin.college or assessment.college != admin.college):
        raise AccessDenied("You do not manage this assessment")
    return assessment


def has_attempts(assessment):
    return Attempt.query.filter_by(assessment_id=assessment.id).first() is not None


def apply_assessment_fields(assessment, data, creating=False):
    """Copy validated request fields onto an assessment."""
    admin = g.current_user

    if creating or "name" in data:
        name = clean_text(data.get("name"), allowed_tags=())
        if not name:
            raise ValidationError("'name' is required")
        assessment.name = name

    if creating:
        kind = data.get("type")
        if kind not in KINDS:
            raise ValidationError("'type' must be 'Quiz' or 'Coding'")
        assessment.kind = kind
        assessment.college = data.get("college") or admin.college
        assessment.branch = data.get("branch") or admin.branch
        if not assessment.college or not assessment.branch:
            raise ValidationError("'college' and 'branch' are required")
    else:
        for field in ("college", "branch"):
            if data.get(field):
                setattr(assessment, field, data[field])

    if "description" in data:
        assessment.description = clean_text(data.get("description")) or ""

    try:
        if creating or "startDate" in data:
            assessment.start_date = parse_datetime(data.get("startDate"))
        if creating or "endDate" in data:
            assessment.end_date = parse_datetime(data.get("endDate"))
    except ValueError as e:
        raise ValidationError(str(e))
    if assessment.start_date and assessment.end_date and as_utc(assessment.start_date) >= as_utc(assessment.end_date):
        raise ValidationError("'endDate' must be after 'startDate'")

    if creating or "duration" in data:
        duration = data.get("duration")
        if duration in (None, "", 0):
            assessment.duration_minutes = None
        else:
            try:
                duration = int(duration)
            except (TypeError, ValueError):
                raise ValidationError("'duration' must be a whole number of minutes")
            if duration < 1:
                raise ValidationError("'duration' must be at least 1 minute")
            assessment.duration_minutes = duration

    if "isActive" in data:
        assessment.is_active = bool(data["isActive"])
    if "settings" in data:
        if not isinstance(data["settings"], dict):
            raise ValidationError("'settings' must be an object")
        assessment.settings = {**(assessment.settings or {}), **data["settings"]}


# Students
@admin_bp.route('/students', methods=['GET', 'POST'])
@login_required
@admin_only
def manage_students():
    if request.method == 'POST':
        student = StudentManager.create_student(request.get_json(silent=True), g.current_user)
        return jsonify({"message": "Student created successfully!", "student": student.to_dict()}), 201

    query = User.query.filter_by(role="student")
    for field in ("college", "branch", "year", "semester"):
        if request.args.get(field):
            query = query.filter(getattr(User, field) == request.args[field])
    if request.args.get("section"):
        query = query.filter(User.section == request.args["section"].upper())
    search = request.args.get("search")
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            User.name.ilike(pattern) | User.email.ilike(pattern) | User.registration_number.ilike(pattern)
        )

    students = query.order_by(User.date_created.desc()).all()
    return jsonify({"students": [s.to_dict() for s in students], "count": len(students)}), 200


@admin_bp.route('/students/bulk', methods=['POST'])
@login_required
@admin_only
def bulk_create_students():
    file = request.files.get('file')
    if file:
        rows = StudentManager.parse_csv(file)
    else:
        rows = (request.get_json(silent=True) or {}).get("students")
    if not isinstance(rows, list) or not rows:
        raise ValidationError("Provide a 'students' array or a CSV 'file'")

    created, errors = StudentManager.bulk_create(rows, g.current_user)
    current_app.logger.info("Bulk import: %d created, %d failed", len(created), len(errors))
    return jsonify({
        "message": f"Created {len(created)} students",
        "created": len(created),
        "failed": len(errors),
        "students": [s.to_dict() for s in created],
        "errors": errors,
    }), 201


def _get_student(student_id):
    student = db.session.get(User, student_id)
    if student is None or student.role != "student":
        raise NotFound("Student not found")
    return student


@admin_bp.route('/students/<int:student_id>/deactivate', methods=['PUT'])
@login_required
@admin_only
def deactivate_student(student_id):
    student = StudentManager.set_active(_get_student(student_id), False)
    return jsonify({"message": "Student deactivated", "student": student.to_dict()}), 200


@admin_bp.route('/students/<int:student_id>/activate', methods=['PUT'])
@login_required
@admin_only
def activate_student(student_id):
    student = StudentManager.set_active(_get_student(student_id), True)
    return jsonify({"message": "Student activated", "student": student.to_dict()}), 200


# Assessments
@admin_bp.route('/assessments', methods=['GET', 'POST'])
@login_required
@admin_only
def manage_assessments():
    admin = g.current_user
    if request.method == 'POST':
        data = request.get_json(silent=True) or {}
        assessment = Assessment(admin_id=admin.id)
        apply_assessment_fields(assessment, data, creating=True)
        db.session.add(assessment)
        db.session.commit()
        current_app.logger.info("Admin %s created assessment %s", admin.id, assessment.id)
        return jsonify({"message": "Assessment created", "assessment": assessment.to_dict()}), 201

    query = Assessment.query
    if admin.role != "super_admin":
        query = query.filter((Assessment.admin_id == admin.id) | (Assessment.college == admin.college))
    if request.args.get("type"):
        query = query.filter_by(kind=request.args["type"])
    assessments = query.order_by(Assessment.created_at.desc()).all()

    result = []
    for assessment in assessments:
        data = assessment.to_dict()
        data["status"] = assessment_status(assessment)
        data["attemptCount"] = Attempt.query.filter_by(assessment_id=assessment.id).count()
        result.append(data)
    return jsonify({"assessments": result, "count": len(result)}), 200


@admin_bp.route('/assessments/<int:assessment_id>', methods=['GET', 'PUT', 'DELETE'])
@login_required
@admin_only
def manage_assessment(assessment_id):
    assessment = get_authorized_assessment(assessment_id)

    if request.method == 'GET':
        data = assessment.to_dict()
        data["status"] = assessment_status(assessment)
        if assessment.is_quiz:
            data["questions"] = [q.to_dict(include_answer=True) for q in assessment.questions]
        else:
            data["problems"] = [p.to_dict(include_hidden=True) for p in assessment.problems]
        return jsonify({"assessment": data}), 200

    if request.method == 'PUT':
        apply_assessment_fields(assessment, request.get_json(silent=True) or {})
        db.session.commit()
        return jsonify({"message": "Assessment updated", "assessment": assessment.to_dict()}), 200

    # attempts are an audit trail; an assessment that has any cannot go away
    if has_attempts(assessment):
        raise Conflict("Assessment has attempts and cannot be deleted; deactivate it instead")
    db.session.delete(assessment)
    db.session.commit()
    return jsonify({"message": "Assessment deleted"}), 200


@admin_bp.route('/assessments/<int:assessment_id>/quiz-questions', methods=['POST'])
@login_required
@admin_only
def add_quiz_questions(assessment_id):
    assessment = get_authorized_assessment(assessment_id)
    if not assessment.is_quiz:
        raise ValidationError("Questions can only be added to a Quiz assessment")
    if has_attempts(assessment):
        raise Conflict("Questions cannot change once students have started")

    questions = (request.get_json(silent=True) or {}).get("questions")
    if not isinstance(questions, list) or not questions:
        raise ValidationError("'questions' must be a non-empty array")
    for question in questions:
        try:
            validate_quiz_question(question)
        except ValueError as e:
            raise ValidationError(str(e))

    next_number = len(assessment.questions) + 1
    for offset, question in enumerate(questions):
        assessment.questions.append(QuizQuestion(
            question_number=next_number + offset,
            question_text=clean_text(question["question"]),
            options={key: clean_text(text) for key, text in question["options"].items()},
            correct_option=question["correctAnswer"],
            marks=question.get("marks", 1),
        ))
    db.session.commit()

    return jsonify({
        "message": f"Added {len(questions)} questions",
        "assessment": assessment.to_dict(),
        "questions": [q.to_dict(include_answer=True) for q in assessment.questions],
    }), 201


@admin_bp.route('/assessments/<int:assessment_id>/coding-problems', methods=['POST'])
@login_required
@admin_only
def set_coding_problems(assessment_id):
    assessment = get_authorized_assessment(assessment_id)
    if not assessment.is_coding:
        raise ValidationError("Problems can only be added to a Coding assessment")
    if has_attempts(assessment):
        raise Conflict("Problems cannot change once students have started")

    problems = (request.get_json(silent=True) or {}).get("problems")
    if not isinstance(problems, list) or not problems:
        raise ValidationError("'problems' must be a non-empty array")
    for problem in problems:
        try:
            validate_coding_problem(problem)
        except ValueError as e:
            raise ValidationError(str(e))
        if problem.get("difficulty", "Medium") not in DIFFICULTIES:
            raise ValidationError(f"'difficulty' must be one of {', '.join(DIFFICULTIES)}")

    # replaces the whole problem set
    assessment.problems.clear()
    db.session.flush()
    for number, problem in enumerate(problems, start=1):
        assessment.problems.append(CodingProblem(
            problem_number=number,
            title=clean_text(problem["title"], allowed_tags=()),
            description=clean_text(problem["description"]),
            input_format=clean_text(problem.get("inputFormat")),
            output_format=clean_text(problem.get("outputFormat")),
            constraints=clean_text(problem.get("constraints")) or "",
            difficulty=problem.get("difficulty", "Medium"),
            marks=problem.get("marks", 10),
            time_limit_seconds=problem.get("timeLimit", 2),
            memory_limit_kb=problem.get("memoryLimit", 256000),
            test_cases=[
                {
                    "input": case["input"],
                    "expected_output": case["expectedOutput"],
                    "is_hidden": bool(case.get("isHidden")),
                }
                for case in problem["testCases"]
            ],
        ))
    db.session.commit()

    return jsonify({
        "message": f"Saved {len(problems)} problems",
        "assessment": assessment.to_dict(),
        "problems": [p.to_dict(include_hidden=True) for p in assessment.problems],
    }), 201


@admin_bp.route('/assessments/<int:assessment_id>/coding-problems-list', methods=['GET'])
@login_required
@admin_only
def list_coding_problems(assessment_id):
    assessment = get_authorized_assessment(assessment_id)
    return jsonify({
        "problems": [p.to_dict(include_hidden=True) for p in assessment.problems],
        "count": len(assessment.problems),
    }), 200


# Reports
@admin_bp.route('/assessments/<int:assessment_id>/attempts', methods=['GET'])
@login_required
@admin_only
def assessment_attempts(assessment_id):
    assessment = get_authorized_assessment(assessment_id)
    return jsonify(assessment_attempts_report(assessment)), 200


@admin_bp.route('/assessments/<int:assessment_id>/analytics', methods=['GET'])
@login_required
@admin_only
def analytics(assessment_id):
    assessment = get_authorized_assessment(assessment_id)
    return jsonify({"analytics": assessment_analytics(assessment)}), 200


@admin_bp.route('/coding-results/<int:assessment_id>', methods=['GET'])
@login_required
@admin_only
def coding_results(assessment_id):
    assessment = get_authorized_assessment(assessment_id)
    if not assessment.is_coding:
        raise ValidationError("Not a Coding assessment")
    return jsonify(coding_results_report(assessment)), 200
