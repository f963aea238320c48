"""Read-only projections of submitted attempts for admin reports and student results."""
from flask import current_app

from models.attempts import Attempt, SUBMITTED, IN_PROGRESS, SUBMIT_TIMEOUT
from models.answer_records import AnswerRecord
from models.code_submissions import CodeSubmission
from classes.integrity_tracker import risk_level
from classes.scoring import score_quiz, score_coding, percentage_of
from utils.helpers import isoformat, format_duration


def _policy():
    return current_app.config.get("CODING_SCORE_POLICY", "proportional")


def _submitted_attempts(assessment):
    return (
        Attempt.query
        .filter_by(assessment_id=assessment.id, status=SUBMITTED)
        .order_by(Attempt.score.desc(), Attempt.submitted_at.asc())
        .all()
    )


def _submissions_by_attempt(attempt_ids):
    grouped = {attempt_id: [] for attempt_id in attempt_ids}
    if not attempt_ids:
        return grouped
    for submission in CodeSubmission.query.filter(CodeSubmission.attempt_id.in_(attempt_ids)).all():
        grouped[submission.attempt_id].append(submission)
    return grouped


def _answers_by_attempt(attempt_ids):
    grouped = {attempt_id: [] for attempt_id in attempt_ids}
    if not attempt_ids:
        return grouped
    for answer in AnswerRecord.query.filter(AnswerRecord.attempt_id.in_(attempt_ids)).all():
        grouped[answer.attempt_id].append(answer)
    return grouped


def _student_columns(student):
    return {
        "studentId": student.id,
        "registrationNumber": student.registration_number,
        "name": student.name,
        "email": student.email,
        "year": student.year,
        "semester": student.semester,
        "section": student.section,
    }


def attempt_row(attempt):
    """Report columns shared by quiz and coding reports."""
    row = _student_columns(attempt.student)
    row.update({
        "attemptId": attempt.id,
        "score": attempt.score,
        "totalMarks": attempt.total_marks,
        "percentage": attempt.percentage,
        "timeSpent": attempt.time_spent_seconds,
        "timeSpentFormatted": format_duration(attempt.time_spent_seconds),
        "tabSwitches": attempt.tab_switches,
        "fullscreenExits": attempt.fullscreen_exits,
        "riskLevel": risk_level(attempt.tab_switches or 0, attempt.fullscreen_exits or 0),
        "exceededTabSwitches": (attempt.tab_switches or 0) > attempt.assessment.effective_settings["maxTabSwitches"],
        "submitReason": attempt.submit_reason,
        "startedAt": isoformat(attempt.started_at),
        "submittedAt": isoformat(attempt.submitted_at),
    })
    return row


def assessment_attempts_report(assessment):
    """One row per submitted attempt, with the per-question or per-problem breakdown."""
    attempts = _submitted_attempts(assessment)
    ids = [a.id for a in attempts]

    rows = []
    if assessment.is_quiz:
        answers = _answers_by_attempt(ids)
        for attempt in attempts:
            row = attempt_row(attempt)
            row["breakdown"] = score_quiz(assessment.questions, answers[attempt.id]).to_dict()["answers"]
            rows.append(row)
    else:
        submissions = _submissions_by_attempt(ids)
        for attempt in attempts:
            row = attempt_row(attempt)
            result = score_coding(assessment.problems, submissions[attempt.id], _policy())
            row["breakdown"] = [p.to_dict() for p in result.problems]
            rows.append(row)

    return {
        "assessment": {
            "id": assessment.id,
            "name": assessment.name,
            "type": assessment.kind,
            "totalMarks": assessment.total_marks,
            "startDate": isoformat(assessment.start_date),
            "endDate": isoformat(assessment.end_date),
        },
        "attempts": rows,
        "totalAttempts": len(rows),
    }


def coding_results_report(assessment):
    """Per-student problem results plus per-problem aggregates for a coding test."""
    attempts = _submitted_attempts(assessment)
    submissions = _submissions_by_attempt([a.id for a in attempts])
    policy = _policy()

    students = []
    per_problem = {
        p.id: {
            "problemId": p.id,
            "problemNumber": p.problem_number,
            "title": p.title,
            "marks": p.marks,
            "attempted": 0,
            "fullySolved": 0,
            "passedTestCases": 0,
            "totalTestCases": 0,
        }
        for p in assessment.problems
    }

    for attempt in attempts:
        result = score_coding(assessment.problems, submissions[attempt.id], policy)
        row = attempt_row(attempt)
        row.update({
            "passedTestCases": result.passed_test_cases,
            "totalTestCases": result.total_test_cases,
            "problems": [p.to_dict() for p in result.problems],
        })
        students.append(row)

        for problem in result.problems:
            stats = per_problem[problem.problem_id]
            if not problem.not_attempted:
                stats["attempted"] += 1
            if problem.fully_solved:
                stats["fullySolved"] += 1
            stats["passedTestCases"] += problem.passed_test_cases
            stats["totalTestCases"] += problem.total_test_cases

    problems = []
    for stats in per_problem.values():
        stats["passRate"] = percentage_of(stats["passedTestCases"], stats["totalTestCases"])
        problems.append(stats)

    return {
        "assessment": {"id": assessment.id, "name": assessment.name, "totalMarks": assessment.total_marks},
        "policy": policy,
        "students": students,
        "problems": problems,
        "totalStudents": len(students),
    }


def assessment_analytics(assessment):
    attempts = Attempt.query.filter_by(assessment_id=assessment.id).all()
    submitted = [a for a in attempts if a.status == SUBMITTED]
    scores = [a.score or 0 for a in submitted]
    percentages = [a.percentage or 0 for a in submitted]

    risk = {"none": 0, "low": 0, "medium": 0, "high": 0}
    for attempt in submitted:
        risk[risk_level(attempt.tab_switches or 0, attempt.fullscreen_exits or 0)] += 1

    return {
        "assessmentId": assessment.id,
        "totalAttempts": len(attempts),
        "submittedAttempts": len(submitted),
        "inProgressAttempts": sum(1 for a in attempts if a.status == IN_PROGRESS),
        "timedOutAttempts": sum(1 for a in submitted if a.submit_reason == SUBMIT_TIMEOUT),
        "averageScore": round(sum(scores) / len(scores), 2) if scores else 0,
        "averagePercentage": round(sum(percentages) / len(percentages), 2) if percentages else 0,
        "highestScore": max(scores) if scores else 0,
        "lowestScore": min(scores) if scores else 0,
        "totalMarks": assessment.total_marks,
        "riskLevels": risk,
    }


def student_coding_results(attempt):
    """What a student sees after finishing a coding test."""
    assessment = attempt.assessment
    submissions = CodeSubmission.query.filter_by(attempt_id=attempt.id).all()
    result = score_coding(assessment.problems, submissions, _policy())
    best = {p.best_submission_id for p in result.problems if p.best_submission_id}
    return {
        "assessment": {"id": assessment.id, "name": assessment.name},
        "attempt": attempt.to_dict(),
        "results": result.to_dict(),
        "bestSubmissions": [
            s.to_dict(hide_hidden=True) for s in submissions if s.id in best
        ],
    }
