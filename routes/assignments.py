import logging

from flask import Blueprint, jsonify, g, request
from sqlalchemy import func
from utils.utils import login_required, roles_required
from utils.helpers import parse_datetime, utcnow
from classes.unit_of_work import upsert
from classes.validators import clean_text, validate_length, validate_non_negative_int
from routes.courses import get_owned_course

from models import db
from models.users import User
from models.courses import Course
from models.enrolments import Enrollment
from models.assignment import Assignment
from models.assignment_submission import AssignmentSubmission

logger = logging.getLogger(__name__)

# Assignments' blueprint
assignment_bp = Blueprint("assignments", __name__)


def parse_assignment_fields(data, partial=False):
    """Validate the writable fields present in `data`. Returns a dict of column values."""
    fields = {}

    if "title" in data or not partial:
        title = clean_text(data.get("title"))
        if not title:
            raise ValueError("Title is required")
        validate_length("Title", title, 255)
        fields["title"] = title
    if "description" in data:
        fields["description"] = clean_text(data["description"])
    if "due_date" in data:
        fields["due_date"] = parse_datetime(data["due_date"]) if data["due_date"] is not None else None
    if "max_points" in data or not partial:
        max_points = data.get("max_points", 100)
        validate_non_negative_int("Max points", max_points)
        if max_points == 0:
            raise ValueError("Max points must be greater than 0")
        fields["max_points"] = max_points
    return fields


def can_read_course(course):
    """Return an error response unless the caller may read the course's assignments."""
    user_id = g.user.get("user_id")
    role = g.user.get("role")

    if role == "student":
        if not Enrollment.query.filter_by(user_id=user_id, course_id=course.id).first():
            return jsonify({"error": "You are not enrolled in this course"}), 403
        return None
    if role == "admin" or (role == "teacher" and course.teacher_id == user_id):
        return None
    return jsonify({"error": "You do not have permission to access assignments for this course"}), 403

#__________________________________________________________________________________________ * Assignments *__________________________________________________

@assignment_bp.route("/course/<int:course_id>", methods=["POST"])
@login_required
def create_assignment(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    try:
        fields = parse_assignment_fields(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    assignment = Assignment(course_id=course.id, **fields)
    db.session.add(assignment)
    db.session.commit()

    logger.info("Assignment created: id=%s course=%s by=%s", assignment.id, course_id, g.user.get("user_id"))
    return jsonify({"message": "Assignment created successfully", "assignment": assignment.to_dict()}), 201


@assignment_bp.route("/course/<int:course_id>", methods=["GET"])
@login_required
def get_course_assignments(course_id):
    course = db.session.get(Course, course_id)
    if not course:
        return jsonify({"error": "Course not found"}), 404

    error = can_read_course(course)
    if error:
        return error

    submission_count = func.count(AssignmentSubmission.id)
    rows = db.session.query(Assignment, submission_count).outerjoin(
        AssignmentSubmission, AssignmentSubmission.assignment_id == Assignment.id
    ).filter(Assignment.course_id == course_id).group_by(Assignment.id).order_by(
        Assignment.created_at.desc(), Assignment.id.desc()
    ).all()

    own = {}
    if g.user.get("role") == "student":
        own = {
            s.assignment_id: s.to_dict()
            for s in AssignmentSubmission.query.join(Assignment).filter(
                Assignment.course_id == course_id, AssignmentSubmission.user_id == g.user.get("user_id")
            ).all()
        }

    assignments = []
    for assignment, count in rows:
        item = {**assignment.to_dict(), "submission_count": count}
        if g.user.get("role") == "student":
            item["user_submission"] = own.get(assignment.id)
        assignments.append(item)

    return jsonify({"results": len(assignments), "assignments": assignments}), 200


@assignment_bp.route("/<int:assignment_id>", methods=["GET"])
@login_required
def get_assignment(assignment_id):
    assignment = db.session.get(Assignment, assignment_id)
    if not assignment:
        return jsonify({"error": "Assignment not found"}), 404

    error = can_read_course(assignment.course)
    if error:
        return error

    result = {**assignment.to_dict(), "course_title": assignment.course.title}
    if g.user.get("role") == "student":
        submission = AssignmentSubmission.query.filter_by(
            assignment_id=assignment_id, user_id=g.user.get("user_id")
        ).first()
        result["user_submission"] = submission.to_dict() if submission else None
    else:
        rows = db.session.query(AssignmentSubmission, User).join(
            User, AssignmentSubmission.user_id == User.id
        ).filter(AssignmentSubmission.assignment_id == assignment_id).order_by(
            AssignmentSubmission.submitted_at.desc()
        ).all()
        result["submissions"] = [
            {**submission.to_dict(), "full_name": user.full_name, "email": user.email}
            for submission, user in rows
        ]

    return jsonify({"assignment": result}), 200


@assignment_bp.route("/<int:assignment_id>", methods=["PATCH"])
@login_required
def update_assignment(assignment_id):
    assignment = db.session.get(Assignment, assignment_id)
    if not assignment:
        return jsonify({"error": "Assignment not found"}), 404

    _, error = get_owned_course(assignment.course_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    try:
        fields = parse_assignment_fields(data, partial=True)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    for name, value in fields.items():
        setattr(assignment, name, value)
    db.session.commit()

    return jsonify({"message": "Assignment updated successfully", "assignment": assignment.to_dict()}), 200


@assignment_bp.route("/<int:assignment_id>", methods=["DELETE"])
@login_required
def delete_assignment(assignment_id):
    assignment = db.session.get(Assignment, assignment_id)
    if not assignment:
        return jsonify({"error": "Assignment not found"}), 404

    _, error = get_owned_course(assignment.course_id)
    if error:
        return error

    db.session.delete(assignment)
    db.session.commit()
    logger.info("Assignment deleted: id=%s by=%s", assignment_id, g.user.get("user_id"))

    return jsonify({"message": "Assignment deleted successfully"}), 200

#__________________________________________________________________________________________ * Submissions *__________________________________________________

@assignment_bp.route("/<int:assignment_id>/submit", methods=["POST"])
@login_required
def submit_assignment(assignment_id):
    user_id = g.user.get("user_id")
    now = utcnow()

    if g.user.get("role") != "student":
        return jsonify({"error": "Only students can submit assignments"}), 403

    assignment = db.session.get(Assignment, assignment_id)
    if not assignment:
        return jsonify({"error": "Assignment not found"}), 404

    if not Enrollment.query.filter_by(user_id=user_id, course_id=assignment.course_id).first():
        return jsonify({"error": "You are not enrolled in this course"}), 403

    if assignment.is_past_due(now):
        return jsonify({"error": "Assignment submission deadline has passed"}), 400

    data = request.get_json(silent=True) or {}
    submission_url = data.get("submission_url")
    submission_text = clean_text(data.get("submission_text"))
    if not submission_url and not submission_text:
        return jsonify({"error": "A submission URL or text is required"}), 400
    try:
        if submission_url:
            validate_length("Submission URL", submission_url, 255)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    resubmitted = AssignmentSubmission.query.filter_by(assignment_id=assignment_id, user_id=user_id).first() is not None

    upsert(
        AssignmentSubmission,
        {
            "assignment_id": assignment_id,
            "user_id": user_id,
            "submission_url": submission_url,
            "submission_text": submission_text,
            "submitted_at": now,
        },
        keys=["assignment_id", "user_id"],
        update_columns=["submission_url", "submission_text", "submitted_at"],
    )
    db.session.commit()
    submission = AssignmentSubmission.query.filter_by(assignment_id=assignment_id, user_id=user_id).one()

    if resubmitted:
        return jsonify({"message": "Assignment resubmitted successfully", "submission": submission.to_dict()}), 200
    return jsonify({"message": "Assignment submitted successfully", "submission": submission.to_dict()}), 201


@assignment_bp.route("/submissions/<int:submission_id>/grade", methods=["PATCH"])
@login_required
@roles_required("teacher", "admin")
def grade_submission(submission_id):
    submission = db.session.get(AssignmentSubmission, submission_id)
    if not submission:
        return jsonify({"error": "Submission not found"}), 404

    assignment = submission.assignment
    if g.user.get("role") == "teacher" and assignment.course.teacher_id != g.user.get("user_id"):
        return jsonify({"error": "You do not have permission to grade this submission"}), 403

    data = request.get_json(silent=True) or {}
    grade = data.get("grade")
    try:
        validate_non_negative_int("Grade", grade)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if grade > assignment.max_points:
        return jsonify({"error": f"Grade cannot exceed maximum points ({assignment.max_points})"}), 400

    submission.grade = grade
    submission.feedback = clean_text(data.get("feedback"))
    submission.graded_at = utcnow()
    db.session.commit()

    logger.info("Submission graded: id=%s grade=%s by=%s", submission_id, grade, g.user.get("user_id"))
    return jsonify({"message": "Submission graded successfully", "submission": submission.to_dict()}), 200
