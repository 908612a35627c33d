from flask import Blueprint, jsonify, g, request
from utils.utils import login_required, roles_required
from utils.helpers import get_pagination, paginate
from classes.enrolment_manager import EnrollmentManager
from classes.progress_manager import ProgressManager
from classes.errors import EnrollmentError

from models import db
from models.courses import Course
from models.enrolments import Enrollment

# Enrollments' blueprint
enrolment_bp = Blueprint("enrolments", __name__)


@enrolment_bp.route("/stats", methods=["GET"])
@login_required
@roles_required("teacher", "admin")
def get_enrollment_stats():
    teacher_id = g.user.get("user_id") if g.user.get("role") == "teacher" else None
    return jsonify(EnrollmentManager.enrollment_stats(teacher_id=teacher_id)), 200


#Enroll in a course
@enrolment_bp.route("/<int:course_id>", methods=["POST"])
@login_required
def enroll_in_course(course_id):
    if g.user.get("role") != "student":
        return jsonify({"error": "Only students can enroll in courses"}), 403

    course = db.session.get(Course, course_id)
    if course and course.price and course.price > 0:
        return jsonify({"error": "This course requires payment before enrollment"}), 402

    try:
        enrollment = EnrollmentManager.enroll_student(course_id, g.user.get("user_id"))
    except EnrollmentError as e:
        return jsonify({"error": e.message}), e.status_code

    return jsonify({"enrollment": enrollment.to_dict()}), 201


#Fetch the caller's enrollments
@enrolment_bp.route("", methods=["GET"])
@login_required
def get_my_enrollments():
    user_id = g.user.get("user_id")
    status = request.args.get("status")
    page, limit = get_pagination()

    query = db.session.query(Enrollment, Course).join(Course, Enrollment.course_id == Course.id).filter(
        Enrollment.user_id == user_id
    )

    if status == "completed":
        query = query.filter(Enrollment.completed_at.isnot(None))
    elif status == "in_progress":
        query = query.filter(Enrollment.completed_at.is_(None), Enrollment.progress > 0)
    elif status == "not_started":
        query = query.filter(Enrollment.progress == 0)

    rows, meta = paginate(query.order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc()), page, limit)

    enrollments = [
        {**e.to_dict(), "course_title": c.title, "course_description": c.description,
         "thumbnail_url": c.thumbnail_url, "teacher_id": c.teacher_id}
        for e, c in rows
    ]
    return jsonify({**meta, "enrollments": enrollments}), 200


#Fetch a course's enrollments
@enrolment_bp.route("/course/<int:course_id>", methods=["GET"])
@login_required
@roles_required("teacher", "admin")
def get_course_enrollments(course_id):
    course = db.session.get(Course, course_id)
    if not course:
        return jsonify({"error": "Course not found"}), 404

    if g.user.get("role") == "teacher" and course.teacher_id != g.user.get("user_id"):
        return jsonify({"error": "You do not have permission to view enrollments for this course"}), 403

    page, limit = get_pagination()
    query = Enrollment.query.filter_by(course_id=course_id).order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
    rows, meta = paginate(query, page, limit)

    enrollments = [
        {**e.to_dict(), "full_name": e.user.full_name, "email": e.user.email}
        for e in rows
    ]
    return jsonify({**meta, "enrollments": enrollments}), 200


def can_view(enrollment):
    role = g.user.get("role")
    user_id = g.user.get("user_id")
    if role == "admin":
        return True
    if role == "student":
        return enrollment.user_id == user_id
    if role == "teacher":
        return enrollment.course.teacher_id == user_id
    return False


#Fetch enrollment details with lecture progress
@enrolment_bp.route("/details/<int:enrollment_id>", methods=["GET"])
@login_required
def get_enrollment(enrollment_id):
    enrollment = db.session.get(Enrollment, enrollment_id)
    if not enrollment:
        return jsonify({"error": "Enrollment not found"}), 404

    if not can_view(enrollment):
        return jsonify({"error": "You do not have permission to view this enrollment"}), 403

    lecture_progress = ProgressManager.course_lecture_progress(enrollment.user_id, enrollment.course_id)

    return jsonify({
        "enrollment": {
            **enrollment.to_dict(),
            "course_title": enrollment.course.title,
            "lecture_progress": lecture_progress,
        }
    }), 200


#Unenroll
@enrolment_bp.route("/details/<int:enrollment_id>", methods=["DELETE"])
@login_required
def unenroll(enrollment_id):
    enrollment = db.session.get(Enrollment, enrollment_id)
    if not enrollment:
        return jsonify({"error": "Enrollment not found"}), 404

    role = g.user.get("role")
    if role == "student" and enrollment.user_id != g.user.get("user_id"):
        return jsonify({"error": "You can only unenroll from your own courses"}), 403
    if role not in ("student", "admin"):
        return jsonify({"error": "You do not have permission to unenroll users"}), 403

    EnrollmentManager.unenroll_student(enrollment)

    return jsonify({"message": "Unenrolled successfully"}), 200
