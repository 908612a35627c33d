import logging

from flask import Blueprint, jsonify, g, request
from sqlalchemy import func, or_
from utils.utils import login_required, roles_required
from utils.helpers import get_pagination, paginate
from classes.progress_manager import ProgressManager
from classes.validators import clean_text, validate_bool, validate_length, validate_non_negative_int

from models import db
from models.categories import Category
from models.courses import Course, COURSE_LEVELS
from models.lectures import Lecture, CONTENT_TYPES
from models.lecture_progress import LectureProgress
from models.enrolments import Enrollment
from models.messages import Message
from models.payments import Payment

logger = logging.getLogger(__name__)

# Courses' blueprint
course_bp = Blueprint("courses", __name__)
# Lecture progress lives under /api/lectures
lecture_bp = Blueprint("lectures", __name__)


def get_owned_course(course_id):
    """Return (course, error_response). Teachers may only manage their own courses."""
    course = db.session.get(Course, course_id)
    if not course:
        return None, (jsonify({"error": "Course not found"}), 404)

    role = g.user.get("role")
    if role == "admin" or (role == "teacher" and course.teacher_id == g.user.get("user_id")):
        return course, None
    return None, (jsonify({"error": "You do not have permission to manage this course"}), 403)


def check_level_and_category(level, category_id):
    """Raise ValueError unless `level` and `category_id` are empty or valid."""
    if level is not None and level not in COURSE_LEVELS:
        raise ValueError(f"Level must be one of {', '.join(COURSE_LEVELS)}")
    if category_id is not None:
        validate_non_negative_int("Category", category_id)
        if not db.session.get(Category, category_id):
            raise ValueError("Category not found")


#__________________________________________________________________________________________ * Courses *__________________________________________________

@course_bp.route("", methods=["GET"])
def get_courses():
    """Public catalog: published courses only, newest first."""
    page, limit = get_pagination()
    category_id = request.args.get("category", type=int)
    level = request.args.get("level")
    search = request.args.get("search")
    teacher_id = request.args.get("teacher", type=int)

    enrollment_count = func.count(Enrollment.id)
    query = db.session.query(Course, enrollment_count).outerjoin(
        Enrollment, Enrollment.course_id == Course.id
    ).filter(Course.status == "published")

    if category_id:
        query = query.filter(Course.category_id == category_id)
    if level:
        query = query.filter(Course.level == level)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Course.title.ilike(pattern), Course.description.ilike(pattern)))
    if teacher_id:
        query = query.filter(Course.teacher_id == teacher_id)

    query = query.group_by(Course.id).order_by(Course.created_at.desc(), Course.id.desc())
    rows, meta = paginate(query, page, limit)

    return jsonify({
        **meta,
        "courses": [{**course.to_dict(), "enrollment_count": count} for course, count in rows],
    }), 200


@course_bp.route("", methods=["POST"])
@login_required
@roles_required("teacher", "admin")
def create_course():
    data = request.get_json(silent=True) or {}
    title = clean_text(data.get("title"))
    price = data.get("price", 0)
    level = data.get("level")
    category_id = data.get("category_id")

    if not title:
        return jsonify({"error": "Title is required"}), 400

    try:
        validate_length("Title", title, 255)
        validate_non_negative_int("Price", price)
        check_level_and_category(level, category_id)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    course = Course(
        title=title,
        description=clean_text(data.get("description")),
        thumbnail_url=data.get("thumbnail_url"),
        price=price,
        level=level,
        category_id=category_id,
        teacher_id=g.user.get("user_id"),
        status="draft",
    )
    db.session.add(course)
    db.session.commit()

    return jsonify({"message": "Course created successfully", "course": course.to_dict()}), 201


@course_bp.route("/<int:course_id>", methods=["GET"])
@login_required
def get_course(course_id):
    course = db.session.get(Course, course_id)
    if not course:
        return jsonify({"error": "Course not found"}), 404

    if course.status != "published":
        role = g.user.get("role")
        if not (role == "admin" or (role == "teacher" and course.teacher_id == g.user.get("user_id"))):
            return jsonify({"error": "You do not have permission to access this course"}), 403

    return jsonify(course.to_dict()), 200


@course_bp.route("/<int:course_id>/publish", methods=["PATCH"])
@login_required
def publish_course(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    status = data.get("status", "published")
    if status not in ("draft", "published", "archived"):
        return jsonify({"error": "Invalid status"}), 400

    course.status = status
    db.session.commit()

    return jsonify({"message": f"Course is now {status}", "course": course.to_dict()}), 200


@course_bp.route("/<int:course_id>", methods=["PATCH"])
@login_required
def update_course(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    try:
        if "title" in data:
            title = clean_text(data["title"])
            if not title:
                raise ValueError("Title cannot be empty")
            validate_length("Title", title, 255)
        if "price" in data:
            validate_non_negative_int("Price", data["price"])
        check_level_and_category(data.get("level"), data.get("category_id"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if "title" in data:
        course.title = title
    if "description" in data:
        course.description = clean_text(data["description"])
    for field in ("thumbnail_url", "price", "level", "category_id"):
        if field in data:
            setattr(course, field, data[field])
    db.session.commit()

    return jsonify({"message": "Course updated successfully", "course": course.to_dict()}), 200


@course_bp.route("/<int:course_id>", methods=["DELETE"])
@login_required
def delete_course(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    # Sold courses are archived, not deleted
    if Payment.query.filter_by(course_id=course_id).first():
        return jsonify({"error": "Course has payments and cannot be deleted. Archive it instead."}), 400

    Message.query.filter_by(course_id=course_id).update({Message.course_id: None}, synchronize_session=False)
    db.session.delete(course)
    db.session.commit()
    logger.info("Course deleted: id=%s by=%s", course_id, g.user.get("user_id"))

    return jsonify({"message": "Course deleted successfully"}), 200

#__________________________________________________________________________________________ * Lectures *__________________________________________________

@course_bp.route("/<int:course_id>/lectures", methods=["POST"])
@login_required
def create_lecture(course_id):
    course, error = get_owned_course(course_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    title = clean_text(data.get("title"))
    content_type = data.get("content_type", "video")
    duration = data.get("duration")
    order_index = data.get("order_index")
    is_published = data.get("is_published", False)

    if not title:
        return jsonify({"error": "Title is required"}), 400
    if content_type not in CONTENT_TYPES:
        return jsonify({"error": f"Content type must be one of {', '.join(CONTENT_TYPES)}"}), 400

    try:
        validate_length("Title", title, 255)
        validate_non_negative_int("Duration", duration, required=False)
        validate_non_negative_int("Order index", order_index, required=False)
        validate_bool("is_published", is_published)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    lecture = Lecture(
        course_id=course.id,
        title=title,
        description=clean_text(data.get("description")),
        content_type=content_type,
        content_url=data.get("content_url"),
        order_index=order_index if order_index is not None else Lecture.get_next_order(course.id),
        duration=duration,
        is_published=is_published,
    )
    db.session.add(lecture)
    db.session.commit()

    if is_published:
        ProgressManager.recompute_course(course.id)

    return jsonify({"message": "Lecture created successfully", "lecture": lecture.to_dict()}), 201


@course_bp.route("/<int:course_id>/lectures", methods=["GET"])
@login_required
def get_lectures(course_id):
    user_id = g.user.get("user_id")
    role = g.user.get("role")

    course = db.session.get(Course, course_id)
    if not course:
        return jsonify({"error": "Course not found"}), 404

    if role == "student":
        enrolled = Enrollment.query.filter_by(user_id=user_id, course_id=course_id).first()
        if not enrolled or course.status == "draft":
            return jsonify({"error": "You are not enrolled in this course"}), 403
        lectures = ProgressManager.course_lecture_progress(user_id, course_id, published_only=True)
        return jsonify({"lectures": lectures, "progress": enrolled.progress}), 200

    if not (role == "admin" or (role == "teacher" and course.teacher_id == user_id)):
        return jsonify({"error": "You do not have permission to access this course"}), 403

    return jsonify({"lectures": [lecture.to_dict() for lecture in course.lectures]}), 200


def get_owned_lecture(lecture_id):
    lecture = db.session.get(Lecture, lecture_id)
    if not lecture:
        return None, (jsonify({"error": "Lecture not found"}), 404)

    _, error = get_owned_course(lecture.course_id)
    if error:
        return None, error
    return lecture, None


@lecture_bp.route("/<int:lecture_id>", methods=["GET"])
@login_required
def get_lecture(lecture_id):
    user_id = g.user.get("user_id")
    role = g.user.get("role")

    lecture = db.session.get(Lecture, lecture_id)
    if not lecture:
        return jsonify({"error": "Lecture not found"}), 404

    if role == "student":
        if not Enrollment.query.filter_by(user_id=user_id, course_id=lecture.course_id).first():
            return jsonify({"error": "You are not enrolled in this course"}), 403
        if not lecture.is_published:
            return jsonify({"error": "This lecture is not yet published"}), 403
    elif not (role == "admin" or (role == "teacher" and lecture.course.teacher_id == user_id)):
        return jsonify({"error": "You do not have permission to access this lecture"}), 403

    progress = LectureProgress.query.filter_by(user_id=user_id, lecture_id=lecture_id).first()
    return jsonify({
        "lecture": {
            **lecture.to_dict(),
            "is_completed": progress.is_completed if progress else False,
            "progress_seconds": progress.progress_seconds if progress else 0,
        }
    }), 200


@lecture_bp.route("/<int:lecture_id>", methods=["PATCH"])
@login_required
def update_lecture(lecture_id):
    lecture, error = get_owned_lecture(lecture_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    try:
        if "title" in data:
            title = clean_text(data["title"])
            if not title:
                raise ValueError("Title cannot be empty")
            validate_length("Title", title, 255)
        if "content_type" in data and data["content_type"] not in CONTENT_TYPES:
            raise ValueError(f"Content type must be one of {', '.join(CONTENT_TYPES)}")
        if "duration" in data:
            validate_non_negative_int("Duration", data["duration"], required=False)
        if "order_index" in data:
            validate_non_negative_int("Order index", data["order_index"])
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if "title" in data:
        lecture.title = title
    if "description" in data:
        lecture.description = clean_text(data["description"])
    for field in ("content_type", "content_url", "duration", "order_index"):
        if field in data:
            setattr(lecture, field, data[field])
    db.session.commit()

    return jsonify({"message": "Lecture updated successfully", "lecture": lecture.to_dict()}), 200


@lecture_bp.route("/<int:lecture_id>", methods=["DELETE"])
@login_required
def delete_lecture(lecture_id):
    lecture, error = get_owned_lecture(lecture_id)
    if error:
        return error

    course_id = lecture.course_id
    db.session.delete(lecture)
    db.session.commit()
    logger.info("Lecture deleted: id=%s course=%s by=%s", lecture_id, course_id, g.user.get("user_id"))

    ProgressManager.recompute_course(course_id)
    return jsonify({"message": "Lecture deleted successfully"}), 200


@lecture_bp.route("/<int:lecture_id>/publish", methods=["PATCH"])
@login_required
def publish_lecture(lecture_id):
    lecture, error = get_owned_lecture(lecture_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    is_published = data.get("is_published", True)
    try:
        validate_bool("is_published", is_published)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    changed = lecture.is_published != is_published
    lecture.is_published = is_published
    db.session.commit()

    if changed:
        ProgressManager.recompute_course(lecture.course_id)

    state = "published" if lecture.is_published else "unpublished"
    return jsonify({"message": f"Lecture {state}", "lecture": lecture.to_dict()}), 200

#__________________________________________________________________________________________ * Progress *__________________________________________________

@lecture_bp.route("/<int:lecture_id>/progress", methods=["POST"])
@login_required
def update_lecture_progress(lecture_id):
    user_id = g.user.get("user_id")

    if g.user.get("role") != "student":
        return jsonify({"error": "Only students can update lecture progress"}), 403

    data = request.get_json(silent=True) or {}
    progress_seconds = data.get("progress_seconds", 0)
    is_completed = data.get("is_completed", False)

    try:
        validate_non_negative_int("Progress seconds", progress_seconds)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if not isinstance(is_completed, bool):
        return jsonify({"error": "is_completed must be a boolean"}), 400

    lecture = Lecture.query.filter_by(id=lecture_id, is_published=True).first()
    if not lecture:
        return jsonify({"error": "Lecture not found or not published"}), 404

    enrolled = Enrollment.query.filter_by(user_id=user_id, course_id=lecture.course_id).first()
    if not enrolled:
        return jsonify({"error": "You are not enrolled in this course"}), 403

    row, result = ProgressManager.record_lecture_progress(
        user_id, lecture, is_completed=is_completed, progress_seconds=progress_seconds
    )

    return jsonify({
        "progress": row.to_dict(),
        "course_progress": result.progress if result.ok else None,
    }), 200
