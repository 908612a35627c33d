from datetime import timedelta

from sqlalchemy import case, func

from models import db
from models import Course
from models import Enrollment
from models import Lecture
from models import LectureProgress
from classes.errors import EnrollmentError
from classes.unit_of_work import run_atomically
from utils.helpers import utcnow


class EnrollmentManager:
    @staticmethod
    def enroll_student(course_id, user_id, now=None):
        course = db.session.get(Course, course_id)
        if not course or not course.is_published:
            raise EnrollmentError("Course not found or not available for enrollment", 404)

        existing = Enrollment.query.filter_by(course_id=course_id, user_id=user_id).first()
        if existing:
            raise EnrollmentError("You are already enrolled in this course")

        now = now or utcnow()
        enrollment = Enrollment(course_id=course_id, user_id=user_id, progress=0,
                                enrolled_at=now, last_accessed_at=now)
        db.session.add(enrollment)
        db.session.commit()
        return enrollment

    @staticmethod
    def unenroll_student(enrollment):
        """Delete the enrollment together with the user's lecture progress in that course."""
        user_id, course_id = enrollment.user_id, enrollment.course_id

        def delete_progress(session):
            lecture_ids = session.query(Lecture.id).filter(Lecture.course_id == course_id)
            return session.query(LectureProgress).filter(
                LectureProgress.user_id == user_id,
                LectureProgress.lecture_id.in_(lecture_ids.scalar_subquery())
            ).delete(synchronize_session=False)

        def delete_enrollment(session):
            session.delete(enrollment)

        run_atomically([delete_progress, delete_enrollment])

    @staticmethod
    def enrollment_stats(teacher_id=None, now=None):
        now = now or utcnow()

        query = db.session.query(
            func.count(Enrollment.id),
            func.count(case((Enrollment.completed_at.isnot(None), 1))),
            func.count(case(((Enrollment.progress > 0) & Enrollment.completed_at.is_(None), 1))),
            func.count(case((Enrollment.progress == 0, 1))),
            func.avg(Enrollment.progress),
        ).join(Course, Enrollment.course_id == Course.id)
        if teacher_id is not None:
            query = query.filter(Course.teacher_id == teacher_id)

        total, completed, in_progress, not_started, average = query.one()

        day = func.date(Enrollment.enrolled_at)
        trends_query = db.session.query(day, func.count(Enrollment.id)).join(
            Course, Enrollment.course_id == Course.id
        ).filter(Enrollment.enrolled_at >= now - timedelta(days=7))
        if teacher_id is not None:
            trends_query = trends_query.filter(Course.teacher_id == teacher_id)
        trends = trends_query.group_by(day).order_by(day).all()

        return {
            "stats": {
                "total_enrollments": total or 0,
                "completed_enrollments": completed or 0,
                "in_progress_enrollments": in_progress or 0,
                "not_started_enrollments": not_started or 0,
                "average_progress": round(float(average or 0), 2),
            },
            "trends": [{"date": str(date), "enrollments": count} for date, count in trends],
        }
