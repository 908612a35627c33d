import logging

from sqlalchemy import func

from models import db
from models.lectures import Lecture
from models.lecture_progress import LectureProgress
from models.enrolments import Enrollment
from classes.unit_of_work import upsert
from utils.helpers import compute_percentage, utcnow

logger = logging.getLogger(__name__)


class AggregationOk:
    ok = True

    def __init__(self, progress, completed_lectures, total_lectures):
        self.progress = progress
        self.completed_lectures = completed_lectures
        self.total_lectures = total_lectures

    def __repr__(self):
        return f"<AggregationOk {self.progress}% ({self.completed_lectures}/{self.total_lectures})>"


class LoggedFailure:
    ok = False

    def __init__(self, error):
        self.error = error

    def __repr__(self):
        return f"<LoggedFailure {self.error!r}>"


class ProgressManager:
    @staticmethod
    def count_lectures(user_id, course_id):
        """Return (completed, total) over the course's published lectures."""
        total = db.session.query(func.count(Lecture.id)).filter(
            Lecture.course_id == course_id,
            Lecture.is_published.is_(True)
        ).scalar() or 0

        completed = db.session.query(func.count(LectureProgress.id)).join(
            Lecture, LectureProgress.lecture_id == Lecture.id
        ).filter(
            Lecture.course_id == course_id,
            Lecture.is_published.is_(True),
            LectureProgress.user_id == user_id,
            LectureProgress.is_completed.is_(True)
        ).scalar() or 0

        return completed, total

    @staticmethod
    def recompute(user_id, course_id, now=None):
        """Roll lecture completion up into the enrollment row.

        Best effort: errors are logged and returned as LoggedFailure, never raised.
        """
        now = now or utcnow()
        try:
            completed, total = ProgressManager.count_lectures(user_id, course_id)
            progress = compute_percentage(completed, total)

            updated = Enrollment.query.filter_by(user_id=user_id, course_id=course_id).update({
                Enrollment.progress: progress,
                Enrollment.completed_at: now if progress == 100 else None,
                Enrollment.last_accessed_at: now,
            }, synchronize_session="fetch")

            if updated == 0:
                raise LookupError(f"No enrollment for user {user_id} in course {course_id}")

            db.session.commit()
            return AggregationOk(progress, completed, total)
        except Exception as e:
            db.session.rollback()
            logger.error("Update course progress error (user=%s, course=%s): %s",
                         user_id, course_id, e, exc_info=True)
            return LoggedFailure(e)

    @staticmethod
    def recompute_course(course_id, now=None):
        """Recompute every enrollment in a course after its lecture set changed."""
        now = now or utcnow()
        user_ids = [user_id for (user_id,) in
                    db.session.query(Enrollment.user_id).filter(Enrollment.course_id == course_id).all()]
        return {user_id: ProgressManager.recompute(user_id, course_id, now=now) for user_id in user_ids}

    @staticmethod
    def record_lecture_progress(user_id, lecture, is_completed=False, progress_seconds=0, now=None):
        """Upsert the (user, lecture) progress row, then recompute the enrollment.

        Returns (progress_row, aggregation_result).
        """
        now = now or utcnow()

        upsert(
            LectureProgress,
            {
                "user_id": user_id,
                "lecture_id": lecture.id,
                "is_completed": bool(is_completed),
                "progress_seconds": progress_seconds,
                "last_accessed_at": now,
            },
            keys=["user_id", "lecture_id"],
            update_columns=["is_completed", "progress_seconds", "last_accessed_at"],
        )
        db.session.commit()
        row = LectureProgress.query.filter_by(user_id=user_id, lecture_id=lecture.id).one()

        result = ProgressManager.recompute(user_id, lecture.course_id, now=now)
        return row, result

    @staticmethod
    def course_lecture_progress(user_id, course_id, published_only=False):
        """Lectures of a course paired with the user's progress, ordered by order_index."""
        query = db.session.query(Lecture, LectureProgress).outerjoin(
            LectureProgress,
            (LectureProgress.lecture_id == Lecture.id) & (LectureProgress.user_id == user_id)
        ).filter(Lecture.course_id == course_id)

        if published_only:
            query = query.filter(Lecture.is_published.is_(True))

        lectures = []
        for lecture, progress in query.order_by(Lecture.order_index).all():
            lectures.append({
                **lecture.to_dict(),
                "is_completed": progress.is_completed if progress else False,
                "progress_seconds": progress.progress_seconds if progress else 0,
                "last_accessed_at": progress.to_dict()["last_accessed_at"] if progress else None,
            })
        return lectures
