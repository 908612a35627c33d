from models import db
from utils.helpers import format_datetime


class Enrollment(db.Model):
    __tablename__ = 'enrollments'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey('courses.id'), nullable=False)
    progress = db.Column(db.Integer, default=0, nullable=False)
    enrolled_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    last_accessed_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.UniqueConstraint("user_id", "course_id", name="unique_user_course"),
        db.CheckConstraint("progress >= 0 AND progress <= 100", name="check_progress_range"),
    )

    user = db.relationship("User", back_populates="enrollments")
    course = db.relationship("Course", back_populates="enrollments")

    @property
    def status(self):
        if self.completed_at is not None:
            return "completed"
        return "in_progress" if self.progress > 0 else "not_started"

    def __repr__(self):
        return f"<Enrollment User {self.user_id} Course {self.course_id} ({self.progress}%)>"

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "progress": self.progress,
            "status": self.status,
            "enrolled_at": format_datetime(self.enrolled_at),
            "last_accessed_at": format_datetime(self.last_accessed_at),
            "completed_at": format_datetime(self.completed_at),
        }
