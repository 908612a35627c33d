from models import db
from utils.helpers import format_datetime, utcnow


class LectureProgress(db.Model):
    __tablename__ = "lecture_progress"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    lecture_id = db.Column(db.Integer, db.ForeignKey("lectures.id"), nullable=False)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    progress_seconds = db.Column(db.Integer, nullable=False, default=0)
    last_accessed_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("user_id", "lecture_id", name="unique_user_lecture"),
    )

    lecture = db.relationship("Lecture", back_populates="progress_rows")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "lecture_id": self.lecture_id,
            "is_completed": self.is_completed,
            "progress_seconds": self.progress_seconds,
            "last_accessed_at": format_datetime(self.last_accessed_at),
        }
