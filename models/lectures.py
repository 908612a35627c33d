from sqlalchemy.orm import relationship
from models import db

CONTENT_TYPES = ("video", "document", "quiz")


class Lecture(db.Model):
    __tablename__ = "lectures"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    content_type = db.Column(db.String(20), nullable=False, default="video")
    content_url = db.Column(db.String(255), nullable=True)
    order_index = db.Column(db.Integer, nullable=False, default=1)
    duration = db.Column(db.Integer, nullable=True)  # seconds
    is_published = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)

    course = relationship("Course", back_populates="lectures")
    progress_rows = relationship("LectureProgress", back_populates="lecture", cascade="all, delete-orphan")

    @staticmethod
    def get_next_order(course_id):
        last_lecture = Lecture.query.filter_by(course_id=course_id).order_by(Lecture.order_index.desc()).first()
        return (last_lecture.order_index + 1) if last_lecture else 1

    def __repr__(self):
        return f"<Lecture {self.title} (Course ID {self.course_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "description": self.description if self.description is not None else "",
            "content_type": self.content_type,
            "content_url": self.content_url,
            "order_index": self.order_index,
            "duration": self.duration,
            "is_published": self.is_published,
            "created_at": self.created_at
        }
