from models import db
from sqlalchemy.orm import relationship
from utils.helpers import format_datetime


class Assignment(db.Model):
    __tablename__ = "assignments"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.DateTime, nullable=True)
    max_points = db.Column(db.Integer, nullable=False, default=100)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)

    __table_args__ = (
        db.CheckConstraint("max_points > 0", name="check_max_points_positive"),
    )

    course = relationship("Course", back_populates="assignments")
    submissions = relationship("AssignmentSubmission", back_populates="assignment", cascade="all, delete-orphan")

    def is_past_due(self, now):
        return self.due_date is not None and now > self.due_date

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "description": self.description,
            "due_date": format_datetime(self.due_date),
            "max_points": self.max_points,
            "created_at": format_datetime(self.created_at),
        }
