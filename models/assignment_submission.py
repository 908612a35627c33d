from models import db
from sqlalchemy.orm import relationship
from utils.helpers import format_datetime, utcnow


class AssignmentSubmission(db.Model):
    __tablename__ = "assignment_submissions"

    id = db.Column(db.Integer, primary_key=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey("assignments.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    submission_url = db.Column(db.String(255), nullable=True)
    submission_text = db.Column(db.Text, nullable=True)
    submitted_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    grade = db.Column(db.Integer, nullable=True)
    feedback = db.Column(db.Text, nullable=True)
    graded_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.UniqueConstraint("assignment_id", "user_id", name="unique_assignment_user"),
    )

    # Relationships
    assignment = relationship("Assignment", back_populates="submissions")
    student = relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "assignment_id": self.assignment_id,
            "user_id": self.user_id,
            "submission_url": self.submission_url,
            "submission_text": self.submission_text,
            "submitted_at": format_datetime(self.submitted_at),
            "grade": self.grade,
            "feedback": self.feedback,
            "graded_at": format_datetime(self.graded_at),
        }
