from models import db
from sqlalchemy.orm import relationship

COURSE_STATUSES = ("draft", "published", "archived")
COURSE_LEVELS = ("beginner", "intermediate", "advanced")


class Course(db.Model):
    __tablename__ = "courses"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    price = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default="draft")
    thumbnail_url = db.Column(db.String(255), nullable=True)
    level = db.Column(db.String(20), nullable=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)

    teacher = relationship("User")
    category = relationship("Category", back_populates="courses")
    lectures = relationship("Lecture", back_populates="course", cascade="all, delete-orphan",
                            order_by="Lecture.order_index")
    enrollments = relationship("Enrollment", back_populates="course", cascade="all, delete-orphan")
    assignments = relationship("Assignment", back_populates="course", cascade="all, delete-orphan")

    @property
    def is_published(self):
        return self.status == "published"

    def __repr__(self):
        return f"<Course {self.title} (Teacher ID {self.teacher_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "teacher_id": self.teacher_id,
            "price": self.price,
            "status": self.status,
            "thumbnail_url": self.thumbnail_url,
            "level": self.level,
            "category_id": self.category_id,
            "created_at": self.created_at
        }
