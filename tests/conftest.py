from datetime import timedelta

import pytest

from app import create_app
from models import db, User, Category, Course, Lecture, Enrollment, LectureProgress, Coupon
from utils.tokens import get_jwt_token
from utils.helpers import utcnow


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app):
    people = {
        "student": User(email="student@example.com", full_name="Sam Student", role="student"),
        "other_student": User(email="other@example.com", full_name="Olive Other", role="student"),
        "teacher": User(email="teacher@example.com", full_name="Tess Teacher", role="teacher"),
        "other_teacher": User(email="teacher2@example.com", full_name="Theo Teacher", role="teacher"),
        "admin": User(email="admin@example.com", full_name="Ada Admin", role="admin"),
    }
    db.session.add_all(people.values())
    db.session.commit()
    return people


def login(client, user):
    token = get_jwt_token({"user_id": user.id, "role": user.role})
    client.set_cookie("access_token", token)


@pytest.fixture
def as_user(client):
    def _login(user):
        login(client, user)
        return client
    return _login


def make_course(teacher, status="published", price=0, title="Python 101"):
    course = Course(title=title, description="Intro", teacher_id=teacher.id, status=status, price=price)
    db.session.add(course)
    db.session.commit()
    return course


def make_category(name="Programming"):
    category = Category(name=name)
    db.session.add(category)
    db.session.commit()
    return category


def make_lectures(course, count, published=True):
    lectures = []
    for i in range(count):
        lecture = Lecture(course_id=course.id, title=f"Lecture {i + 1}", content_type="video",
                          order_index=i + 1, duration=600, is_published=published)
        db.session.add(lecture)
        lectures.append(lecture)
    db.session.commit()
    return lectures


def enroll(user, course):
    now = utcnow()
    enrollment = Enrollment(user_id=user.id, course_id=course.id, progress=0,
                            enrolled_at=now, last_accessed_at=now)
    db.session.add(enrollment)
    db.session.commit()
    return enrollment


def complete(user, lecture, is_completed=True):
    row = LectureProgress(user_id=user.id, lecture_id=lecture.id, is_completed=is_completed, progress_seconds=600)
    db.session.add(row)
    db.session.commit()
    return row


def make_coupon(**overrides):
    now = utcnow()
    fields = {
        "code": "SAVE20",
        "name": "Save twenty",
        "discount_type": "percentage",
        "discount_value": 20,
        "minimum_amount": 0,
        "maximum_discount": None,
        "usage_limit": None,
        "valid_from": now - timedelta(days=1),
        "valid_until": now + timedelta(days=30),
        "is_active": True,
    }
    fields.update(overrides)
    coupon = Coupon(**fields)
    db.session.add(coupon)
    db.session.commit()
    return coupon
