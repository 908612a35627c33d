from classes.payment_manager import PaymentManager
from models import db, Course, Lecture, Enrollment, LectureProgress, Message

from conftest import make_category, make_course, make_lectures, enroll, complete


def test_teacher_creates_draft_course(as_user, users):
    response = as_user(users["teacher"]).post("/api/courses", json={
        "title": "<b>Data</b> Science", "description": "Numbers", "price": 250000,
    })

    assert response.status_code == 201
    course = db.session.get(Course, response.get_json()["course"]["id"])
    assert course.title == "Data Science"
    assert course.status == "draft"
    assert course.teacher_id == users["teacher"].id


def test_students_cannot_create_courses(as_user, users):
    response = as_user(users["student"]).post("/api/courses", json={"title": "Mine"})

    assert response.status_code == 403


def test_course_price_must_be_a_non_negative_integer(as_user, users):
    response = as_user(users["teacher"]).post("/api/courses", json={"title": "Bad", "price": -1})

    assert response.status_code == 400


def test_draft_course_hidden_from_students(as_user, users):
    course = make_course(users["teacher"], status="draft")

    assert as_user(users["student"]).get(f"/api/courses/{course.id}").status_code == 403
    assert as_user(users["teacher"]).get(f"/api/courses/{course.id}").status_code == 200


def test_only_owner_publishes_course(as_user, users):
    course = make_course(users["teacher"], status="draft")

    assert as_user(users["other_teacher"]).patch(f"/api/courses/{course.id}/publish").status_code == 403

    response = as_user(users["teacher"]).patch(f"/api/courses/{course.id}/publish")
    assert response.status_code == 200
    assert db.session.get(Course, course.id).status == "published"


def test_create_lecture_appends_in_order(as_user, users):
    course = make_course(users["teacher"])
    client = as_user(users["teacher"])

    client.post(f"/api/courses/{course.id}/lectures", json={"title": "One"})
    response = client.post(f"/api/courses/{course.id}/lectures", json={"title": "Two", "is_published": True})

    assert response.status_code == 201
    lectures = Lecture.query.filter_by(course_id=course.id).order_by(Lecture.order_index).all()
    assert [(l.title, l.order_index, l.is_published) for l in lectures] == [("One", 1, False), ("Two", 2, True)]


def test_student_sees_only_published_lectures(as_user, users):
    course = make_course(users["teacher"])
    make_lectures(course, 2)
    make_lectures(course, 1, published=False)
    enroll(users["student"], course)

    body = as_user(users["student"]).get(f"/api/courses/{course.id}/lectures").get_json()
    owner_body = as_user(users["teacher"]).get(f"/api/courses/{course.id}/lectures").get_json()

    assert len(body["lectures"]) == 2
    assert body["progress"] == 0
    assert len(owner_body["lectures"]) == 3


def test_unenrolled_student_cannot_list_lectures(as_user, users):
    course = make_course(users["teacher"])

    assert as_user(users["student"]).get(f"/api/courses/{course.id}/lectures").status_code == 403


def test_progress_report_updates_course_progress(as_user, users):
    student = users["student"]
    course = make_course(users["teacher"])
    lectures = make_lectures(course, 2)
    enroll(student, course)
    client = as_user(student)

    first = client.post(f"/api/lectures/{lectures[0].id}/progress", json={"is_completed": True, "progress_seconds": 600})
    assert first.status_code == 200
    assert first.get_json()["course_progress"] == 50
    assert first.get_json()["progress"]["is_completed"] is True

    second = client.post(f"/api/lectures/{lectures[1].id}/progress", json={"is_completed": True, "progress_seconds": 540})
    assert second.get_json()["course_progress"] == 100

    enrollment = Enrollment.query.filter_by(user_id=student.id, course_id=course.id).one()
    assert enrollment.progress == 100
    assert enrollment.completed_at is not None


def test_partial_progress_does_not_complete(as_user, users):
    student = users["student"]
    course = make_course(users["teacher"])
    lecture = make_lectures(course, 1)[0]
    enroll(student, course)

    response = as_user(student).post(f"/api/lectures/{lecture.id}/progress", json={"progress_seconds": 30})

    assert response.get_json()["course_progress"] == 0
    assert response.get_json()["progress"]["progress_seconds"] == 30


def test_progress_rejects_unpublished_lecture(as_user, users):
    course = make_course(users["teacher"])
    lecture = make_lectures(course, 1, published=False)[0]
    enroll(users["student"], course)

    response = as_user(users["student"]).post(f"/api/lectures/{lecture.id}/progress", json={"is_completed": True})

    assert response.status_code == 404
    assert response.get_json()["error"] == "Lecture not found or not published"


def test_progress_requires_enrollment(as_user, users):
    course = make_course(users["teacher"])
    lecture = make_lectures(course, 1)[0]

    response = as_user(users["student"]).post(f"/api/lectures/{lecture.id}/progress", json={"is_completed": True})

    assert response.status_code == 403


def test_progress_is_student_only(as_user, users):
    course = make_course(users["teacher"])
    lecture = make_lectures(course, 1)[0]

    response = as_user(users["teacher"]).post(f"/api/lectures/{lecture.id}/progress", json={"is_completed": True})

    assert response.status_code == 403


def test_progress_validates_payload(as_user, users):
    course = make_course(users["teacher"])
    lecture = make_lectures(course, 1)[0]
    enroll(users["student"], course)
    client = as_user(users["student"])

    assert client.post(f"/api/lectures/{lecture.id}/progress", json={"progress_seconds": -5}).status_code == 400
    assert client.post(f"/api/lectures/{lecture.id}/progress", json={"is_completed": "yes"}).status_code == 400


def test_unpublishing_a_lecture_is_reflected_on_next_report(as_user, users):
    student = users["student"]
    course = make_course(users["teacher"])
    lectures = make_lectures(course, 3)
    enroll(student, course)
    as_user(student).post(f"/api/lectures/{lectures[0].id}/progress", json={"is_completed": True})

    as_user(users["teacher"]).patch(f"/api/lectures/{lectures[2].id}/publish", json={"is_published": False})
    response = as_user(student).post(f"/api/lectures/{lectures[1].id}/progress", json={"progress_seconds": 10})

    assert response.get_json()["course_progress"] == 50


def test_create_lecture_rejects_non_boolean_publish_flag(as_user, users):
    course = make_course(users["teacher"])

    response = as_user(users["teacher"]).post(f"/api/courses/{course.id}/lectures",
                                              json={"title": "One", "is_published": "false"})

    assert response.status_code == 400
    assert Lecture.query.count() == 0


def test_publish_lecture_rejects_string_false(as_user, users):
    course = make_course(users["teacher"])
    lecture = make_lectures(course, 1, published=False)[0]

    response = as_user(users["teacher"]).patch(f"/api/lectures/{lecture.id}/publish", json={"is_published": "false"})

    assert response.status_code == 400
    assert db.session.get(Lecture, lecture.id).is_published is False


def test_publishing_a_lecture_recomputes_enrollments(as_user, users):
    student = users["student"]
    course = make_course(users["teacher"])
    lectures = make_lectures(course, 1)
    hidden = make_lectures(course, 1, published=False)[0]
    enroll(student, course)
    as_user(student).post(f"/api/lectures/{lectures[0].id}/progress", json={"is_completed": True})

    as_user(users["teacher"]).patch(f"/api/lectures/{hidden.id}/publish", json={"is_published": True})

    enrollment = Enrollment.query.filter_by(user_id=student.id, course_id=course.id).one()
    assert enrollment.progress == 50
    assert enrollment.completed_at is None

#__________________________________________________________________________________________ * Catalog *__________________________________________________

def test_catalog_lists_published_courses_with_filters(client, users):
    web = make_category("Web")
    data = make_category("Data")
    react = make_course(users["teacher"], title="React basics")
    react.category_id, react.level = web.id, "beginner"
    pandas = make_course(users["other_teacher"], title="Pandas")
    pandas.category_id, pandas.level = data.id, "advanced"
    make_course(users["teacher"], status="draft", title="Secret draft")
    db.session.commit()
    enroll(users["student"], react)

    everything = client.get("/api/courses").get_json()
    assert everything["total_items"] == 2
    assert {c["title"]: c["enrollment_count"] for c in everything["courses"]} == {"React basics": 1, "Pandas": 0}

    assert [c["title"] for c in client.get(f"/api/courses?category={data.id}").get_json()["courses"]] == ["Pandas"]
    assert [c["title"] for c in client.get("/api/courses?level=beginner").get_json()["courses"]] == ["React basics"]
    assert [c["title"] for c in client.get("/api/courses?search=panda").get_json()["courses"]] == ["Pandas"]
    by_teacher = client.get(f"/api/courses?teacher={users['teacher'].id}").get_json()["courses"]
    assert [c["title"] for c in by_teacher] == ["React basics"]


def test_catalog_paginates(client, users):
    for i in range(3):
        make_course(users["teacher"], title=f"Course {i}")

    body = client.get("/api/courses?page=2&limit=2").get_json()

    assert (body["results"], body["total_items"], body["total_pages"], body["current_page"]) == (1, 3, 2, 2)

#__________________________________________________________________________________________ * Course CRUD *__________________________________________________

def test_owner_updates_course(as_user, users):
    category = make_category()
    course = make_course(users["teacher"])

    response = as_user(users["teacher"]).patch(f"/api/courses/{course.id}", json={
        "title": "Python 201", "price": 150000, "level": "intermediate", "category_id": category.id,
    })

    assert response.status_code == 200
    course = db.session.get(Course, course.id)
    assert (course.title, course.price, course.level, course.category_id) == (
        "Python 201", 150000, "intermediate", category.id)


def test_course_update_validates_fields(as_user, users):
    course = make_course(users["teacher"])
    client = as_user(users["teacher"])

    assert client.patch(f"/api/courses/{course.id}", json={"level": "expert"}).status_code == 400
    assert client.patch(f"/api/courses/{course.id}", json={"category_id": 999}).status_code == 400
    assert client.patch(f"/api/courses/{course.id}", json={"price": "free"}).status_code == 400
    assert client.patch(f"/api/courses/{course.id}", json={"title": "  "}).status_code == 400


def test_other_teacher_cannot_update_or_delete_course(as_user, users):
    course = make_course(users["teacher"])
    client = as_user(users["other_teacher"])

    assert client.patch(f"/api/courses/{course.id}", json={"title": "Mine"}).status_code == 403
    assert client.delete(f"/api/courses/{course.id}").status_code == 403


def test_delete_course_removes_its_lectures_and_enrollments(as_user, users):
    student = users["student"]
    course = make_course(users["teacher"])
    lectures = make_lectures(course, 2)
    enroll(student, course)
    complete(student, lectures[0])
    db.session.add(Message(sender_id=student.id, recipient_id=users["teacher"].id, course_id=course.id,
                           subject="Hi", content="Question"))
    db.session.commit()

    response = as_user(users["teacher"]).delete(f"/api/courses/{course.id}")

    assert response.status_code == 200
    assert db.session.get(Course, course.id) is None
    assert Lecture.query.count() == 0
    assert Enrollment.query.count() == 0
    assert LectureProgress.query.count() == 0
    assert Message.query.one().course_id is None


def test_course_with_payments_cannot_be_deleted(as_user, users):
    course = make_course(users["teacher"], price=100000)
    PaymentManager.create_payment(users["student"].id, course.id)

    response = as_user(users["admin"]).delete(f"/api/courses/{course.id}")

    assert response.status_code == 400
    assert db.session.get(Course, course.id) is not None

#__________________________________________________________________________________________ * Lecture CRUD *__________________________________________________

def test_enrolled_student_gets_published_lecture_with_progress(as_user, users):
    student = users["student"]
    course = make_course(users["teacher"])
    lecture = make_lectures(course, 1)[0]
    enroll(student, course)
    complete(student, lecture)

    response = as_user(student).get(f"/api/lectures/{lecture.id}")

    assert response.status_code == 200
    assert response.get_json()["lecture"]["is_completed"] is True


def test_lecture_access_rules(as_user, users):
    course = make_course(users["teacher"])
    hidden = make_lectures(course, 1, published=False)[0]

    assert as_user(users["student"]).get(f"/api/lectures/{hidden.id}").status_code == 403
    enroll(users["student"], course)
    response = as_user(users["student"]).get(f"/api/lectures/{hidden.id}")
    assert response.status_code == 403
    assert response.get_json()["error"] == "This lecture is not yet published"
    assert as_user(users["other_teacher"]).get(f"/api/lectures/{hidden.id}").status_code == 403
    assert as_user(users["teacher"]).get(f"/api/lectures/{hidden.id}").status_code == 200
    assert as_user(users["teacher"]).get("/api/lectures/9999").status_code == 404


def test_owner_updates_lecture(as_user, users):
    course = make_course(users["teacher"])
    lecture = make_lectures(course, 1)[0]
    client = as_user(users["teacher"])

    response = client.patch(f"/api/lectures/{lecture.id}", json={"title": "Renamed", "duration": 900,
                                                                  "content_type": "document"})
    assert response.status_code == 200
    lecture = db.session.get(Lecture, lecture.id)
    assert (lecture.title, lecture.duration, lecture.content_type) == ("Renamed", 900, "document")

    assert client.patch(f"/api/lectures/{lecture.id}", json={"content_type": "podcast"}).status_code == 400
    assert as_user(users["other_teacher"]).patch(f"/api/lectures/{lecture.id}",
                                                 json={"title": "Mine"}).status_code == 403


def test_deleting_a_lecture_recomputes_enrollments(as_user, users):
    student = users["student"]
    course = make_course(users["teacher"])
    lectures = make_lectures(course, 2)
    enroll(student, course)
    as_user(student).post(f"/api/lectures/{lectures[0].id}/progress", json={"is_completed": True})

    response = as_user(users["teacher"]).delete(f"/api/lectures/{lectures[1].id}")

    assert response.status_code == 200
    assert db.session.get(Lecture, lectures[1].id) is None
    enrollment = Enrollment.query.filter_by(user_id=student.id, course_id=course.id).one()
    assert enrollment.progress == 100
    assert enrollment.completed_at is not None
