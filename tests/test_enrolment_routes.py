from models import db, Enrollment, LectureProgress

from conftest import make_course, make_lectures, enroll, complete


def test_requires_authentication(client, users):
    course = make_course(users["teacher"])

    response = client.post(f"/api/enrollments/{course.id}")

    assert response.status_code == 401
    assert response.get_json() == {"error": "Authentication required"}


def test_rejects_a_bad_token(client, users):
    client.set_cookie("access_token", "not-a-jwt")

    assert client.get("/api/enrollments").status_code == 401


def test_student_enrolls_in_free_published_course(as_user, users):
    course = make_course(users["teacher"])
    client = as_user(users["student"])

    response = client.post(f"/api/enrollments/{course.id}")

    assert response.status_code == 201
    body = response.get_json()["enrollment"]
    assert body["progress"] == 0
    assert body["status"] == "not_started"
    assert Enrollment.query.filter_by(user_id=users["student"].id).count() == 1


def test_duplicate_enrollment_is_rejected(as_user, users):
    course = make_course(users["teacher"])
    client = as_user(users["student"])
    client.post(f"/api/enrollments/{course.id}")

    response = client.post(f"/api/enrollments/{course.id}")

    assert response.status_code == 400
    assert response.get_json()["error"] == "You are already enrolled in this course"


def test_draft_course_cannot_be_enrolled(as_user, users):
    course = make_course(users["teacher"], status="draft")

    response = as_user(users["student"]).post(f"/api/enrollments/{course.id}")

    assert response.status_code == 404


def test_paid_course_requires_payment(as_user, users):
    course = make_course(users["teacher"], price=500000)

    response = as_user(users["student"]).post(f"/api/enrollments/{course.id}")

    assert response.status_code == 402
    assert Enrollment.query.count() == 0


def test_only_students_enroll(as_user, users):
    course = make_course(users["teacher"])

    response = as_user(users["teacher"]).post(f"/api/enrollments/{course.id}")

    assert response.status_code == 403


def test_list_my_enrollments_filters_by_status(as_user, users):
    student = users["student"]
    first = make_course(users["teacher"], title="Done")
    second = make_course(users["teacher"], title="Fresh")
    lecture = make_lectures(first, 1)[0]
    enroll(student, first)
    enroll(student, second)
    client = as_user(student)
    client.post(f"/api/lectures/{lecture.id}/progress", json={"is_completed": True, "progress_seconds": 600})

    everything = client.get("/api/enrollments").get_json()
    completed = client.get("/api/enrollments?status=completed").get_json()
    not_started = client.get("/api/enrollments?status=not_started").get_json()

    assert everything["total_items"] == 2
    assert [e["course_title"] for e in completed["enrollments"]] == ["Done"]
    assert [e["course_title"] for e in not_started["enrollments"]] == ["Fresh"]


def test_enrollment_details_visibility(as_user, users):
    course = make_course(users["teacher"])
    lectures = make_lectures(course, 2)
    enrollment = enroll(users["student"], course)
    complete(users["student"], lectures[0])
    url = f"/api/enrollments/details/{enrollment.id}"

    own = as_user(users["student"]).get(url)
    assert own.status_code == 200
    assert [p["is_completed"] for p in own.get_json()["enrollment"]["lecture_progress"]] == [True, False]

    assert as_user(users["other_student"]).get(url).status_code == 403
    assert as_user(users["teacher"]).get(url).status_code == 200
    assert as_user(users["other_teacher"]).get(url).status_code == 403
    assert as_user(users["admin"]).get(url).status_code == 200


def test_course_enrollments_for_owner_only(as_user, users):
    course = make_course(users["teacher"])
    enroll(users["student"], course)
    url = f"/api/enrollments/course/{course.id}"

    response = as_user(users["teacher"]).get(url)
    assert response.status_code == 200
    assert response.get_json()["enrollments"][0]["email"] == "student@example.com"

    assert as_user(users["other_teacher"]).get(url).status_code == 403
    assert as_user(users["student"]).get(url).status_code == 403


def test_unenroll_removes_lecture_progress(as_user, users):
    student = users["student"]
    course = make_course(users["teacher"])
    lectures = make_lectures(course, 2)
    enrollment = enroll(student, course)
    complete(student, lectures[0])
    enrollment_id = enrollment.id

    assert as_user(users["other_student"]).delete(f"/api/enrollments/details/{enrollment_id}").status_code == 403

    response = as_user(student).delete(f"/api/enrollments/details/{enrollment_id}")

    assert response.status_code == 200
    assert db.session.get(Enrollment, enrollment_id) is None
    assert LectureProgress.query.filter_by(user_id=student.id).count() == 0


def test_enrollment_stats_scoped_to_teacher(as_user, users):
    mine = make_course(users["teacher"])
    theirs = make_course(users["other_teacher"])
    lecture = make_lectures(mine, 1)[0]
    enroll(users["student"], mine)
    enroll(users["other_student"], mine)
    enroll(users["student"], theirs)
    as_user(users["student"]).post(f"/api/lectures/{lecture.id}/progress", json={"is_completed": True})

    body = as_user(users["teacher"]).get("/api/enrollments/stats").get_json()

    assert body["stats"]["total_enrollments"] == 2
    assert body["stats"]["completed_enrollments"] == 1
    assert body["stats"]["not_started_enrollments"] == 1
    assert body["stats"]["average_progress"] == 50.0
    assert sum(day["enrollments"] for day in body["trends"]) == 2

    admin_stats = as_user(users["admin"]).get("/api/enrollments/stats").get_json()
    assert admin_stats["stats"]["total_enrollments"] == 3
