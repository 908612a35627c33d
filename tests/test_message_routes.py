from models import db, Message

from conftest import make_course


def send(client, recipient, **overrides):
    payload = {"recipient_id": recipient.id, "subject": "Hello", "content": "About the course"}
    payload.update(overrides)
    return client.post("/api/messages", json=payload)


def test_send_message(as_user, users):
    course = make_course(users["teacher"])

    response = send(as_user(users["student"]), users["teacher"], course_id=course.id,
                    content="<b>When</b> is the quiz?")

    assert response.status_code == 201
    message = Message.query.one()
    assert (message.sender_id, message.recipient_id, message.course_id) == (
        users["student"].id, users["teacher"].id, course.id)
    assert message.content == "When is the quiz?"
    assert message.read_at is None


def test_send_message_validation(as_user, users):
    client = as_user(users["student"])

    assert send(client, users["teacher"], subject="").status_code == 400
    assert client.post("/api/messages", json={"recipient_id": 999, "subject": "Hi", "content": "?"}).status_code == 404
    assert send(client, users["teacher"], course_id=999).status_code == 404
    assert Message.query.count() == 0


def test_inbox_filters_by_direction(as_user, users):
    student, teacher = users["student"], users["teacher"]
    send(as_user(student), teacher, subject="Question")
    send(as_user(teacher), student, subject="Answer")
    send(as_user(users["other_student"]), teacher, subject="Unrelated")
    client = as_user(student)

    everything = client.get("/api/messages").get_json()
    sent = client.get("/api/messages?type=sent").get_json()
    received = client.get("/api/messages?type=received").get_json()

    assert everything["total_items"] == 2
    assert [m["subject"] for m in sent["messages"]] == ["Question"]
    assert [m["subject"] for m in received["messages"]] == ["Answer"]
    assert received["messages"][0]["sender_name"] == teacher.full_name


def test_only_recipient_marks_message_read(as_user, users):
    send(as_user(users["student"]), users["teacher"])
    message_id = Message.query.one().id

    assert as_user(users["student"]).patch(f"/api/messages/{message_id}/read").status_code == 403
    response = as_user(users["teacher"]).patch(f"/api/messages/{message_id}/read")

    assert response.status_code == 200
    assert db.session.get(Message, message_id).read_at is not None
    assert as_user(users["teacher"]).patch("/api/messages/999/read").status_code == 404
