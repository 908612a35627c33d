from flask import Blueprint, jsonify, g, request
from sqlalchemy import or_
from utils.utils import login_required
from utils.helpers import get_pagination, paginate, utcnow
from classes.validators import clean_text, validate_length

from models import db
from models.users import User
from models.courses import Course
from models.messages import Message

# Messages' blueprint
message_bp = Blueprint("messages", __name__)


@message_bp.route("", methods=["POST"])
@login_required
def send_message():
    data = request.get_json(silent=True) or {}
    recipient_id = data.get("recipient_id")
    course_id = data.get("course_id")
    subject = clean_text(data.get("subject"))
    content = clean_text(data.get("content"))

    if not subject or not content:
        return jsonify({"error": "Subject and content are required"}), 400
    try:
        validate_length("Subject", subject, 255)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if isinstance(recipient_id, bool) or not isinstance(recipient_id, int) or not db.session.get(User, recipient_id):
        return jsonify({"error": "Recipient not found"}), 404
    if course_id is not None and (not isinstance(course_id, int) or not db.session.get(Course, course_id)):
        return jsonify({"error": "Course not found"}), 404

    message = Message(
        sender_id=g.user.get("user_id"),
        recipient_id=recipient_id,
        course_id=course_id,
        subject=subject,
        content=content,
    )
    db.session.add(message)
    db.session.commit()

    return jsonify({"message": "Message sent successfully", "data": message.to_dict()}), 201


@message_bp.route("", methods=["GET"])
@login_required
def get_messages():
    user_id = g.user.get("user_id")
    page, limit = get_pagination()
    box = request.args.get("type", "all")

    if box == "sent":
        query = Message.query.filter(Message.sender_id == user_id)
    elif box == "received":
        query = Message.query.filter(Message.recipient_id == user_id)
    else:
        query = Message.query.filter(or_(Message.sender_id == user_id, Message.recipient_id == user_id))

    messages, meta = paginate(query.order_by(Message.created_at.desc(), Message.id.desc()), page, limit)
    return jsonify({
        **meta,
        "messages": [{
            **message.to_dict(),
            "sender_name": message.sender.full_name,
            "recipient_name": message.recipient.full_name,
            "course_title": message.course.title if message.course else None,
        } for message in messages],
    }), 200


@message_bp.route("/<int:message_id>/read", methods=["PATCH"])
@login_required
def mark_as_read(message_id):
    message = db.session.get(Message, message_id)
    if not message:
        return jsonify({"error": "Message not found"}), 404

    if message.recipient_id != g.user.get("user_id"):
        return jsonify({"error": "You can only mark your own messages as read"}), 403

    if message.read_at is None:
        message.read_at = utcnow()
        db.session.commit()

    return jsonify({"message": "Message marked as read", "data": message.to_dict()}), 200
