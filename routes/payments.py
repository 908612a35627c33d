from flask import Blueprint, jsonify, g, request
from utils.utils import login_required, roles_required
from utils.helpers import get_pagination, paginate
from classes.payment_manager import PaymentManager
from classes.errors import CouponRejected, PaymentError

from models import db
from models.payments import Payment

# Payments' blueprint
payment_bp = Blueprint("payments", __name__)


#Create a pending payment for a course
@payment_bp.route("", methods=["POST"])
@login_required
@roles_required("student")
def create_payment():
    data = request.get_json(silent=True) or {}
    course_id = data.get("course_id")
    coupon_code = data.get("coupon_code")

    if not isinstance(course_id, int):
        return jsonify({"error": "Course ID is required"}), 400

    try:
        payment = PaymentManager.create_payment(g.user.get("user_id"), course_id, coupon_code=coupon_code)
    except CouponRejected as e:
        return jsonify(e.to_dict()), 400
    except PaymentError as e:
        return jsonify({"error": e.message}), e.status_code

    return jsonify({"payment": payment.to_dict()}), 201


#Fetch the caller's payments
@payment_bp.route("", methods=["GET"])
@login_required
def get_my_payments():
    page, limit = get_pagination()
    query = Payment.query.filter_by(user_id=g.user.get("user_id")).order_by(Payment.created_at.desc(), Payment.id.desc())
    payments, meta = paginate(query, page, limit)
    return jsonify({**meta, "payments": [p.to_dict() for p in payments]}), 200


@payment_bp.route("/<int:payment_id>", methods=["GET"])
@login_required
def get_payment(payment_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        return jsonify({"error": "Payment not found"}), 404

    if g.user.get("role") != "admin" and payment.user_id != g.user.get("user_id"):
        return jsonify({"error": "You do not have permission to view this payment"}), 403

    return jsonify({"payment": payment.to_dict()}), 200


#Confirm a payment (called once the gateway reports success)
@payment_bp.route("/<int:payment_id>/complete", methods=["POST"])
@login_required
@roles_required("admin")
def complete_payment(payment_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        return jsonify({"error": "Payment not found"}), 404

    data = request.get_json(silent=True) or {}

    try:
        payment = PaymentManager.complete_payment(payment, transaction_id=data.get("transaction_id"))
    except CouponRejected as e:
        return jsonify({**e.to_dict(), "payment_status": payment.payment_status}), 409
    except PaymentError as e:
        return jsonify({"error": e.message}), e.status_code

    return jsonify({
        "payment": payment.to_dict(),
        "enrollment_created": payment.payment_status == "completed",
    }), 200


#Mark a pending payment failed (admin) or cancelled (owner or admin)
@payment_bp.route("/<int:payment_id>/cancel", methods=["POST"])
@login_required
def cancel_payment(payment_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        return jsonify({"error": "Payment not found"}), 404

    data = request.get_json(silent=True) or {}
    status = data.get("status", "cancelled")
    is_admin = g.user.get("role") == "admin"

    if not is_admin and (payment.user_id != g.user.get("user_id") or status != "cancelled"):
        return jsonify({"error": "You do not have permission to update this payment"}), 403

    try:
        payment = PaymentManager.fail_payment(payment, status=status)
    except PaymentError as e:
        return jsonify({"error": e.message}), e.status_code

    return jsonify({"payment": payment.to_dict()}), 200
