import logging
from datetime import timedelta

from flask import Blueprint, jsonify, g, request
from sqlalchemy import func, or_
from utils.utils import login_required, roles_required
from utils.helpers import get_pagination, paginate, utcnow, format_datetime
from classes.discount_calculator import DiscountCalculator
from classes.errors import CouponRejected
from classes.validators import (
    clean_text, validate_amount, validate_date_range, validate_discount,
    validate_bool, validate_length, validate_non_negative_int
)

from models import db
from models.users import User
from models.courses import Course
from models.coupons import Coupon
from models.coupon_usage import CouponUsage
from models.payments import Payment

logger = logging.getLogger(__name__)

# Coupons' blueprint
coupon_bp = Blueprint("coupons", __name__)

SORTABLE_FIELDS = {
    "code": Coupon.code,
    "name": Coupon.name,
    "created_at": Coupon.created_at,
    "valid_from": Coupon.valid_from,
    "valid_until": Coupon.valid_until,
    "used_count": Coupon.used_count,
}


def filter_by_status(query, status, now):
    if status == "active":
        return query.filter(Coupon.is_active.is_(True), Coupon.valid_until > now)
    if status == "expired":
        return query.filter(Coupon.valid_until <= now)
    if status == "inactive":
        return query.filter(Coupon.is_active.is_(False))
    if status == "upcoming":
        return query.filter(Coupon.valid_from > now, Coupon.is_active.is_(True))
    return query

#__________________________________________________________________________________________ * Validate *__________________________________________________

@coupon_bp.route("/validate", methods=["POST"])
@login_required
def validate_coupon():
    data = request.get_json(silent=True) or {}
    code = data.get("code")
    amount = data.get("amount")

    if not code or not amount:
        return jsonify({"error": "Coupon code and amount are required"}), 400

    try:
        validate_amount(amount)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    try:
        quote = DiscountCalculator.validate(code, g.user.get("user_id"), amount)
    except CouponRejected as e:
        return jsonify(e.to_dict()), 400

    return jsonify(quote.to_dict()), 200

#__________________________________________________________________________________________ * Admin *__________________________________________________

@coupon_bp.route("", methods=["POST"])
@login_required
@roles_required("admin")
def create_coupon():
    data = request.get_json(silent=True) or {}
    code = (data.get("code") or "").strip()
    name = clean_text(data.get("name"))
    discount_type = data.get("discount_type")
    discount_value = data.get("discount_value")
    minimum_amount = data.get("minimum_amount", 0)
    maximum_discount = data.get("maximum_discount")
    usage_limit = data.get("usage_limit")

    if not code or not name:
        return jsonify({"error": "Code and name are required"}), 400

    try:
        validate_length("Code", code, 50)
        validate_length("Name", name, 100)
        validate_discount(discount_type, discount_value)
        validate_non_negative_int("Minimum amount", minimum_amount)
        validate_non_negative_int("Maximum discount", maximum_discount, required=False)
        validate_non_negative_int("Usage limit", usage_limit, required=False)
        valid_from, valid_until = validate_date_range(data.get("valid_from"), data.get("valid_until"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    start_of_today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    if valid_from < start_of_today:
        return jsonify({"error": "Valid from date cannot be in the past"}), 400

    if Coupon.query.filter(func.upper(Coupon.code) == code.upper()).first():
        return jsonify({"error": "Coupon code already exists"}), 400

    coupon = Coupon(
        code=code.upper(),
        name=name,
        description=clean_text(data.get("description")),
        discount_type=discount_type,
        discount_value=discount_value,
        minimum_amount=minimum_amount,
        maximum_discount=maximum_discount if discount_type == "percentage" else None,
        usage_limit=usage_limit,
        valid_from=valid_from,
        valid_until=valid_until,
        created_by=g.user.get("user_id"),
    )
    db.session.add(coupon)
    db.session.commit()

    logger.info("Coupon created: id=%s code=%s by=%s", coupon.id, coupon.code, g.user.get("user_id"))

    return jsonify({"coupon": coupon.to_dict()}), 201


@coupon_bp.route("", methods=["GET"])
@login_required
@roles_required("admin")
def get_coupons():
    now = utcnow()
    page, limit = get_pagination()
    status = request.args.get("status")
    search = request.args.get("search")
    sort_by = request.args.get("sort_by", "created_at")
    sort_order = request.args.get("sort_order", "desc")

    query = filter_by_status(Coupon.query, status, now)

    if search:
        pattern = f"%{search.upper()}%"
        query = query.filter(or_(func.upper(Coupon.code).like(pattern), func.upper(Coupon.name).like(pattern)))

    sort_column = SORTABLE_FIELDS.get(sort_by, Coupon.created_at)
    query = query.order_by(sort_column.asc() if sort_order == "asc" else sort_column.desc(), Coupon.id.desc())

    coupons, meta = paginate(query, page, limit)
    return jsonify({**meta, "coupons": [c.to_dict(now) for c in coupons]}), 200


@coupon_bp.route("/stats", methods=["GET"])
@login_required
@roles_required("admin")
def get_coupon_stats():
    now = utcnow()
    period_days = request.args.get("period", 30, type=int) or 30

    summary = {
        "total_coupons": Coupon.query.count(),
        "active_coupons": Coupon.query.filter(
            Coupon.is_active.is_(True), Coupon.valid_until > now, Coupon.valid_from <= now
        ).count(),
        "expired_coupons": filter_by_status(Coupon.query, "expired", now).count(),
        "upcoming_coupons": filter_by_status(Coupon.query, "upcoming", now).count(),
        "inactive_coupons": filter_by_status(Coupon.query, "inactive", now).count(),
        "total_usage": CouponUsage.query.count(),
        "total_discount_given": db.session.query(func.coalesce(func.sum(CouponUsage.discount_amount), 0)).scalar(),
        "average_discount": round(float(
            db.session.query(func.coalesce(func.avg(CouponUsage.discount_amount), 0)).scalar()
        ), 2),
        "unique_users": db.session.query(func.count(func.distinct(CouponUsage.user_id))).scalar(),
    }

    usage_count = func.count(CouponUsage.id)
    top = db.session.query(
        Coupon, usage_count, func.coalesce(func.sum(CouponUsage.discount_amount), 0),
        func.count(func.distinct(CouponUsage.user_id))
    ).outerjoin(CouponUsage, CouponUsage.coupon_id == Coupon.id).group_by(Coupon.id).order_by(
        usage_count.desc(), Coupon.id
    ).limit(10).all()

    day = func.date(CouponUsage.used_at)
    trends = db.session.query(
        day, func.count(CouponUsage.id), func.sum(CouponUsage.discount_amount),
        func.count(func.distinct(CouponUsage.user_id))
    ).filter(CouponUsage.used_at >= now - timedelta(days=period_days)).group_by(day).order_by(day).all()

    distribution = db.session.query(
        Coupon.discount_type, func.count(func.distinct(Coupon.id)), func.count(CouponUsage.id),
        func.coalesce(func.sum(CouponUsage.discount_amount), 0)
    ).outerjoin(CouponUsage, CouponUsage.coupon_id == Coupon.id).group_by(Coupon.discount_type).all()

    return jsonify({
        "summary": summary,
        "top_coupons": [{
            "coupon_id": c.id,
            "code": c.code,
            "name": c.name,
            "discount_type": c.discount_type,
            "discount_value": c.discount_value,
            "usage_count": used,
            "total_discount": total,
            "unique_users": users,
            "conversion_rate": round(used * 100 / c.usage_limit, 2) if c.usage_limit else None,
        } for c, used, total, users in top],
        "trends": [{
            "date": str(date), "usage_count": count, "discount_amount": amount or 0, "unique_users": users
        } for date, count, amount, users in trends],
        "type_distribution": [{
            "type": discount_type, "coupon_count": coupons, "total_usage": usage, "total_discount": total
        } for discount_type, coupons, usage, total in distribution],
        "period": f"{period_days} days",
    }), 200


@coupon_bp.route("/bulk-update", methods=["PATCH"])
@login_required
@roles_required("admin")
def bulk_update_coupons():
    data = request.get_json(silent=True) or {}
    coupon_ids = data.get("coupon_ids")
    action = data.get("action")

    if not coupon_ids or not isinstance(coupon_ids, list):
        return jsonify({"error": "Coupon IDs array is required"}), 400
    if action not in ("activate", "deactivate", "delete"):
        return jsonify({"error": "Invalid action. Must be activate, deactivate, or delete"}), 400

    query = Coupon.query.filter(Coupon.id.in_(coupon_ids))

    if action == "delete":
        used = db.session.query(CouponUsage.coupon_id).filter(
            CouponUsage.coupon_id.in_(coupon_ids)
        ).group_by(CouponUsage.coupon_id).all()
        if used:
            used_ids = ", ".join(str(row[0]) for row in used)
            return jsonify({"error": f"Cannot delete coupons that have been used: {used_ids}"}), 400
        Payment.query.filter(Payment.coupon_id.in_(coupon_ids)).update(
            {Payment.coupon_id: None}, synchronize_session=False
        )
        affected = query.delete(synchronize_session=False)
    else:
        affected = query.update({Coupon.is_active: action == "activate"}, synchronize_session=False)

    db.session.commit()
    logger.info("Bulk coupon update: action=%s ids=%s affected=%s by=%s",
                action, coupon_ids, affected, g.user.get("user_id"))

    return jsonify({"message": f"Coupons {action}d successfully", "affected_count": affected}), 200


@coupon_bp.route("/<int:coupon_id>", methods=["GET"])
@login_required
@roles_required("admin")
def get_coupon(coupon_id):
    now = utcnow()
    coupon = db.session.get(Coupon, coupon_id)
    if not coupon:
        return jsonify({"error": "Coupon not found"}), 404

    total_used, total_discount, unique_users, avg_discount, last_used = db.session.query(
        func.count(CouponUsage.id),
        func.coalesce(func.sum(CouponUsage.discount_amount), 0),
        func.count(func.distinct(CouponUsage.user_id)),
        func.coalesce(func.avg(CouponUsage.discount_amount), 0),
        func.max(CouponUsage.used_at),
    ).filter(CouponUsage.coupon_id == coupon_id).one()

    day = func.date(CouponUsage.used_at)
    trend = db.session.query(day, func.count(CouponUsage.id), func.sum(CouponUsage.discount_amount)).filter(
        CouponUsage.coupon_id == coupon_id,
        CouponUsage.used_at >= now - timedelta(days=30)
    ).group_by(day).order_by(day).all()

    return jsonify({
        "coupon": {
            **coupon.to_dict(now),
            "usage_stats": {
                "total_used": total_used,
                "total_discount_given": total_discount,
                "unique_users": unique_users,
                "average_discount": round(float(avg_discount), 2),
                "last_used": format_datetime(last_used),
                "usage_rate": round(total_used * 100 / coupon.usage_limit) if coupon.usage_limit else None,
            },
            "usage_trend": [
                {"date": str(date), "usage_count": count, "discount_amount": amount or 0}
                for date, count, amount in trend
            ],
        }
    }), 200


@coupon_bp.route("/<int:coupon_id>", methods=["PATCH"])
@login_required
@roles_required("admin")
def update_coupon(coupon_id):
    coupon = db.session.get(Coupon, coupon_id)
    if not coupon:
        return jsonify({"error": "Coupon not found"}), 404

    data = request.get_json(silent=True) or {}
    discount_type = data.get("discount_type", coupon.discount_type)
    discount_value = data.get("discount_value", coupon.discount_value)

    if coupon.used_count > 0:
        if discount_type != coupon.discount_type:
            return jsonify({"error": "Cannot change discount type for a coupon that has been used"}), 400
        if discount_value != coupon.discount_value:
            return jsonify({"error": "Cannot change discount value for a coupon that has been used"}), 400

    try:
        validate_discount(discount_type, discount_value)
        valid_from, valid_until = validate_date_range(
            data.get("valid_from", coupon.valid_from), data.get("valid_until", coupon.valid_until)
        )
        for field in ("minimum_amount", "maximum_discount", "usage_limit"):
            if field in data:
                validate_non_negative_int(field.replace("_", " ").capitalize(), data[field], required=False)
        if "is_active" in data:
            validate_bool("is_active", data["is_active"])
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    usage_limit = data.get("usage_limit", coupon.usage_limit)
    if usage_limit is not None and usage_limit < coupon.used_count:
        return jsonify({"error": "Usage limit cannot be lower than the number of uses so far"}), 400

    if "name" in data:
        name = clean_text(data["name"])
        if not name:
            return jsonify({"error": "Name cannot be empty"}), 400
        coupon.name = name
    if "description" in data:
        coupon.description = clean_text(data["description"])
    if "is_active" in data:
        coupon.is_active = data["is_active"]

    coupon.discount_type = discount_type
    coupon.discount_value = discount_value
    coupon.minimum_amount = data.get("minimum_amount", coupon.minimum_amount) or 0
    coupon.maximum_discount = data.get("maximum_discount", coupon.maximum_discount) if discount_type == "percentage" else None
    coupon.usage_limit = usage_limit
    coupon.valid_from = valid_from
    coupon.valid_until = valid_until
    db.session.commit()

    logger.info("Coupon updated: id=%s by=%s fields=%s", coupon_id, g.user.get("user_id"), sorted(data))

    return jsonify({"coupon": coupon.to_dict()}), 200


@coupon_bp.route("/<int:coupon_id>", methods=["DELETE"])
@login_required
@roles_required("admin")
def delete_coupon(coupon_id):
    coupon = db.session.get(Coupon, coupon_id)
    if not coupon:
        return jsonify({"error": "Coupon not found"}), 404

    force = request.args.get("force") == "true"
    usage_count = CouponUsage.query.filter_by(coupon_id=coupon_id).count()

    if usage_count > 0 and not force:
        coupon.is_active = False
        db.session.commit()
        logger.info("Coupon deactivated (soft delete): id=%s code=%s uses=%s", coupon_id, coupon.code, usage_count)
        return jsonify({"message": "Coupon has been deactivated due to existing usage history"}), 200

    code = coupon.code
    Payment.query.filter_by(coupon_id=coupon_id).update({Payment.coupon_id: None}, synchronize_session=False)
    db.session.delete(coupon)
    db.session.commit()
    logger.info("Coupon deleted permanently: id=%s code=%s forced=%s", coupon_id, code, force)

    return jsonify({"message": "Coupon deleted"}), 200


@coupon_bp.route("/<int:coupon_id>/usage", methods=["GET"])
@login_required
@roles_required("admin")
def get_coupon_usage(coupon_id):
    if not db.session.get(Coupon, coupon_id):
        return jsonify({"error": "Coupon not found"}), 404

    page, limit = get_pagination()
    sort_columns = {
        "used_at": CouponUsage.used_at,
        "discount_amount": CouponUsage.discount_amount,
        "full_name": User.full_name,
        "payment_amount": Payment.amount,
    }
    sort_column = sort_columns.get(request.args.get("sort_by"), CouponUsage.used_at)
    direction = sort_column.asc() if request.args.get("sort_order") == "asc" else sort_column.desc()

    query = db.session.query(CouponUsage, User, Payment, Course).join(
        User, CouponUsage.user_id == User.id
    ).outerjoin(
        Payment, CouponUsage.payment_id == Payment.id
    ).outerjoin(
        Course, Payment.course_id == Course.id
    ).filter(CouponUsage.coupon_id == coupon_id).order_by(direction, CouponUsage.id.desc())

    rows, meta = paginate(query, page, limit)
    usage = [{
        **u.to_dict(),
        "full_name": user.full_name,
        "email": user.email,
        "order_id": payment.order_id if payment else None,
        "payment_amount": payment.amount if payment else None,
        "payment_status": payment.payment_status if payment else None,
        "course_title": course.title if course else None,
    } for u, user, payment, course in rows]

    return jsonify({**meta, "usage": usage}), 200
