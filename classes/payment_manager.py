import logging
import uuid

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models import Course
from models import Enrollment
from models import Payment
from classes.discount_calculator import DiscountCalculator
from classes.enrolment_manager import EnrollmentManager
from classes.errors import EnrollmentError, PaymentError
from utils.helpers import utcnow

logger = logging.getLogger(__name__)


class PaymentManager:
    @staticmethod
    def create_payment(user_id, course_id, coupon_code=None, now=None):
        """Open a pending payment for a course, optionally priced with a coupon.

        The coupon is only previewed here; it is redeemed when the payment completes.
        Raises PaymentError, or CouponRejected for a coupon that does not apply.
        """
        now = now or utcnow()

        course = Course.query.filter_by(id=course_id, status="published").first()
        if not course:
            raise PaymentError("Course not found or not available for purchase", 404)

        if not course.price or course.price <= 0:
            raise PaymentError("This course is free, enroll directly")

        if Enrollment.query.filter_by(user_id=user_id, course_id=course_id).first():
            raise PaymentError("You are already enrolled in this course")

        pending = Payment.query.filter_by(user_id=user_id, course_id=course_id, payment_status="pending").first()
        if pending:
            raise PaymentError("There is already a pending payment for this course")

        discount, final_amount, coupon_id = 0, course.price, None
        if coupon_code:
            quote = DiscountCalculator.validate(coupon_code, user_id, course.price, now=now)
            discount, final_amount, coupon_id = quote.discount_amount, quote.final_amount, quote.coupon.id

        payment = Payment(
            user_id=user_id,
            course_id=course_id,
            order_id=f"ORDER_{now:%Y%m%d%H%M%S}_{uuid.uuid4().hex[:8].upper()}",
            original_amount=course.price,
            discount_amount=discount,
            amount=final_amount,
            currency=current_app.config.get("CURRENCY", "VND"),
            coupon_id=coupon_id,
            payment_status="pending",
        )
        db.session.add(payment)
        db.session.commit()

        logger.info("Payment created: payment=%s order=%s course=%s user=%s amount=%s",
                    payment.id, payment.order_id, course_id, user_id, final_amount)
        return payment

    @staticmethod
    def complete_payment(payment, transaction_id=None, now=None):
        """Confirm a pending payment.

        An attached coupon is redeemed first, at the discount quoted at checkout;
        a RedemptionError propagates and leaves the payment pending. Enrollment failure after a successful charge
        marks the payment completed_enrollment_failed.
        """
        now = now or utcnow()

        if payment.payment_status != "pending":
            raise PaymentError(f"Payment is already {payment.payment_status}")

        if payment.coupon_id:
            DiscountCalculator.redeem(
                payment.coupon_id, payment.user_id, payment.id, payment.original_amount,
                now=now, expected_discount=payment.discount_amount
            )

        payment.payment_status = "completed"
        payment.transaction_id = transaction_id
        payment.payment_date = now
        db.session.commit()

        try:
            EnrollmentManager.enroll_student(payment.course_id, payment.user_id, now=now)
            logger.info("Course enrollment created after successful payment: payment=%s user=%s course=%s",
                        payment.id, payment.user_id, payment.course_id)
        except (EnrollmentError, SQLAlchemyError) as e:
            db.session.rollback()
            logger.error("Failed to create enrollment after payment %s: %s", payment.id, e)
            payment.payment_status = "completed_enrollment_failed"
            db.session.commit()

        return payment

    @staticmethod
    def fail_payment(payment, status="failed"):
        if status not in ("failed", "cancelled"):
            raise PaymentError("Status must be 'failed' or 'cancelled'")
        if payment.payment_status != "pending":
            raise PaymentError(f"Payment is already {payment.payment_status}")

        payment.payment_status = status
        db.session.commit()
        logger.info("Payment %s marked %s", payment.id, status)
        return payment
