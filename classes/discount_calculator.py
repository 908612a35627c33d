"""
Coupon validation, discount arithmetic and redemption.

`DiscountCalculator.validate` is a read-only preview and may be called any
number of times. Only `DiscountCalculator.redeem` writes: it records the
usage row and bumps the coupon counter in a single unit of work.
"""

import logging

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from models import db
from models.coupons import Coupon
from models.coupon_usage import CouponUsage
from classes.errors import CouponRejected, RedemptionError, RejectionReason
from classes.unit_of_work import run_atomically
from utils.helpers import compute_percentage, utcnow

logger = logging.getLogger(__name__)


def compute_discount(coupon, amount):
    """Return (discount_amount, final_amount) for an order of `amount`.

    Percentage discounts are floored and capped by maximum_discount. The
    discount never exceeds the order amount.
    """
    if coupon.discount_type == "percentage":
        discount = (amount * coupon.discount_value) // 100
        if coupon.maximum_discount is not None and discount > coupon.maximum_discount:
            discount = coupon.maximum_discount
    else:
        discount = coupon.discount_value

    discount = min(discount, amount)
    return discount, amount - discount


class DiscountQuote:
    def __init__(self, coupon, original_amount, discount_amount, final_amount):
        self.coupon = coupon
        self.original_amount = original_amount
        self.discount_amount = discount_amount
        self.final_amount = final_amount

    def to_dict(self):
        return {
            "coupon": self.coupon.summary(),
            "calculation": {
                "original_amount": self.original_amount,
                "discount_amount": self.discount_amount,
                "final_amount": self.final_amount,
                "savings": self.discount_amount,
                "savings_percentage": compute_percentage(self.discount_amount, self.original_amount),
            },
        }


class DiscountCalculator:
    @staticmethod
    def find_active_coupon(code):
        if not code:
            return None
        return Coupon.query.filter(
            func.upper(Coupon.code) == code.strip().upper(),
            Coupon.is_active.is_(True)
        ).first()

    @staticmethod
    def check_rules(coupon, user_id, amount, now, error_cls=CouponRejected):
        """Apply checks 2-5 in order; the first failing rule raises `error_cls`."""
        if now < coupon.valid_from:
            raise error_cls(RejectionReason.NOT_YET_VALID)
        if now > coupon.valid_until:
            raise error_cls(RejectionReason.EXPIRED)

        if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
            raise error_cls(RejectionReason.USAGE_LIMIT_EXCEEDED)

        if amount < coupon.minimum_amount:
            raise error_cls(
                RejectionReason.BELOW_MINIMUM,
                f"Minimum order amount is {coupon.minimum_amount:,}"
            )

        already_used = CouponUsage.query.filter_by(coupon_id=coupon.id, user_id=user_id).first()
        if already_used:
            raise error_cls(RejectionReason.ALREADY_USED)

    @staticmethod
    def validate(code, user_id, amount, now=None):
        """Preview the discount for `code`. Raises CouponRejected; never writes."""
        now = now or utcnow()

        coupon = DiscountCalculator.find_active_coupon(code)
        if not coupon:
            raise CouponRejected(RejectionReason.INVALID_CODE)

        DiscountCalculator.check_rules(coupon, user_id, amount, now)

        discount, final_amount = compute_discount(coupon, amount)
        return DiscountQuote(coupon, amount, discount, final_amount)

    @staticmethod
    def redeem(coupon_id, user_id, payment_id, amount, now=None, expected_discount=None):
        """Commit one use of the coupon against a payment.

        Re-checks every rule, then inserts the usage row and increments
        used_count atomically. When `expected_discount` is given, a coupon that
        now yields a different discount is refused before anything is written.
        Raises RedemptionError on any failure.
        """
        now = now or utcnow()

        coupon = Coupon.query.filter_by(id=coupon_id, is_active=True).first()
        if not coupon:
            raise RedemptionError(RejectionReason.INVALID_CODE)

        DiscountCalculator.check_rules(coupon, user_id, amount, now, error_cls=RedemptionError)
        discount, final_amount = compute_discount(coupon, amount)
        if expected_discount is not None and discount != expected_discount:
            logger.warning("Coupon %s discount changed since checkout for user %s: %s -> %s",
                           coupon_id, user_id, expected_discount, discount)
            raise RedemptionError(RejectionReason.DISCOUNT_CHANGED)

        def record_usage(session):
            usage = CouponUsage(
                coupon_id=coupon_id,
                user_id=user_id,
                payment_id=payment_id,
                discount_amount=discount,
                used_at=now,
            )
            session.add(usage)
            return usage

        def increment_counter(session):
            updated = session.query(Coupon).filter(
                Coupon.id == coupon_id,
                or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit)
            ).update({Coupon.used_count: Coupon.used_count + 1}, synchronize_session=False)
            if updated != 1:
                raise RedemptionError(RejectionReason.USAGE_LIMIT_EXCEEDED)
            return updated

        try:
            run_atomically([record_usage, increment_counter])
        except IntegrityError:
            logger.warning("Coupon %s already redeemed by user %s", coupon_id, user_id)
            raise RedemptionError(RejectionReason.ALREADY_USED)
        except RedemptionError as e:
            logger.warning("Coupon %s redemption rejected for user %s: %s", coupon_id, user_id, e.reason)
            raise

        logger.info(
            "Coupon applied to payment: coupon=%s payment=%s user=%s original=%s discount=%s final=%s",
            coupon_id, payment_id, user_id, amount, discount, final_amount
        )
        return discount, final_amount
