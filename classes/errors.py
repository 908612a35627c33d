class RejectionReason:
    INVALID_CODE = "invalid_code"
    NOT_YET_VALID = "not_yet_valid"
    EXPIRED = "expired"
    USAGE_LIMIT_EXCEEDED = "usage_limit_exceeded"
    BELOW_MINIMUM = "below_minimum"
    ALREADY_USED = "already_used"
    DISCOUNT_CHANGED = "discount_changed"


MESSAGES = {
    RejectionReason.INVALID_CODE: "Invalid or inactive coupon code",
    RejectionReason.NOT_YET_VALID: "Coupon is not yet valid",
    RejectionReason.EXPIRED: "Coupon has expired",
    RejectionReason.USAGE_LIMIT_EXCEEDED: "Coupon usage limit exceeded",
    RejectionReason.BELOW_MINIMUM: "Order amount is below the coupon minimum",
    RejectionReason.ALREADY_USED: "You have already used this coupon",
    RejectionReason.DISCOUNT_CHANGED: "Coupon discount has changed since checkout",
}


class CouponRejected(ValueError):
    """A coupon failed one of its business rules."""

    def __init__(self, reason, message=None):
        self.reason = reason
        self.message = message or MESSAGES.get(reason, "Coupon cannot be applied")
        super().__init__(self.message)

    def to_dict(self):
        return {"error": self.message, "reason": self.reason}


class RedemptionError(CouponRejected):
    """Redemption could not be committed. The payment must not be confirmed."""


class EnrollmentError(ValueError):
    def __init__(self, message, status_code=400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class PaymentError(ValueError):
    def __init__(self, message, status_code=400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)
