from models import db
from utils.helpers import format_datetime, utcnow


class CouponUsage(db.Model):
    __tablename__ = "coupon_usage"

    id = db.Column(db.Integer, primary_key=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True)
    discount_amount = db.Column(db.Integer, nullable=False)
    used_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    # one redemption per user per coupon
    __table_args__ = (
        db.UniqueConstraint("coupon_id", "user_id", name="unique_coupon_user"),
    )

    coupon = db.relationship("Coupon", back_populates="usages")
    user = db.relationship("User")
    payment = db.relationship("Payment")

    def to_dict(self):
        return {
            "id": self.id,
            "coupon_id": self.coupon_id,
            "user_id": self.user_id,
            "payment_id": self.payment_id,
            "discount_amount": self.discount_amount,
            "used_at": format_datetime(self.used_at),
        }
