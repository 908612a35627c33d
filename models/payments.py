from models import db
from sqlalchemy.orm import relationship
from utils.helpers import format_datetime

PAYMENT_STATUSES = ("pending", "completed", "failed", "cancelled", "completed_enrollment_failed")


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False, index=True)
    order_id = db.Column(db.String(100), nullable=False, unique=True)
    original_amount = db.Column(db.Integer, nullable=False)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    amount = db.Column(db.Integer, nullable=False)  # charged amount
    currency = db.Column(db.String(3), nullable=False, default="VND")
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=True)
    payment_status = db.Column(db.String(50), nullable=False, default="pending", index=True)
    transaction_id = db.Column(db.String(100), nullable=True)
    payment_date = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)

    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="check_payment_amount"),
    )

    course = relationship("Course")
    coupon = relationship("Coupon")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "order_id": self.order_id,
            "original_amount": self.original_amount,
            "discount_amount": self.discount_amount,
            "amount": self.amount,
            "currency": self.currency,
            "coupon_id": self.coupon_id,
            "payment_status": self.payment_status,
            "transaction_id": self.transaction_id,
            "payment_date": format_datetime(self.payment_date),
            "created_at": format_datetime(self.created_at),
        }
