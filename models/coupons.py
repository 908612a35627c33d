from models import db
from sqlalchemy.orm import relationship
from utils.helpers import format_datetime, utcnow

DISCOUNT_TYPES = ("percentage", "fixed")


class Coupon(db.Model):
    __tablename__ = "coupons"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False, unique=True)  # stored upper-case
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    discount_type = db.Column(db.String(20), nullable=False)
    discount_value = db.Column(db.Integer, nullable=False)
    minimum_amount = db.Column(db.Integer, nullable=False, default=0)
    maximum_discount = db.Column(db.Integer, nullable=True)  # percentage coupons only
    usage_limit = db.Column(db.Integer, nullable=True)
    used_count = db.Column(db.Integer, nullable=False, default=0)
    valid_from = db.Column(db.DateTime, nullable=False)
    valid_until = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)

    __table_args__ = (
        db.CheckConstraint("discount_type IN ('percentage', 'fixed')", name="check_discount_type"),
        db.CheckConstraint("discount_value > 0", name="check_discount_value_positive"),
        db.CheckConstraint("valid_from <= valid_until", name="check_validity_window"),
        db.CheckConstraint("usage_limit IS NULL OR used_count <= usage_limit", name="check_usage_within_limit"),
    )

    creator = relationship("User")
    usages = relationship("CouponUsage", back_populates="coupon", cascade="all, delete-orphan")

    def current_status(self, now=None):
        now = now or utcnow()
        if self.valid_until <= now:
            return "expired"
        if self.valid_from > now:
            return "upcoming"
        if not self.is_active:
            return "inactive"
        return "active"

    def __repr__(self):
        return f"<Coupon {self.code} ({self.discount_type} {self.discount_value})>"

    def summary(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
        }

    def to_dict(self, now=None):
        return {
            **self.summary(),
            "minimum_amount": self.minimum_amount,
            "maximum_discount": self.maximum_discount,
            "usage_limit": self.usage_limit,
            "used_count": self.used_count,
            "valid_from": format_datetime(self.valid_from),
            "valid_until": format_datetime(self.valid_until),
            "is_active": self.is_active,
            "created_by": self.created_by,
            "current_status": self.current_status(now),
            "created_at": format_datetime(self.created_at),
        }
