import bleach

from models.coupons import DISCOUNT_TYPES
from utils.helpers import parse_datetime


def validate_length(field_name, value, max_length):
    if len(value) > max_length:
        raise ValueError(f"{field_name} must be {max_length} characters or fewer.")


def clean_text(value):
    """Strip markup from free-text input."""
    if value is None:
        return None
    return bleach.clean(str(value), tags=[], strip=True).strip()


def validate_non_negative_int(field_name, value, required=True):
    if value is None:
        if required:
            raise ValueError(f"{field_name} is required.")
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer.")
    if value < 0:
        raise ValueError(f"{field_name} cannot be negative.")
    return value


def validate_bool(field_name, value):
    if not isinstance(value, bool):
        raise ValueError(f"{field_name} must be a boolean.")
    return value


def validate_amount(value):
    """Order amounts are positive whole currency units."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError("Amount must be a positive integer.")
    return value


def validate_discount(discount_type, discount_value):
    if discount_type not in DISCOUNT_TYPES:
        raise ValueError("Discount type must be 'percentage' or 'fixed'.")
    if isinstance(discount_value, bool) or not isinstance(discount_value, int):
        raise ValueError("Discount value must be an integer.")
    if discount_type == "percentage" and (discount_value <= 0 or discount_value > 100):
        raise ValueError("Percentage discount must be between 0 and 100")
    if discount_type == "fixed" and discount_value <= 0:
        raise ValueError("Fixed discount must be greater than 0")


def validate_date_range(valid_from, valid_until):
    """Parse both bounds and check ordering. Returns (valid_from, valid_until)."""
    start = parse_datetime(valid_from)
    end = parse_datetime(valid_until)
    if end < start:
        raise ValueError("Valid until date must be after valid from date")
    return start, end
