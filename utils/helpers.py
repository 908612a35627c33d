import math
from datetime import datetime, timezone

from flask import current_app, request


def utcnow():
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_datetime(datetime_obj):
    """Format datetime to a readable string."""
    if not datetime_obj:
        return None
    return datetime_obj.strftime('%Y-%m-%d %H:%M:%S')


def parse_datetime(value):
    """Parse an ISO-8601 string into a naive UTC datetime. Raises ValueError."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError("Invalid date format")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def get_pagination():
    """Read `page` and `limit` from the query string, clamped to sane bounds."""
    default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 100)

    page = request.args.get("page", 1, type=int) or 1
    limit = request.args.get("limit", default_limit, type=int) or default_limit

    page = max(page, 1)
    limit = min(max(limit, 1), max_limit)
    return page, limit


def paginate(query, page, limit):
    """Run a query for one page. Returns (items, pagination metadata)."""
    total = query.order_by(None).count()
    items = query.limit(limit).offset((page - 1) * limit).all()
    return items, {
        "results": len(items),
        "total_items": total,
        "total_pages": math.ceil(total / limit) if total else 0,
        "current_page": page,
    }


def compute_percentage(part, whole):
    """Integer percentage of `part` out of `whole`, rounded half-up. 0 when `whole` is 0."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)
