from functools import wraps
from flask import request, jsonify, g
from utils.tokens import decode_jwt


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = request.cookies.get("access_token")
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        decoded = decode_jwt(token)
        if not decoded or not decoded.get("user_id"):
            return jsonify({"error": "Invalid token"}), 401

        g.user = decoded
        return f(*args, **kwargs)

    return decorated_function


def roles_required(*roles):
    """Reject the request with 403 unless the caller has one of `roles`. Use under @login_required."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.user.get("role") not in roles:
                return jsonify({"error": "You do not have permission to perform this action"}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator