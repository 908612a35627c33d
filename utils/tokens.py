import datetime
import logging
from flask import g, current_app
import jwt

logger = logging.getLogger(__name__)


def get_jwt_token(user_data, secret_key=None, expiry_hours=None):
    """Generate JWT token with user payload"""
    if not user_data:
        raise ValueError("User data must be provided to generate JWT token")

    secret_key = secret_key or current_app.config["SECRET_KEY"]
    expiry_hours = expiry_hours or current_app.config.get("JWT_EXPIRY_HOURS", 24)

    expiration = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=expiry_hours)
    payload = {"exp": expiration, **user_data}

    return jwt.encode(payload, secret_key, algorithm="HS256")


def decode_jwt(token):
    """Decode and validate JWT token and store user in `g`."""
    try:
        payload = jwt.decode(token, current_app.config["SECRET_KEY"], algorithms=["HS256"])
        g.user = payload
        return payload
    except jwt.ExpiredSignatureError:
        logger.info("Token expired")
        return None
    except jwt.InvalidTokenError:
        logger.info("Invalid token provided")
        return None
