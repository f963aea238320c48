from functools import wraps
from flask import request, jsonify, g
from utils.tokens import decode_jwt, bearer_token
from models import db
from models.users import User


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token(request.headers.get("Authorization"))
        if not token:
            return jsonify({"error": "No authentication token provided"}), 401

        decoded = decode_jwt(token)
        if not decoded:
            return jsonify({"error": "Invalid token"}), 401

        user = db.session.get(User, decoded.get("user_id"))
        if not user:
            return jsonify({"error": "User not found"}), 401
        if not user.is_active:
            return jsonify({"error": "Account is deactivated"}), 403

        g.user = decoded
        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def role_required(*roles):
    """Restrict a login_required view to the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.current_user.role not in roles:
                return jsonify({"error": "Unauthorized"}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
