"""
Authentication utility functions
"""
from functools import wraps

from flask import jsonify
from flask_login import current_user
from werkzeug.security import generate_password_hash, check_password_hash


def hash_password(password):
    """Generate password hash"""
    return generate_password_hash(password)


def verify_password(password_hash, password):
    """Verify password against hash"""
    return check_password_hash(password_hash, password)


def admin_required(f):
    """Decorator to require a logged-in, non-banned admin user"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({"success": False, "message": "Authentication required."}), 401
        if current_user.is_banned:
            return jsonify({"success": False, "message": "This account has been suspended."}), 403
        if not current_user.is_admin:
            return jsonify({"success": False, "message": "Access denied: Admin rights required."}), 403
        return f(*args, **kwargs)
    return decorated_function


def split_full_name(full_name):
    """First token is the first name; the rest is the last name"""
    parts = (full_name or '').split()
    if not parts:
        return 'Customer', 'User'
    return parts[0], ' '.join(parts[1:]) or 'User'
