# Overview: Request decorators for API routes (authentication and role checks).

from functools import wraps
from flask import jsonify, g

from .services import session_service
from .services.sync_store import get_store


def require_auth(f):
    """
    Require a logged-in user.

    Sets g.current_user to the public user document re-resolved from the
    synced snapshot. Returns 401 when there is no session or the user no
    longer exists.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = session_service.get_current_user(get_store())
        if user is None:
            return jsonify({"error": "Authentication required"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require one of the given roles. Use after @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401

            if user.get("role") not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator


def forbidden(message: str = "Permission denied"):
    return jsonify({"error": message}), 403
