# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/pos_ultimate/routes/auth.py
"""
Authentication API routes

- Login by username or email, case-insensitive
- Per-identifier lockout after repeated failed attempts
- The session cookie carries only the current user's id
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import PosError
from ..services import session_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate a user and start a session.

    401 carries the attempt count, 429 the minutes left on the lockout,
    404 means no such user (not counted as an attempt).
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        identifier = data.get("identifier") or data.get("username") or data.get("email")
        password = data.get("password")

        gate = current_app.extensions["pos_auth"]
        user = gate.login(identifier, password)
        session_service.set_current_user(user)

        return jsonify({"user": user}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    session_service.clear_current_user()
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user}), 200


@auth_bp.get("/lockout-status")
def lockout_status_route():
    """
    Lockout status for an identifier (?identifier=...).
    """
    identifier = (request.args.get("identifier") or "").strip()
    if not identifier:
        return jsonify({"error": "identifier required"}), 400

    gate = current_app.extensions["pos_auth"]
    return jsonify(gate.lockout_status(identifier)), 200
