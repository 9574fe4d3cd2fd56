# Overview: Flask API routes for user administration; parses input and returns JSON responses.

# backend/pos_ultimate/routes/users.py
"""
User administration routes

SUPER_ADMIN manages everyone. ADMIN manages the ADMIN and SELLER users of
their own location. Everyone may edit their own name, email and password.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..constants import ADMIN_ROLES, ROLE_ADMIN
from ..errors import PosError
from ..services import scoping
from ..services.auth_service import public_user
from ..services.sync_store import get_store
from ..decorators import require_auth, require_role, forbidden


users_bp = Blueprint("users", __name__, url_prefix="/api/users")

SELF_EDITABLE_FIELDS = {"name", "email", "password"}


@users_bp.get("")
@require_auth
def list_users_route():
    store = get_store()
    users = scoping.visible_users(g.current_user, store.users)
    return jsonify({"users": [public_user(u) for u in users]}), 200


@users_bp.get("/sellers")
@require_auth
@require_role(*ADMIN_ROLES)
def list_assignable_route():
    """Sellers a task can be assigned to."""
    store = get_store()
    sellers = scoping.assignable_sellers(g.current_user, store.users)
    return jsonify({"users": [public_user(u) for u in sellers]}), 200


@users_bp.post("")
@require_auth
@require_role(*ADMIN_ROLES)
def create_user_route():
    try:
        data = request.get_json(silent=True) or {}
        actor = g.current_user

        if actor["role"] == ROLE_ADMIN:
            data.setdefault("local_id", actor.get("local_id"))

        if not scoping.can_manage_user(actor, data.get("role"), data.get("local_id")):
            return forbidden("Cannot create a user with that role or location")

        user = get_store().add_user(data)
        return jsonify({"user": user}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<user_id>")
@require_auth
def update_user_route(user_id: str):
    try:
        data = request.get_json(silent=True) or {}
        actor = g.current_user
        store = get_store()

        target = store.get_user(user_id)
        if target is None:
            return jsonify({"error": "User not found"}), 404

        if actor["id"] == user_id and set(data) <= SELF_EDITABLE_FIELDS:
            pass
        elif not scoping.can_manage_user(actor, target.get("role"), target.get("local_id")):
            return forbidden()
        elif not scoping.can_manage_user(
            actor,
            data.get("role", target.get("role")),
            data.get("local_id", target.get("local_id")),
        ):
            return forbidden("Cannot move a user to that role or location")

        user = store.update_user(user_id, data)
        return jsonify({"user": user}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<user_id>")
@require_auth
@require_role(*ADMIN_ROLES)
def delete_user_route(user_id: str):
    try:
        actor = g.current_user
        store = get_store()

        if actor["id"] == user_id:
            return jsonify({"error": "You cannot delete your own account"}), 400

        target = store.get_user(user_id)
        if target is None:
            return jsonify({"error": "User not found"}), 404
        if not scoping.can_manage_user(actor, target.get("role"), target.get("local_id")):
            return forbidden()

        store.delete_user(user_id)
        return jsonify({"message": "User deleted"}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500
