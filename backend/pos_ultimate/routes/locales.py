# Overview: Flask API routes for locations and their cash register; parses input and returns JSON responses.

# backend/pos_ultimate/routes/locales.py
"""
Location routes

Creating, editing, suspending and deleting locations is SUPER_ADMIN only.
Cash counts and adjustments are open to the location's ADMIN.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..constants import ADMIN_ROLES, ROLE_SUPER_ADMIN
from ..errors import PosError
from ..services import scoping
from ..services.sync_store import get_store
from ..decorators import require_auth, require_role, forbidden


locales_bp = Blueprint("locales", __name__, url_prefix="/api/locales")


@locales_bp.get("")
@require_auth
def list_locales_route():
    store = get_store()
    return jsonify({"locales": scoping.visible_locales(g.current_user, store.locales)}), 200


@locales_bp.get("/<local_id>")
@require_auth
def get_local_route(local_id: str):
    local = get_store().get_local(local_id)
    if local is None or not scoping.in_scope(g.current_user, local_id):
        return jsonify({"error": "Location not found"}), 404
    return jsonify({"local": local}), 200


@locales_bp.post("")
@require_auth
@require_role(ROLE_SUPER_ADMIN)
def create_local_route():
    try:
        data = request.get_json(silent=True) or {}
        local = get_store().add_local(data)
        return jsonify({"local": local}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create location")
        return jsonify({"error": "Internal server error"}), 500


@locales_bp.put("/<local_id>")
@require_auth
@require_role(ROLE_SUPER_ADMIN)
def update_local_route(local_id: str):
    try:
        data = request.get_json(silent=True) or {}
        local = get_store().update_local(local_id, data)
        return jsonify({"local": local}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update location")
        return jsonify({"error": "Internal server error"}), 500


@locales_bp.post("/<local_id>/toggle")
@require_auth
@require_role(ROLE_SUPER_ADMIN)
def toggle_local_route(local_id: str):
    """Suspend or reactivate a location."""
    try:
        local = get_store().toggle_local_status(local_id)
        return jsonify({"local": local}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to toggle location status")
        return jsonify({"error": "Internal server error"}), 500


@locales_bp.delete("/<local_id>")
@require_auth
@require_role(ROLE_SUPER_ADMIN)
def delete_local_route(local_id: str):
    try:
        get_store().delete_local(local_id)
        return jsonify({"message": "Location deleted"}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete location")
        return jsonify({"error": "Internal server error"}), 500


@locales_bp.post("/<local_id>/cash-count")
@require_auth
@require_role(*ADMIN_ROLES)
def cash_count_route(local_id: str):
    """
    Record a counted register balance.

    Body: {"amount": 1500}
    """
    try:
        if not scoping.can_manage_local(g.current_user, local_id):
            return forbidden()

        data = request.get_json(silent=True) or {}
        local = get_store().record_cash_count(local_id, data.get("amount"))
        return jsonify({"local": local}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record cash count")
        return jsonify({"error": "Internal server error"}), 500


@locales_bp.post("/<local_id>/cash-adjust")
@require_auth
@require_role(*ADMIN_ROLES)
def cash_adjust_route(local_id: str):
    """
    Add to (or, with a negative delta, take from) the register balance.

    Body: {"delta": -200}
    """
    try:
        if not scoping.can_manage_local(g.current_user, local_id):
            return forbidden()

        data = request.get_json(silent=True) or {}
        balance = get_store().adjust_cash(local_id, data.get("delta"))
        return jsonify({"local_id": local_id, "cash_in_register": balance}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust cash")
        return jsonify({"error": "Internal server error"}), 500
