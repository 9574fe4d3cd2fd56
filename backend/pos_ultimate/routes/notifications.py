# Overview: Flask API routes for the in-process notification feed.

# backend/pos_ultimate/routes/notifications.py

from flask import Blueprint, request, jsonify, g

from ..errors import PosError
from ..services import scoping
from ..services.sync_store import get_store
from ..decorators import require_auth


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


def _visible():
    return scoping.visible_notifications(g.current_user, get_store().notifications.all())


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    """
    Notifications for the user's location(s), newest first.

    Query: ?unread=1 returns only unread notifications.
    """
    notifications = _visible()
    if request.args.get("unread") in ("1", "true"):
        notifications = [n for n in notifications if not n["read"]]
    return jsonify({
        "notifications": notifications,
        "unread_count": sum(1 for n in notifications if not n["read"]),
    }), 200


@notifications_bp.post("/<notification_id>/read")
@require_auth
def mark_read_route(notification_id: str):
    if notification_id not in {n["id"] for n in _visible()}:
        return jsonify({"error": "Notification not found"}), 404
    try:
        notification = get_store().notifications.mark_read(notification_id)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"notification": notification}), 200


@notifications_bp.post("/clear")
@require_auth
def clear_read_route():
    """Remove the user's read notifications."""
    removed = get_store().notifications.clear_read({n["id"] for n in _visible()})
    return jsonify({"removed": removed}), 200
