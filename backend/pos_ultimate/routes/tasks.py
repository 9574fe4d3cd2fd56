# Overview: Flask API routes for staff tasks; parses input and returns JSON responses.

# backend/pos_ultimate/routes/tasks.py

from flask import Blueprint, request, jsonify, current_app, g

from ..constants import ADMIN_ROLES, ROLE_SUPER_ADMIN
from ..errors import PosError
from ..services import scoping
from ..services.sync_store import get_store
from ..decorators import require_auth, require_role, forbidden


tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/tasks")


@tasks_bp.get("")
@require_auth
def list_tasks_route():
    tasks = scoping.visible_tasks(g.current_user, get_store().tasks)
    return jsonify({"tasks": tasks}), 200


@tasks_bp.post("")
@require_auth
@require_role(*ADMIN_ROLES)
def create_task_route():
    try:
        data = request.get_json(silent=True) or {}
        actor = g.current_user

        if actor["role"] != ROLE_SUPER_ADMIN:
            data.setdefault("local_id", actor.get("local_id"))
        if not scoping.can_manage_local(actor, data.get("local_id")):
            return forbidden()
        data["assigned_by_id"] = actor["id"]

        task = get_store().add_task(data)
        return jsonify({"task": task}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create task")
        return jsonify({"error": "Internal server error"}), 500


@tasks_bp.put("/<task_id>")
@require_auth
@require_role(*ADMIN_ROLES)
def update_task_route(task_id: str):
    try:
        data = request.get_json(silent=True) or {}
        actor = g.current_user
        store = get_store()

        task = store.get_task(task_id)
        if task is None:
            return jsonify({"error": "Task not found"}), 404
        if not scoping.can_manage_local(actor, task.get("local_id")):
            return forbidden()
        if "local_id" in data and not scoping.can_manage_local(actor, data["local_id"]):
            return forbidden("Cannot move a task to that location")

        task = store.update_task(task_id, data)
        return jsonify({"task": task}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update task")
        return jsonify({"error": "Internal server error"}), 500


@tasks_bp.post("/<task_id>/toggle")
@require_auth
def toggle_task_route(task_id: str):
    """Flip PENDING <-> COMPLETED. Assignees may toggle their own tasks."""
    try:
        actor = g.current_user
        store = get_store()

        task = store.get_task(task_id)
        if task is None or not scoping.visible_tasks(actor, [task]):
            return jsonify({"error": "Task not found"}), 404

        task = store.toggle_task_status(task_id)
        return jsonify({"task": task}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to toggle task")
        return jsonify({"error": "Internal server error"}), 500


@tasks_bp.delete("/<task_id>")
@require_auth
@require_role(*ADMIN_ROLES)
def delete_task_route(task_id: str):
    try:
        store = get_store()
        task = store.get_task(task_id)
        if task is None:
            return jsonify({"error": "Task not found"}), 404
        if not scoping.can_manage_local(g.current_user, task.get("local_id")):
            return forbidden()

        store.delete_task(task_id)
        return jsonify({"message": "Task deleted"}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete task")
        return jsonify({"error": "Internal server error"}), 500
