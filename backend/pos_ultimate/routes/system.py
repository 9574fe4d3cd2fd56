# backend/pos_ultimate/routes/system.py
"""
System health endpoint.

Reports database connectivity and the state of the synced store.
"""

import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db
from ..services.document_store import COLLECTIONS
from ..services.sync_store import get_store

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_sync_health() -> dict:
    store = get_store()
    return {
        "status": "listening" if store.listening else "idle",
        "collections": {
            name: {
                "delivered": store.cache.has_delivered(name),
                "documents": len(store.cache.all(name)),
            }
            for name in COLLECTIONS
        },
    }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    status_code = 200 if database["status"] == "healthy" else 503
    return jsonify({
        "status": "ok" if status_code == 200 else "degraded",
        "database": database,
        "sync": check_sync_health(),
    }), status_code
