# backend/posledger/routes/system.py
"""
Health check and activity log endpoints.
"""

import time

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_auth, require_permission
from ..extensions import db
from ..services.activity_service import list_activity
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/api/health")
def health():
    """Public liveness/readiness probe. 503 when the database is unreachable."""
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "ok" if healthy else "degraded",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return jsonify(body), 200 if healthy else 503


@system_bp.get("/api/activity-logs")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def activity_logs_route():
    """Query params: user_id, action, limit (max 500)."""
    try:
        entries = list_activity(
            user_id=request.args.get("user_id", type=int),
            action=request.args.get("action"),
            limit=request.args.get("limit", default=100, type=int),
        )
    except Exception:
        current_app.logger.exception("Failed to list activity logs")
        return jsonify({"error": "Internal server error"}), 500

    return {"items": [e.to_dict() for e in entries], "count": len(entries)}
