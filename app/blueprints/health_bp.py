"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — 200 once the process is serving
    GET /api/v1/health/live   — database round-trip plus comment schema check
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import inspect

from app.models import db
from app.models.comment import Comment, CommentStatusHistory

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")

_REQUIRED_TABLES = (Comment.__tablename__, CommentStatusHistory.__tablename__)


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness: the database answers and the comment tables exist."""
    checks = {}
    healthy = True

    try:
        started = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        checks["database"] = {
            "status": "ok",
            "latency_ms": round((time.perf_counter() - started) * 1000, 1),
        }
    except Exception as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        healthy = False
        logger.error("Health check: database unreachable: %s", exc)
    else:
        existing = set(inspect(db.engine).get_table_names())
        missing = [t for t in _REQUIRED_TABLES if t not in existing]
        checks["schema"] = {"status": "missing", "tables": missing} if missing else {"status": "ok"}
        if missing:
            healthy = False
            logger.error("Health check: missing tables %s", ", ".join(missing))

    checks["app"] = {
        "name": "Collaborative Annotation Engine",
        "rate_limits": bool(current_app.config.get("RATELIMIT_ENABLED", True)),
        "testing": current_app.testing,
    }

    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
    }), 200 if healthy else 503
