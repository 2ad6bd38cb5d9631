"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready    - simple 200 for load balancers
    GET /api/v1/health/live     - database check
    GET /api/v1/health/metrics  - recent request timing summary
"""

import logging
import time

from flask import Blueprint, current_app, jsonify, request

from caseflow.middleware.timing import get_request_metrics
from caseflow.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe - always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check with database status."""
    checks = {}
    overall = True

    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check - database failed: %s", exc)

    checks["app"] = {
        "name": "Case Schedule Engine",
        "debug": current_app.debug,
        "testing": current_app.testing,
        "default_country_code": current_app.config.get("DEFAULT_COUNTRY_CODE"),
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code


@health_bp.route("/metrics", methods=["GET"])
def metrics():
    """Request timing summary. Query: seconds (default 3600)."""
    seconds = request.args.get("seconds", 3600, type=int)
    seconds = max(1, min(seconds, 86_400))
    return jsonify(get_request_metrics().summary(seconds)), 200
