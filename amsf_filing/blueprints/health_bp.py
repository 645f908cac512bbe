"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — database, taxonomy and remote validator status
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from amsf_filing.integrations.validator_gateway import validator_gateway
from amsf_filing.models import db
from amsf_filing.services.fields import FIELD_CALCULATORS
from amsf_filing.taxonomy.manifest import load_manifest

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness check, always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check: database failed: %s", exc)

    # ── Taxonomy manifest ────────────────────────────────────────────
    version = current_app.config.get("TAXONOMY_VERSION")
    try:
        manifest = load_manifest(version)
        checks["taxonomy"] = {
            "status": "ok",
            "version": manifest.version,
            "elements": len(manifest),
            "calculators": len(FIELD_CALCULATORS),
        }
    except Exception as exc:
        checks["taxonomy"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check: taxonomy %s failed: %s", version, exc)

    # ── Remote validator (optional, never fails overall health) ─────
    if current_app.config.get("REMOTE_VALIDATION_ENABLED"):
        t0 = time.perf_counter()
        healthy = validator_gateway.health_check()
        checks["validator"] = {
            "status": "ok" if healthy else "unavailable",
            "latency_ms": round((time.perf_counter() - t0) * 1000, 1),
        }
    else:
        checks["validator"] = {"status": "skipped", "detail": "remote validation disabled"}

    # ── App info ─────────────────────────────────────────────────────
    checks["app"] = {
        "name": "AMSF Survey Filer",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
