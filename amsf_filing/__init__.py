"""
AMSF Survey Filer
Flask Application Factory.

Usage:
    from amsf_filing import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, jsonify, request
from flask_migrate import Migrate

from amsf_filing.config import config
from amsf_filing.core.exceptions import (
    ConflictError,
    NotFoundError,
    RenderDataError,
    RenderError,
    ValidationError,
)
from amsf_filing.middleware.logging_config import configure_logging
from amsf_filing.middleware.timing import init_request_timing
from amsf_filing.models import db

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine  # noqa: E402


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()


def _check_calculator_coverage(app):
    """Log a warning when calculators and the taxonomy manifest disagree."""
    from amsf_filing.services.fields import check_completeness
    from amsf_filing.taxonomy.manifest import load_manifest

    manifest = load_manifest(app.config.get("TAXONOMY_VERSION"))
    report = check_completeness(manifest)
    if report["missing"]:
        app.logger.warning(
            "Taxonomy %s: %d elements have no calculator: %s",
            manifest.version, len(report["missing"]), ", ".join(report["missing"]),
        )
    if report["unknown"]:
        app.logger.warning(
            "Taxonomy %s: %d calculators are not in the manifest: %s",
            manifest.version, len(report["unknown"]), ", ".join(report["unknown"]),
        )
    return report


def _register_error_handlers(app):
    @app.errorhandler(NotFoundError)
    def _handle_not_found(error):
        return jsonify({"error": str(error)}), 404

    @app.errorhandler(ValidationError)
    def _handle_validation(error):
        return jsonify({"error": str(error), "details": error.details}), 422

    @app.errorhandler(ConflictError)
    def _handle_conflict(error):
        return jsonify({"error": str(error), "field": error.field, "value": error.value}), 409

    @app.errorhandler(RenderDataError)
    def _handle_render_data(error):
        return jsonify({"error": str(error), "element": error.element, "format": error.format}), 422

    @app.errorhandler(RenderError)
    def _handle_render(error):
        logger.error("Render error submission=%s format=%s: %s",
                     error.submission_id, error.format, error)
        return jsonify({"error": str(error), "format": error.format}), 500

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)

    # ── Request timing ───────────────────────────────────────────────────
    init_request_timing(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from amsf_filing.models import client as _client_models              # noqa: F401
    from amsf_filing.models import compliance as _compliance_models      # noqa: F401
    from amsf_filing.models import managed_property as _property_models  # noqa: F401
    from amsf_filing.models import organization as _organization_models  # noqa: F401
    from amsf_filing.models import submission as _submission_models      # noqa: F401
    from amsf_filing.models import transaction as _transaction_models    # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from amsf_filing.blueprints.health_bp import health_bp
    from amsf_filing.blueprints.submission_bp import submission_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(submission_bp)

    _register_error_handlers(app)

    # ── Startup diagnostics ──────────────────────────────────────────────
    _check_calculator_coverage(app)

    return app
