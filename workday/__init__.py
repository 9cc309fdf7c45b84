"""
Workday Close Service
Flask Application Factory.

Usage:
    from workday import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from workday.auth import init_identity
from workday.config import config
from workday.core.clock import SystemClock, install_clock
from workday.core.exceptions import WorkdayError
from workday.middleware.logging_config import configure_logging
from workday.middleware.rate_limiter import init_rate_limits
from workday.middleware.timing import init_request_timing
from workday.models import db
from workday.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


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
    cfg = config[config_name]
    app.config.from_object(cfg() if config_name == "production" else cfg)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Clock ("today" and closing-window checks) ────────────────────────
    install_clock(app, SystemClock(app.config["WORKDAY_TIMEZONE"]))

    # ── Request timing & identity ────────────────────────────────────────
    init_request_timing(app)
    init_identity(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from workday.models import worker as _worker_models          # noqa: F401
    from workday.models import task as _task_models              # noqa: F401
    from workday.models import routine as _routine_models        # noqa: F401
    from workday.models import day_close as _day_close_models    # noqa: F401
    from workday.models import escalation as _escalation_models  # noqa: F401

    # ── Blueprints ───────────────────────────────────────────────────────
    from workday.blueprints.health_bp import health_bp
    from workday.blueprints.day_close_bp import day_close_bp
    from workday.blueprints.routine_task_bp import routine_task_bp
    from workday.blueprints.assigned_task_bp import assigned_task_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(day_close_bp)
    app.register_blueprint(routine_task_bp)
    app.register_blueprint(assigned_task_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(WorkdayError)
    def workday_error(e):
        if e.http_status >= 500:
            logger.error("%s: %s", e.code, e.message, extra={"path": request.path})
        else:
            logger.info("%s: %s", e.code, e.message, extra={"path": request.path})
        return api_error(e.code, e.message, status=e.http_status, details=e.details)

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
