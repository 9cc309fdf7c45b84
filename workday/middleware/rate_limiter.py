"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.  The Limiter instance
is created in workday/__init__.py with no default limits; this module applies
granular limits per route category.

Usage:
    from workday.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"

# Blueprints whose routes are mostly mutations
WRITE_BLUEPRINTS = ("day_close_bp", "routine_task_bp", "assigned_task_bp")


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Mutation blueprints: 60/minute, with GET routes relaxed to 200/minute
        - Health check:        exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, methods=["POST", "PUT", "PATCH", "DELETE"])(bp)
            limiter.limit(READ_LIMIT, methods=["GET"])(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: write: %s, read: %s", WRITE_LIMIT, READ_LIMIT)
