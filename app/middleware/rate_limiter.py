"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in app/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP, overridable via config):
        - Comment endpoints:     COMMENT_RATE_LIMIT     (default 60/minute)
        - Annotation rendering:  ANNOTATION_RATE_LIMIT  (default 200/minute)
        - Health check:          exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    comment_limit = app.config.get("COMMENT_RATE_LIMIT", "60 per minute")
    annotation_limit = app.config.get("ANNOTATION_RATE_LIMIT", "200 per minute")

    bp = app.blueprints.get("comments")
    if bp:
        limiter.limit(comment_limit)(bp)

    # Decoration / hit-test calls fire on every editor re-render
    bp = app.blueprints.get("annotations")
    if bp:
        limiter.limit(annotation_limit)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured: comments=%s, annotations=%s",
        comment_limit, annotation_limit,
    )
