"""
Collaborative Annotation Engine
Authentication & identity middleware.

Provides:
    - API key authentication via X-API-Key header or ?api_key= query param
    - Role-based access control (RBAC) decorator
    - CSRF mitigation for state-changing requests (JSON Content-Type)
    - Actor resolution: who is performing a comment mutation

Identity model:
    The engine consumes identity, it does not implement it.  The upstream
    gateway forwards the signed-in user as ``X-User-Id`` (and optionally
    ``X-User-Name``).  The role comes from the API key; when auth is disabled
    (development/testing) ``X-User-Role`` may select it, defaulting to admin.

Configuration (env vars):
    API_KEYS          — comma-separated "<key>:<role>" pairs, role in admin|editor|viewer
    API_AUTH_ENABLED  — set to "false" to disable auth (development only)
"""

import functools
import logging
import os
from dataclasses import dataclass
from typing import Optional

from flask import current_app, g, has_request_context, jsonify, request

from app.core.exceptions import NotAuthenticatedError

logger = logging.getLogger(__name__)

# ── Roles ────────────────────────────────────────────────────────────────────

ROLES = {"admin", "editor", "viewer"}

# Role hierarchy: admin > editor > viewer
ROLE_HIERARCHY = {
    "admin": {"admin", "editor", "viewer"},
    "editor": {"editor", "viewer"},
    "viewer": {"viewer"},
}


@dataclass(frozen=True)
class Actor:
    """The identity a mutation is attributed to."""
    id: str
    role: str = "viewer"
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _parse_api_keys() -> dict[str, str]:
    """
    Parse API_KEYS env var into {key: role} mapping.

    Keys without a role default to 'viewer'.
    """
    raw = os.getenv("API_KEYS", "")
    if not raw.strip():
        return {}

    keys = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if ":" in entry:
            key, role = entry.rsplit(":", 1)
            role = role.strip().lower()
            if role not in ROLES:
                logger.warning("Unknown role '%s' for API key, defaulting to 'viewer'", role)
                role = "viewer"
            keys[key.strip()] = role
        else:
            keys[entry] = "viewer"
    return keys


def _is_auth_enabled() -> bool:
    """Check whether authentication is enabled (env var or app config)."""
    env_val = os.getenv("API_AUTH_ENABLED", "")
    if env_val:
        return env_val.lower() not in ("false", "0", "no", "off")
    try:
        return current_app.config.get("API_AUTH_ENABLED", "true").lower() not in ("false", "0", "no", "off")
    except RuntimeError:
        # Outside app context
        return True


def _get_api_key_from_request() -> Optional[str]:
    """Extract API key from request header or query parameter."""
    key = request.headers.get("X-API-Key", "").strip()
    if key:
        return key
    return request.args.get("api_key", "").strip() or None


def _dev_mode_role() -> str:
    role = request.headers.get("X-User-Role", "").strip().lower()
    return role if role in ROLES else "admin"


# ── Actor resolution ─────────────────────────────────────────────────────────

def get_current_actor() -> Actor:
    """
    Return the actor for the current request.

    Raises:
        NotAuthenticatedError: no request context or no X-User-Id header.
    """
    if not has_request_context():
        raise NotAuthenticatedError()

    cached = getattr(g, "current_actor", None)
    if cached is not None:
        return cached

    user_id = request.headers.get("X-User-Id", "").strip()
    if not user_id:
        raise NotAuthenticatedError()

    actor = Actor(
        id=user_id,
        role=getattr(g, "current_user_role", None) or "viewer",
        name=request.headers.get("X-User-Name", "").strip() or None,
    )
    g.current_actor = actor
    return actor


# ── Authorization decorator ──────────────────────────────────────────────────

def require_role(minimum_role: str):
    """
    Decorator: require a minimum role level.

    Usage:
        @require_role("editor")
        def update_status(comment_id): ...

    Role hierarchy: admin > editor > viewer
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user_role = getattr(g, "current_user_role", None)
            if not user_role:
                return jsonify({"error": "Authentication required"}), 401

            allowed = ROLE_HIERARCHY.get(user_role, set())
            if minimum_role not in allowed:
                logger.warning(
                    "Access denied: role '%s' tried to access '%s'-level endpoint %s",
                    user_role, minimum_role, request.path,
                )
                return jsonify({"error": "Insufficient permissions"}), 403

            return f(*args, **kwargs)
        return decorated
    return decorator


# ── CSRF mitigation for API ──────────────────────────────────────────────────

def _check_content_type():
    """
    For state-changing requests with a body, require
    Content-Type: application/json.  HTML forms cannot send it.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if "application/json" not in ct and request.content_length and request.content_length > 0:
            return jsonify({
                "error": "Content-Type must be application/json for state-changing requests"
            }), 415
    return None


# ── before_request hook installer ────────────────────────────────────────────

def init_auth(app):
    """
    Install authentication middleware on the Flask app.

    Skips health routes and pre-flight requests.
    """
    @app.before_request
    def _before_request_auth():
        g.pop("current_actor", None)
        if not request.path.startswith("/api/v1/"):
            return None
        if request.path.startswith("/api/v1/health"):
            return None
        if request.method == "OPTIONS":
            return None

        csrf_error = _check_content_type()
        if csrf_error:
            return csrf_error

        if not _is_auth_enabled():
            g.current_user_role = _dev_mode_role()
            g.api_key = "dev-mode"
            return None

        api_key = _get_api_key_from_request()
        if not api_key:
            return jsonify({"error": "Authentication required. Provide X-API-Key header."}), 401

        api_keys = _parse_api_keys()
        if not api_keys:
            logger.error("API_KEYS env var is not configured but API_AUTH_ENABLED=true")
            return jsonify({"error": "Server authentication not configured"}), 500

        role = api_keys.get(api_key)
        if role is None:
            logger.warning("Invalid API key attempt: %s...", api_key[:8])
            return jsonify({"error": "Invalid API key"}), 401

        g.current_user_role = role
        g.api_key = api_key
        return None

    logger.info("Auth middleware installed (enabled=%s)", _is_auth_enabled())
