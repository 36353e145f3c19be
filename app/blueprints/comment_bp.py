"""
Comment Blueprint — document comments, status lifecycle and ledger analytics.

Endpoint groups:
  Document comments    GET/POST/DELETE /api/v1/documents/<document_id>/comments
                       GET  /api/v1/documents/<document_id>/comments/selection
                       POST /api/v1/documents/<document_id>/comments/auto-resolve
  Single comment       GET/PATCH/DELETE /api/v1/comments/<comment_id>
  Lifecycle            POST /api/v1/comments/<comment_id>/status
                       POST /api/v1/comments/<comment_id>/resolve
                       POST /api/v1/comments/bulk-status
                       POST /api/v1/comments/bulk-resolve
                       POST /api/v1/comments/suggestions
                       GET  /api/v1/comments/templates
  Ledger               GET  /api/v1/comments/<comment_id>/history
                       POST /api/v1/comments/stats
                       POST /api/v1/comments/timeline
                       GET  /api/v1/comments/analytics/resolutions

The acting user comes from ``app.auth.get_current_actor`` (X-User-Id).
Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from flask import Blueprint, current_app, jsonify, request

from app.auth import get_current_actor, require_role
from app.core.exceptions import (
    NotAuthenticatedError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.services import comment_analytics, comment_lifecycle, comment_service
from app.utils.errors import E, api_error, domain_error
from app.utils.helpers import json_body, parse_datetime, parse_id_list, parse_int

logger = logging.getLogger(__name__)

comment_bp = Blueprint("comments", __name__, url_prefix="/api/v1")


# ── Error handlers ────────────────────────────────────────────────────────────


@comment_bp.errorhandler(NotFoundError)
@comment_bp.errorhandler(ValidationError)
@comment_bp.errorhandler(NotAuthenticatedError)
@comment_bp.errorhandler(StorageError)
def _handle_domain_error(error):
    return domain_error(error)


# ── Request helpers ───────────────────────────────────────────────────────────


def _flag(value) -> bool:
    return str(value or "").lower() in ("1", "true", "yes", "on")


# ═════════════════════════════════════════════════════════════════════════
# Document comments  (/api/v1/documents/<document_id>/comments)
# ═════════════════════════════════════════════════════════════════════════


@comment_bp.route("/documents/<document_id>/comments", methods=["GET"])
def list_comments(document_id):
    """List a document's comments.

    Query params:
        status         — active | resolved | archived
        flat=1         — flat list instead of threads
        with_metrics=1 — threads with per-comment resolution metrics
    """
    status = request.args.get("status") or None

    if _flag(request.args.get("with_metrics")):
        return jsonify({"comments": comment_service.get_comments_with_metrics(document_id)}), 200

    if _flag(request.args.get("flat")):
        comments = comment_service.list_document_comments(document_id, status=status)
        return jsonify({
            "comments": [c.to_dict() for c in comments],
            "total": len(comments),
        }), 200

    threads = comment_service.get_document_threads(document_id, status=status)
    return jsonify({
        "comments": [t.to_dict() for t in threads],
        "total": sum(1 + t.reply_count for t in threads),
    }), 200


@comment_bp.route("/documents/<document_id>/comments", methods=["POST"])
def create_comment(document_id):
    """Create a comment (or a reply via parent_comment_id).

    Body: {
        content, content_type?, selected_text?, selection_start?, selection_end?,
        parent_comment_id?, image_url?, priority?,
        admin_comment_type?, admin_metadata?
    }
    Returns: created comment (201).
    """
    actor = get_current_actor()
    data = json_body()

    admin_metadata = data.get("admin_metadata")
    if admin_metadata is not None and not isinstance(admin_metadata, dict):
        return api_error(E.VALIDATION_INVALID, "admin_metadata must be an object")

    comment = comment_service.create_comment(
        document_id,
        data.get("content") or "",
        actor,
        content_type=data.get("content_type") or "text",
        selected_text=data.get("selected_text"),
        selection_start=data.get("selection_start"),
        selection_end=data.get("selection_end"),
        parent_comment_id=data.get("parent_comment_id"),
        image_url=data.get("image_url"),
        priority=data.get("priority"),
        admin_comment_type=data.get("admin_comment_type"),
        admin_metadata=admin_metadata,
    )
    return jsonify(comment.to_dict()), 201


@comment_bp.route("/documents/<document_id>/comments", methods=["DELETE"])
@require_role("admin")
def delete_document_comments(document_id):
    """Delete every comment (and its history) on a document."""
    get_current_actor()
    deleted = comment_service.delete_all_for_document(document_id)
    return jsonify({"deleted": deleted}), 200


@comment_bp.route("/documents/<document_id>/comments/selection", methods=["GET"])
def comments_for_selection(document_id):
    """Active comments whose stored offsets overlap ?start=&end=."""
    try:
        start = parse_int(request.args.get("start"))
        end = parse_int(request.args.get("end"))
    except ValueError:
        return api_error(E.VALIDATION_INVALID, "start and end must be integers")
    if start is None or end is None:
        return api_error(E.VALIDATION_REQUIRED, "start and end are required")

    comments = comment_service.get_comments_for_selection(document_id, start, end)
    return jsonify({"comments": [c.to_dict() for c in comments]}), 200


@comment_bp.route("/documents/<document_id>/comments/auto-resolve", methods=["POST"])
@require_role("editor")
def auto_resolve(document_id):
    """Resolve active comments older than ``days`` (default from config).

    Body: { days?, reason? }
    """
    actor = get_current_actor()
    data = json_body()
    try:
        days = parse_int(data.get("days"), current_app.config["COMMENT_AUTO_RESOLVE_DAYS"])
    except (TypeError, ValueError):
        return api_error(E.VALIDATION_INVALID, "days must be an integer")

    count = comment_lifecycle.auto_resolve_older_than(
        document_id,
        days,
        actor.id,
        reason=data.get("reason") or comment_lifecycle.DEFAULT_AUTO_RESOLVE_REASON,
    )
    return jsonify({"resolved": count, "days_threshold": days}), 200


# ═════════════════════════════════════════════════════════════════════════
# Single comment  (/api/v1/comments/<comment_id>)
# ═════════════════════════════════════════════════════════════════════════


@comment_bp.route("/comments/<comment_id>", methods=["GET"])
def get_comment(comment_id):
    return jsonify(comment_service.get_comment(comment_id).to_dict()), 200


@comment_bp.route("/comments/<comment_id>", methods=["PATCH"])
def update_comment(comment_id):
    """Edit a comment's body.  Only the author or an admin may edit.

    Body: { content }
    """
    actor = get_current_actor()
    comment = comment_service.get_comment(comment_id)
    if comment.user_id != actor.id and not actor.is_admin:
        return api_error(E.FORBIDDEN, "Only the author can edit this comment")

    data = json_body()
    if "content" not in data:
        return api_error(E.VALIDATION_REQUIRED, "content is required")
    updated = comment_service.update_comment_content(comment_id, data.get("content"), actor.id)
    return jsonify(updated.to_dict()), 200


@comment_bp.route("/comments/<comment_id>", methods=["DELETE"])
def delete_comment(comment_id):
    """Delete a comment.  Authors may delete their own; editors any."""
    actor = get_current_actor()
    comment = comment_service.get_comment(comment_id)
    if comment.user_id != actor.id and actor.role not in ("admin", "editor"):
        return api_error(E.FORBIDDEN, "Insufficient permissions")
    comment_service.delete_comment(comment_id)
    return jsonify({"deleted": comment_id}), 200


# ═════════════════════════════════════════════════════════════════════════
# Lifecycle
# ═════════════════════════════════════════════════════════════════════════


@comment_bp.route("/comments/<comment_id>/status", methods=["POST"])
@require_role("editor")
def change_status(comment_id):
    """Body: { status, reason? }"""
    actor = get_current_actor()
    data = json_body()
    status = data.get("status")
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")

    result = comment_lifecycle.update_status(comment_id, status, actor.id, data.get("reason"))
    return jsonify(result), 200


@comment_bp.route("/comments/<comment_id>/resolve", methods=["POST"])
@require_role("editor")
def resolve_comment(comment_id):
    """Body: { reason?, template_id? }"""
    actor = get_current_actor()
    data = json_body()
    result = comment_lifecycle.resolve_with_reason(
        comment_id, data.get("reason"), actor.id, data.get("template_id"),
    )
    return jsonify(result), 200


@comment_bp.route("/comments/bulk-status", methods=["POST"])
@require_role("editor")
def bulk_status():
    """Body: { comment_ids: [...], status, reason? }"""
    actor = get_current_actor()
    data = json_body()
    ids, err = parse_id_list(data)
    if err:
        return api_error(E.VALIDATION_INVALID, err)
    status = data.get("status")
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")

    result = comment_lifecycle.bulk_update_status(ids, status, actor.id, data.get("reason"))
    return jsonify(result), 200


@comment_bp.route("/comments/bulk-resolve", methods=["POST"])
@require_role("editor")
def bulk_resolve():
    """Body: { comment_ids: [...], template_id, reason? }"""
    actor = get_current_actor()
    data = json_body()
    ids, err = parse_id_list(data)
    if err:
        return api_error(E.VALIDATION_INVALID, err)
    template_id = data.get("template_id")
    if not template_id:
        return api_error(E.VALIDATION_REQUIRED, "template_id is required")

    result = comment_lifecycle.bulk_resolve_with_template(
        ids, template_id, data.get("reason"), actor.id,
    )
    return jsonify(result), 200


@comment_bp.route("/comments/suggestions", methods=["POST"])
def suggestions():
    """Advisory next actions.  Body: { comment_ids: [...] }"""
    ids, err = parse_id_list(json_body())
    if err:
        return api_error(E.VALIDATION_INVALID, err)
    return jsonify({"suggestions": comment_lifecycle.suggest_actions(ids)}), 200


@comment_bp.route("/comments/templates", methods=["GET"])
def templates():
    return jsonify({
        "templates": [
            {"id": template_id, **template}
            for template_id, template in comment_lifecycle.RESOLUTION_TEMPLATES.items()
        ]
    }), 200


# ═════════════════════════════════════════════════════════════════════════
# Ledger
# ═════════════════════════════════════════════════════════════════════════


@comment_bp.route("/comments/<comment_id>/history", methods=["GET"])
def comment_history(comment_id):
    return jsonify({"history": comment_analytics.get_status_history(comment_id)}), 200


@comment_bp.route("/comments/stats", methods=["POST"])
def comment_stats():
    """Body: { comment_ids: [...] }"""
    ids, err = parse_id_list(json_body())
    if err:
        return api_error(E.VALIDATION_INVALID, err)
    return jsonify({"stats": comment_analytics.get_status_change_stats(ids)}), 200


@comment_bp.route("/comments/timeline", methods=["POST"])
def comment_timeline():
    """Body: { comment_ids: [...], start?, end? }"""
    data = json_body()
    ids, err = parse_id_list(data)
    if err:
        return api_error(E.VALIDATION_INVALID, err)
    start = parse_datetime(data.get("start"))
    end = parse_datetime(data.get("end"), end_of_day=True)
    if (data.get("start") and start is None) or (data.get("end") and end is None):
        return api_error(E.VALIDATION_INVALID, "start/end must be ISO dates")
    return jsonify({"timeline": comment_analytics.get_status_timeline(ids, start, end)}), 200


@comment_bp.route("/comments/analytics/resolutions", methods=["GET"])
def resolution_analytics():
    """Query params: start?, end? (ISO dates, default last 30 days), document_id?"""
    raw_start, raw_end = request.args.get("start"), request.args.get("end")
    end = parse_datetime(raw_end, end_of_day=True) if raw_end else datetime.now(timezone.utc)
    start = parse_datetime(raw_start) if raw_start else (end - timedelta(days=30) if end else None)
    if start is None or end is None:
        return api_error(E.VALIDATION_INVALID, "start/end must be ISO dates")

    analytics = comment_analytics.get_resolution_analytics(
        start, end, document_id=request.args.get("document_id") or None,
    )
    return jsonify(analytics), 200
