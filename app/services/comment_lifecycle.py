"""
Comment Lifecycle Service — status transitions and the status history ledger.

States: active, resolved, archived.  Any status may follow any status; the
only rule is that a transition to the status a comment already has is a
no-op and leaves no history entry.

Every operation follows the same two-phase write:
  1. Status columns are updated and committed.  A failure here rolls back
     and raises StorageError.
  2. History rows for the comments that actually changed are appended and
     committed.  A failure here is logged and swallowed; the status change
     from phase 1 stands.

Operations:
    update_status, bulk_update_status, resolve_with_reason,
    bulk_resolve_with_template, auto_resolve_older_than, suggest_actions

Usage:
    from app.services.comment_lifecycle import update_status

    result = update_status("c-1", "resolved", actor_id="user-1",
                           reason="Fixed in draft 3")
"""

import logging
import math
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.annotations.constants import (
    COMMENT_STATUSES,
    CONTENT_SUGGESTION,
    STATUS_ACTIVE,
    STATUS_RESOLVED,
)
from app.core.exceptions import (
    NotAuthenticatedError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.models import db
from app.models.comment import (
    Comment,
    CommentStatusHistory,
    as_utc,
    write_status_history,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
DEFAULT_AUTO_RESOLVE_REASON = "Auto-resolved due to inactivity"

# Canned resolutions offered by the review UI.
RESOLUTION_TEMPLATES = {
    "addressed": {
        "label": "Addressed",
        "reason": "The feedback has been addressed in the document.",
    },
    "wont_fix": {
        "label": "Won't fix",
        "reason": "Reviewed and intentionally left unchanged.",
    },
    "duplicate": {
        "label": "Duplicate",
        "reason": "Covered by another comment.",
    },
    "out_of_scope": {
        "label": "Out of scope",
        "reason": "Outside the scope of this document.",
    },
    "clarified": {
        "label": "Clarified",
        "reason": "Question answered in the discussion.",
    },
}


# ── Helpers ──────────────────────────────────────────────────────────────────

def _now(now: datetime | None = None) -> datetime:
    return as_utc(now) if now is not None else datetime.now(timezone.utc)


def _age_days(since: datetime | None, now: datetime) -> float:
    if since is None:
        return 0.0
    return (now - as_utc(since)).total_seconds() / SECONDS_PER_DAY


def _whole_days(since: datetime | None, now: datetime) -> int:
    return math.floor(_age_days(since, now))


def _require_actor(actor_id) -> None:
    if not actor_id:
        raise NotAuthenticatedError()


def _validate_status(status: str) -> None:
    if status not in COMMENT_STATUSES:
        raise ValidationError(
            f"Invalid status: {status}",
            details={"status": status, "allowed": sorted(COMMENT_STATUSES)},
        )


def _template_reason(template_id: str | None, reason: str | None) -> str | None:
    if reason:
        return reason
    template = RESOLUTION_TEMPLATES.get(template_id or "")
    return template["reason"] if template else None


def _load_comments(comment_ids: list[str], *, bulk: bool) -> list[Comment]:
    """Load comments in request order; any missing id fails the whole call."""
    if not comment_ids:
        raise ValidationError("comment_ids must not be empty")
    rows = db.session.execute(
        select(Comment).where(Comment.id.in_(comment_ids))
    ).scalars().all()
    by_id = {c.id: c for c in rows}
    missing = [cid for cid in comment_ids if cid not in by_id]
    if missing:
        raise NotFoundError(resource="Comment", resource_id=missing if bulk else missing[0])
    return [by_id[cid] for cid in comment_ids]


def _record_history(changes: list[dict], new_status: str, actor_id: str,
                    reason: str | None, changed_at: datetime) -> int:
    """Append ledger rows.  Failures are logged; the status change is kept."""
    try:
        for change in changes:
            write_status_history(
                comment_id=change["comment_id"],
                old_status=change["old_status"],
                new_status=new_status,
                changed_by=actor_id,
                reason=reason,
                metadata=change["metadata"],
                changed_at=changed_at,
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.warning(
            "Status history write failed for %d comment(s); status change kept",
            len(changes),
            exc_info=True,
            extra={"actor_id": actor_id, "event_type": "status_history_failed"},
        )
        return 0
    return len(changes)


def _transition(
    comment_ids: list[str],
    new_status: str,
    actor_id: str,
    *,
    reason: str | None = None,
    metadata_for=None,
    bulk: bool = False,
    now: datetime | None = None,
) -> dict:
    """
    Shared transition primitive.

    ``metadata_for(comment, now)`` returns the history metadata for one
    changed comment, evaluated before the status is overwritten.
    """
    _require_actor(actor_id)
    _validate_status(new_status)

    ids = list(dict.fromkeys(comment_ids))
    comments = _load_comments(ids, bulk=bulk)
    changed_at = _now(now)

    changes = []
    for comment in comments:
        if comment.status == new_status:
            continue
        metadata = dict(metadata_for(comment, changed_at) or {}) if metadata_for else {}
        if bulk:
            metadata["bulk_operation"] = True
        changes.append({
            "comment_id": comment.id,
            "old_status": comment.status,
            "metadata": metadata or None,
        })
        comment.status = new_status

    if not changes:
        return {
            "new_status": new_status,
            "changed": [],
            "unchanged": ids,
            "history_recorded": 0,
        }

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(
            "Status update to '%s' failed", new_status,
            exc_info=True, extra={"actor_id": actor_id},
        )
        raise StorageError("Comment", "status update") from exc

    recorded = _record_history(changes, new_status, actor_id, reason, changed_at)

    changed_ids = [c["comment_id"] for c in changes]
    changed_set = set(changed_ids)
    logger.info(
        "Comment status -> %s (%d changed, %d unchanged)",
        new_status, len(changed_ids), len(ids) - len(changed_ids),
        extra={"actor_id": actor_id, "event_type": "status_change"},
    )
    return {
        "new_status": new_status,
        "changed": [
            {"comment_id": c["comment_id"], "previous_status": c["old_status"]}
            for c in changes
        ],
        "unchanged": [cid for cid in ids if cid not in changed_set],
        "history_recorded": recorded,
    }


def _single_result(comment_id: str, result: dict, current_status: str) -> dict:
    if result["changed"]:
        previous = result["changed"][0]["previous_status"]
    else:
        previous = current_status
    return {
        "comment_id": comment_id,
        "previous_status": previous,
        "new_status": result["new_status"],
        "changed": bool(result["changed"]),
        "history_recorded": bool(result["history_recorded"]),
    }


def _resolution_metadata(template_id: str | None):
    def _build(comment: Comment, now: datetime) -> dict:
        return {
            "template_used": template_id,
            "resolution_time_days": round(_age_days(comment.created_at, now), 4),
        }
    return _build


# ═════════════════════════════════════════════════════════════════════════════
# Transitions
# ═════════════════════════════════════════════════════════════════════════════

def update_status(comment_id: str, new_status: str, actor_id: str,
                  reason: str | None = None, *, now: datetime | None = None) -> dict:
    """
    Move one comment to ``new_status``.

    Returns:
        {"comment_id", "previous_status", "new_status", "changed", "history_recorded"}

    Raises:
        NotAuthenticatedError, ValidationError, NotFoundError, StorageError
    """
    result = _transition([comment_id], new_status, actor_id, reason=reason, now=now)
    return _single_result(comment_id, result, new_status)


def bulk_update_status(comment_ids: list[str], new_status: str, actor_id: str,
                       reason: str | None = None, *, now: datetime | None = None) -> dict:
    """
    Apply one target status to many comments.

    History entries are appended only for comments whose status actually
    changed; they share one timestamp and carry ``bulk_operation``.
    """
    return _transition(
        comment_ids, new_status, actor_id, reason=reason, bulk=True, now=now,
    )


def resolve_with_reason(comment_id: str, reason: str | None, actor_id: str,
                        template_id: str | None = None, *,
                        now: datetime | None = None) -> dict:
    """Resolve one comment, recording the template used and days open."""
    result = _transition(
        [comment_id], STATUS_RESOLVED, actor_id,
        reason=_template_reason(template_id, reason),
        metadata_for=_resolution_metadata(template_id),
        now=now,
    )
    return _single_result(comment_id, result, STATUS_RESOLVED)


def bulk_resolve_with_template(comment_ids: list[str], template_id: str,
                               reason: str | None, actor_id: str, *,
                               now: datetime | None = None) -> dict:
    """Resolve many comments with a shared template and reason."""
    return _transition(
        comment_ids, STATUS_RESOLVED, actor_id,
        reason=_template_reason(template_id, reason),
        metadata_for=_resolution_metadata(template_id),
        bulk=True,
        now=now,
    )


def auto_resolve_older_than(document_id: str, days_threshold: int = 30,
                            actor_id: str | None = None,
                            reason: str = DEFAULT_AUTO_RESOLVE_REASON, *,
                            now: datetime | None = None) -> int:
    """
    Resolve every active comment on a document created more than
    ``days_threshold`` days ago.

    Returns:
        Number of comments resolved.
    """
    _require_actor(actor_id)
    if days_threshold is None or days_threshold < 0:
        raise ValidationError("days_threshold must be a non-negative number of days")

    current = _now(now)
    cutoff = current - timedelta(days=days_threshold)

    candidates = db.session.execute(
        select(Comment)
        .where(Comment.document_id == document_id, Comment.status == STATUS_ACTIVE)
        .order_by(Comment.created_at.asc())
    ).scalars().all()
    stale_ids = [c.id for c in candidates if as_utc(c.created_at) < cutoff]
    if not stale_ids:
        return 0

    def _auto_metadata(comment: Comment, at: datetime) -> dict:
        return {
            "auto_resolved": True,
            "resolution_time_days": _whole_days(comment.created_at, at),
        }

    result = _transition(
        stale_ids, STATUS_RESOLVED, actor_id,
        reason=reason or DEFAULT_AUTO_RESOLVE_REASON,
        metadata_for=_auto_metadata,
        bulk=True,
        now=current,
    )
    count = len(result["changed"])
    logger.info(
        "Auto-resolved %d comment(s) older than %d days", count, days_threshold,
        extra={"document_id": document_id, "actor_id": actor_id,
               "event_type": "auto_resolve"},
    )
    return count


# ═════════════════════════════════════════════════════════════════════════════
# Suggestions (advisory, read-only)
# ═════════════════════════════════════════════════════════════════════════════

def _suggest(comment: Comment, has_replies: bool, was_resolved: bool, now: datetime) -> dict:
    days_since_created = _whole_days(comment.created_at, now)
    days_since_updated = _whole_days(comment.updated_at or comment.created_at, now)

    if days_since_created > 30 and not has_replies:
        action, reason, confidence = "archive", "Old comment with no engagement", 0.8
    elif comment.content_type == CONTENT_SUGGESTION and days_since_updated >= 14:
        action, reason, confidence = "resolve", "Suggestion comment with no recent activity", 0.7
    elif was_resolved and days_since_updated >= 7:
        action, reason, confidence = (
            "archive", "Previously resolved comment with no recent activity", 0.9,
        )
    elif days_since_created > 14 and comment.status == STATUS_ACTIVE:
        action, reason, confidence = (
            "escalate", "Long-standing active comment needs attention", 0.6,
        )
    else:
        action, reason, confidence = "resolve", "General resolution candidate", 0.5

    return {
        "comment_id": comment.id,
        "action": action,
        "reason": reason,
        "confidence": confidence,
    }


def suggest_actions(comment_ids: list[str], *, now: datetime | None = None) -> list[dict]:
    """
    Suggest a next action for each comment.  Never mutates state.

    Unknown ids are skipped.  Rules are checked top to bottom and the first
    match wins.
    """
    ids = list(dict.fromkeys(comment_ids or []))
    if not ids:
        return []
    current = _now(now)

    comments = db.session.execute(
        select(Comment).where(Comment.id.in_(ids))
    ).scalars().all()
    by_id = {c.id: c for c in comments}

    reply_counts = dict(
        db.session.execute(
            select(Comment.parent_comment_id, func.count(Comment.id))
            .where(Comment.parent_comment_id.in_(ids))
            .group_by(Comment.parent_comment_id)
        ).all()
    )
    resolved_before = set(
        db.session.execute(
            select(CommentStatusHistory.comment_id)
            .where(
                CommentStatusHistory.comment_id.in_(ids),
                CommentStatusHistory.new_status == STATUS_RESOLVED,
            )
            .distinct()
        ).scalars().all()
    )

    return [
        _suggest(by_id[cid], reply_counts.get(cid, 0) > 0, cid in resolved_before, current)
        for cid in ids
        if cid in by_id
    ]
