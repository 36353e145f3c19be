"""
Comment Analytics Service — read-only views over the status history ledger.

Functions:
    get_status_history        → ledger of one comment, newest first
    get_status_change_stats   → per-comment transition counts and latency
    get_resolution_analytics  → resolutions in a period, by day / by user
    get_status_timeline       → transition events grouped by calendar day

Resolution latency is expressed in (fractional) days.
"""

import logging
from collections import Counter, OrderedDict
from datetime import datetime

from sqlalchemy import select

from app.annotations.constants import STATUS_ACTIVE, STATUS_ARCHIVED, STATUS_RESOLVED
from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.comment import Comment, CommentStatusHistory, as_utc, iso_utc

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
TOP_REASONS_LIMIT = 10


def _days_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() / SECONDS_PER_DAY


def _display_names(user_ids) -> dict[str, str]:
    """Best-effort id → display name, taken from comments those users wrote."""
    user_ids = {u for u in user_ids if u}
    if not user_ids:
        return {}
    rows = db.session.execute(
        select(Comment.user_id, Comment.author_name)
        .where(Comment.user_id.in_(user_ids), Comment.author_name.is_not(None))
        .order_by(Comment.created_at.asc())
    ).all()
    return {user_id: name for user_id, name in rows}


def _history_for(comment_ids, start=None, end=None, *, new_status=None):
    stmt = select(CommentStatusHistory)
    if comment_ids is not None:
        stmt = stmt.where(CommentStatusHistory.comment_id.in_(comment_ids))
    if new_status is not None:
        stmt = stmt.where(CommentStatusHistory.new_status == new_status)
    if start is not None:
        stmt = stmt.where(CommentStatusHistory.changed_at >= start)
    if end is not None:
        stmt = stmt.where(CommentStatusHistory.changed_at <= end)
    stmt = stmt.order_by(CommentStatusHistory.changed_at.asc(), CommentStatusHistory.id.asc())
    return list(db.session.execute(stmt).scalars().all())


# ═════════════════════════════════════════════════════════════════════════════
# Per-comment history
# ═════════════════════════════════════════════════════════════════════════════

def get_status_history(comment_id: str) -> list[dict]:
    """Ledger entries for one comment, newest first."""
    if db.session.get(Comment, comment_id) is None:
        raise NotFoundError(resource="Comment", resource_id=comment_id)
    rows = db.session.execute(
        select(CommentStatusHistory)
        .where(CommentStatusHistory.comment_id == comment_id)
        .order_by(CommentStatusHistory.changed_at.desc(), CommentStatusHistory.id.desc())
    ).scalars().all()
    return [r.to_dict() for r in rows]


def _average_resolution_time(comment: Comment, history: list[CommentStatusHistory]) -> float:
    """
    Mean days between each resolution and the latest earlier move into
    ``active``.  The comment's creation time stands in when no such move
    precedes a resolution.
    """
    durations = []
    opened_at = comment.created_at
    for entry in history:
        if entry.new_status == STATUS_ACTIVE:
            opened_at = entry.changed_at
        elif entry.new_status == STATUS_RESOLVED and opened_at is not None:
            durations.append(_days_between(opened_at, entry.changed_at))
    if not durations:
        return 0.0
    return sum(durations) / len(durations)


def get_status_change_stats(comment_ids: list[str]) -> list[dict]:
    """
    Transition statistics for each known comment in ``comment_ids``.

    Counts: resolution_count (→ resolved), reopen_count (resolved → active),
    archive_count (→ archived).
    """
    ids = list(dict.fromkeys(comment_ids or []))
    if not ids:
        return []

    comments = {
        c.id: c
        for c in db.session.execute(select(Comment).where(Comment.id.in_(ids))).scalars()
    }
    grouped: dict[str, list[CommentStatusHistory]] = {cid: [] for cid in comments}
    for entry in _history_for(list(comments)):
        grouped[entry.comment_id].append(entry)

    stats = []
    for cid in ids:
        comment = comments.get(cid)
        if comment is None:
            continue
        history = grouped[cid]
        stats.append({
            "comment_id": cid,
            "total_changes": len(history),
            "resolution_count": sum(1 for h in history if h.new_status == STATUS_RESOLVED),
            "reopen_count": sum(
                1 for h in history
                if h.old_status == STATUS_RESOLVED and h.new_status == STATUS_ACTIVE
            ),
            "archive_count": sum(1 for h in history if h.new_status == STATUS_ARCHIVED),
            "average_resolution_time": _average_resolution_time(comment, history),
            "last_status_change": iso_utc(history[-1].changed_at) if history else None,
            "status_history": [h.to_dict() for h in history],
        })
    return stats


# ═════════════════════════════════════════════════════════════════════════════
# Period analytics
# ═════════════════════════════════════════════════════════════════════════════

def _document_comment_ids(document_id: str) -> list[str]:
    return list(
        db.session.execute(
            select(Comment.id).where(Comment.document_id == document_id)
        ).scalars().all()
    )


def get_resolution_analytics(start: datetime, end: datetime,
                             document_id: str | None = None) -> dict:
    """
    Resolution analytics for ``[start, end]``, optionally scoped to one document.

    ``reopen_rate`` is the number of resolved → active transitions in the
    period as a percentage of resolutions in the period.
    """
    if start is None or end is None:
        raise ValidationError("start and end are required")
    if as_utc(start) > as_utc(end):
        raise ValidationError("start must not be after end")

    scope = _document_comment_ids(document_id) if document_id else None
    resolutions = _history_for(scope, start, end, new_status=STATUS_RESOLVED)
    reopens = [
        h for h in _history_for(scope, start, end, new_status=STATUS_ACTIVE)
        if h.old_status == STATUS_RESOLVED
    ]

    by_day: "OrderedDict[str, int]" = OrderedDict()
    by_user: Counter = Counter()
    reasons: Counter = Counter()
    durations = []
    for entry in resolutions:
        day = as_utc(entry.changed_at).date().isoformat()
        by_day[day] = by_day.get(day, 0) + 1
        by_user[entry.changed_by] += 1
        if entry.reason:
            reasons[entry.reason] += 1
        days = entry.change_metadata.get("resolution_time_days")
        if isinstance(days, (int, float)) and not isinstance(days, bool):
            durations.append(float(days))

    names = _display_names(by_user)
    total = len(resolutions)
    return {
        "total_resolutions": total,
        "average_resolution_time": sum(durations) / len(durations) if durations else 0.0,
        "resolutions_by_day": [{"date": d, "count": c} for d, c in by_day.items()],
        "resolutions_by_user": [
            {"user_id": uid, "user_name": names.get(uid, "Unknown"), "count": count}
            for uid, count in by_user.most_common()
        ],
        "reopen_rate": (len(reopens) / total) * 100 if total else 0.0,
        "top_resolution_reasons": [
            {"reason": reason, "count": count}
            for reason, count in reasons.most_common(TOP_REASONS_LIMIT)
        ],
    }


def get_status_timeline(comment_ids: list[str], start: datetime | None = None,
                        end: datetime | None = None) -> list[dict]:
    """Transition events for ``comment_ids`` grouped by ISO date, ascending."""
    ids = list(dict.fromkeys(comment_ids or []))
    if not ids:
        return []

    history = _history_for(ids, start, end)
    names = _display_names(h.changed_by for h in history)

    timeline: "OrderedDict[str, list]" = OrderedDict()
    for entry in history:
        day = as_utc(entry.changed_at).date().isoformat()
        timeline.setdefault(day, []).append({
            "comment_id": entry.comment_id,
            "old_status": entry.old_status,
            "new_status": entry.new_status,
            "changed_by": entry.changed_by,
            "user_name": names.get(entry.changed_by, "Unknown"),
            "changed_at": iso_utc(entry.changed_at),
            "reason": entry.reason,
        })
    return [{"date": day, "events": events} for day, events in sorted(timeline.items())]
