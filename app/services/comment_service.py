"""
Comment Service — creation, lookup, threading and deletion.

Status changes do not happen here; they go through
``app.services.comment_lifecycle`` so that every transition is recorded in
the status history ledger.

Anchors (selected_text / selection_start / selection_end) are captured once
at creation.  ``update_comment_content`` changes only the body.

Usage:
    from app.services.comment_service import create_comment, get_document_threads

    comment = create_comment("doc-1", "Typo here", actor,
                             selected_text="teh", selection_start=4, selection_end=7)
    threads = get_document_threads("doc-1")
"""

import json
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.annotations.constants import (
    ADMIN_COMMENT_TYPES,
    CONTENT_IMAGE,
    CONTENT_TEXT,
    CONTENT_TYPES,
    COMMENT_STATUSES,
    PRIORITIES,
    STATUS_ACTIVE,
    STATUS_RESOLVED,
)
from app.annotations.threads import assemble
from app.core.exceptions import (
    NotAuthenticatedError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.models import db
from app.models.comment import Comment, CommentStatusHistory, iso_utc

logger = logging.getLogger(__name__)


# ── Internal helpers ─────────────────────────────────────────────────────────

def _require_comment(comment_id: str) -> Comment:
    comment = db.session.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError(resource="Comment", resource_id=comment_id)
    return comment


def _commit(operation: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Comment %s failed", operation, exc_info=True)
        raise StorageError("Comment", operation) from exc


def _validate_selection(selected_text, selection_start, selection_end) -> None:
    if selection_start is None and selection_end is None:
        return
    if selection_start is None or selection_end is None:
        raise ValidationError(
            "selection_start and selection_end must be provided together",
            details={"selection_start": selection_start, "selection_end": selection_end},
        )
    if not isinstance(selection_start, int) or not isinstance(selection_end, int):
        raise ValidationError("Selection offsets must be integers")
    if selection_start < 0 or selection_start > selection_end:
        raise ValidationError(
            "selection_start must be >= 0 and <= selection_end",
            details={"selection_start": selection_start, "selection_end": selection_end},
        )
    if not selected_text:
        raise ValidationError("selected_text is required when offsets are given")


# ═════════════════════════════════════════════════════════════════════════════
# Create / read
# ═════════════════════════════════════════════════════════════════════════════

def create_comment(
    document_id: str,
    content: str,
    actor,
    *,
    content_type: str = CONTENT_TEXT,
    selected_text: str | None = None,
    selection_start: int | None = None,
    selection_end: int | None = None,
    parent_comment_id: str | None = None,
    image_url: str | None = None,
    priority: str | None = None,
    admin_comment_type: str | None = None,
    admin_metadata: dict | None = None,
) -> Comment:
    """
    Create a new active comment.

    Args:
        document_id: Document the comment belongs to.
        content: Comment body.  May be empty only for image comments.
        actor: ``app.auth.Actor`` performing the action.
        parent_comment_id: Makes this a reply; the parent must exist on
            the same document.
        admin_comment_type / admin_metadata: Admin-only triage fields.
            Ignored for non-admin actors.

    Returns:
        The persisted Comment.

    Raises:
        NotAuthenticatedError, ValidationError, NotFoundError, StorageError
    """
    if actor is None or not getattr(actor, "id", None):
        raise NotAuthenticatedError()
    if not document_id:
        raise ValidationError("document_id is required")

    if content_type not in CONTENT_TYPES:
        raise ValidationError(
            f"Invalid content_type: {content_type}",
            details={"allowed": sorted(CONTENT_TYPES)},
        )
    content = (content or "").strip()
    if not content and not (content_type == CONTENT_IMAGE and image_url):
        raise ValidationError("content is required")
    if priority is not None and priority not in PRIORITIES:
        raise ValidationError(
            f"Invalid priority: {priority}",
            details={"allowed": sorted(PRIORITIES)},
        )

    _validate_selection(selected_text, selection_start, selection_end)

    if parent_comment_id:
        parent = db.session.get(Comment, parent_comment_id)
        if parent is None or parent.document_id != document_id:
            raise NotFoundError(resource="Parent comment", resource_id=parent_comment_id)

    metadata = None
    comment_type = None
    if actor.is_admin:
        if admin_comment_type is not None and admin_comment_type not in ADMIN_COMMENT_TYPES:
            raise ValidationError(
                f"Invalid admin_comment_type: {admin_comment_type}",
                details={"allowed": sorted(ADMIN_COMMENT_TYPES)},
            )
        comment_type = admin_comment_type
        metadata = admin_metadata if admin_comment_type else {"created_by_admin": True}

    comment = Comment(
        document_id=document_id,
        user_id=actor.id,
        author_name=actor.name,
        content=content,
        content_type=content_type,
        image_url=image_url,
        selected_text=selected_text or None,
        selection_start=selection_start,
        selection_end=selection_end,
        status=STATUS_ACTIVE,
        parent_comment_id=parent_comment_id or None,
        priority=priority,
        admin_comment_type=comment_type,
        admin_metadata_json=json.dumps(metadata) if metadata else None,
    )
    db.session.add(comment)
    _commit("create")

    logger.info(
        "Comment created",
        extra={"comment_id": comment.id, "document_id": document_id, "actor_id": actor.id},
    )
    return comment


def get_comment(comment_id: str) -> Comment:
    """Fetch a single comment or raise NotFoundError."""
    return _require_comment(comment_id)


def list_document_comments(document_id: str, status: str | None = None) -> list[Comment]:
    """Flat list of a document's comments, ascending by creation time."""
    stmt = select(Comment).where(Comment.document_id == document_id)
    if status is not None:
        if status not in COMMENT_STATUSES:
            raise ValidationError(
                f"Invalid status: {status}",
                details={"allowed": sorted(COMMENT_STATUSES)},
            )
        stmt = stmt.where(Comment.status == status)
    stmt = stmt.order_by(Comment.created_at.asc())
    return list(db.session.execute(stmt).scalars().all())


def get_document_threads(document_id: str, status: str | None = None):
    """A document's comments as a reply forest (list of ThreadNode)."""
    return assemble(list_document_comments(document_id, status=status))


def get_comments_for_selection(document_id: str, start: int, end: int) -> list[Comment]:
    """Active comments whose stored offsets overlap ``[start, end]``."""
    if start > end:
        start, end = end, start
    stmt = (
        select(Comment)
        .where(
            Comment.document_id == document_id,
            Comment.status == STATUS_ACTIVE,
            Comment.selection_start.is_not(None),
            Comment.selection_end.is_not(None),
            Comment.selection_start <= end,
            Comment.selection_end >= start,
        )
        .order_by(Comment.created_at.asc())
    )
    return list(db.session.execute(stmt).scalars().all())


# ═════════════════════════════════════════════════════════════════════════════
# Update / delete
# ═════════════════════════════════════════════════════════════════════════════

def update_comment_content(comment_id: str, content: str, actor_id: str) -> Comment:
    """Replace a comment's body.  Anchor and status are untouched."""
    if not actor_id:
        raise NotAuthenticatedError()
    comment = _require_comment(comment_id)

    content = (content or "").strip()
    if not content and not comment.image_url:
        raise ValidationError("content is required")

    comment.content = content
    _commit("update")
    logger.info(
        "Comment content updated",
        extra={"comment_id": comment_id, "actor_id": actor_id},
    )
    return comment


def delete_comment(comment_id: str) -> None:
    """
    Delete a comment and its status history.

    Replies are kept; their parent reference dangles and the thread
    assembler promotes them to roots.
    """
    comment = _require_comment(comment_id)
    document_id = comment.document_id
    db.session.delete(comment)
    _commit("delete")
    logger.info(
        "Comment deleted",
        extra={"comment_id": comment_id, "document_id": document_id},
    )


def delete_all_for_document(document_id: str) -> int:
    """Remove every comment of a document along with its history.  Returns the count."""
    ids = list(
        db.session.execute(
            select(Comment.id).where(Comment.document_id == document_id)
        ).scalars().all()
    )
    if not ids:
        return 0

    CommentStatusHistory.query.filter(
        CommentStatusHistory.comment_id.in_(ids)
    ).delete(synchronize_session=False)
    Comment.query.filter(Comment.id.in_(ids)).delete(synchronize_session=False)
    _commit("bulk delete")

    logger.info(
        "Deleted %d comments", len(ids),
        extra={"document_id": document_id},
    )
    return len(ids)


# ═════════════════════════════════════════════════════════════════════════════
# Threads with resolution metrics
# ═════════════════════════════════════════════════════════════════════════════

def _metrics_for(history: list[CommentStatusHistory]) -> dict:
    resolutions = [h for h in history if h.new_status == STATUS_RESOLVED]
    reopens = [
        h for h in history
        if h.old_status == STATUS_RESOLVED and h.new_status == STATUS_ACTIVE
    ]
    last = resolutions[-1] if resolutions else None
    return {
        "resolution_count": len(resolutions),
        "reopen_count": len(reopens),
        "last_resolved_at": iso_utc(last.changed_at) if last else None,
        "last_resolution_reason": last.reason if last else None,
    }


def get_comments_with_metrics(document_id: str) -> list[dict]:
    """
    Threaded comments of a document, each node carrying a ``metrics`` dict
    derived from its status history.
    """
    comments = list_document_comments(document_id)
    if not comments:
        return []

    history_by_comment: dict[str, list[CommentStatusHistory]] = {c.id: [] for c in comments}
    rows = db.session.execute(
        select(CommentStatusHistory)
        .where(CommentStatusHistory.comment_id.in_(list(history_by_comment)))
        .order_by(CommentStatusHistory.changed_at.asc(), CommentStatusHistory.id.asc())
    ).scalars().all()
    for row in rows:
        history_by_comment[row.comment_id].append(row)

    def _serialize(comment):
        data = comment.to_dict()
        data["metrics"] = _metrics_for(history_by_comment[comment.id])
        return data

    return [root.to_dict(_serialize) for root in assemble(comments)]
