"""
Collaborative Annotation Engine
Comment domain models.

Models:
    - Comment: a remark on a document, optionally anchored to a text span
    - CommentStatusHistory: immutable, append-only ledger of status changes

A comment and its anchor live and die together.  Deleting a comment cascades
to its status history; history rows are otherwise never updated or deleted.
"""

import json
import uuid
from datetime import datetime, timezone

from app.annotations.anchoring import Anchor
from app.annotations.constants import CONTENT_TEXT, STATUS_ACTIVE
from app.models import db


# ── Helpers ──────────────────────────────────────────────────────────────────

def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on read; treat naive timestamps as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def iso_utc(value: datetime | None) -> str | None:
    """ISO-8601 string of *value* in UTC, or None."""
    value = as_utc(value)
    return value.isoformat() if value else None


def _loads(raw):
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None


# ═════════════════════════════════════════════════════════════════════════════
# Comment
# ═════════════════════════════════════════════════════════════════════════════

class Comment(db.Model):
    """
    A comment on a document.

    Anchor columns (selected_text / selection_start / selection_end) are
    written once at creation and never updated.  parent_comment_id is a
    plain indexed column: a deleted parent leaves the reference dangling and
    the thread assembler promotes such replies to roots.
    """

    __tablename__ = "comments"
    __table_args__ = (
        db.Index("idx_comment_document_status", "document_id", "status"),
        db.Index("idx_comment_document_created", "document_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    document_id = db.Column(db.String(64), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    author_name = db.Column(
        db.String(255), nullable=True,
        comment="Display name captured at creation time",
    )

    content = db.Column(db.Text, nullable=False, default="")
    content_type = db.Column(
        db.String(20), nullable=False, default=CONTENT_TEXT,
        comment="text | image | suggestion",
    )
    image_url = db.Column(db.String(500), nullable=True)

    # Anchor snapshot (immutable)
    selected_text = db.Column(db.Text, nullable=True)
    selection_start = db.Column(db.Integer, nullable=True)
    selection_end = db.Column(db.Integer, nullable=True)

    status = db.Column(
        db.String(20), nullable=False, default=STATUS_ACTIVE,
        comment="active | resolved | archived",
    )
    parent_comment_id = db.Column(db.String(36), nullable=True, index=True)

    # Triage metadata, not used by the engine core
    priority = db.Column(db.String(20), nullable=True)
    admin_comment_type = db.Column(db.String(40), nullable=True)
    admin_metadata_json = db.Column(db.Text, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow, onupdate=_utcnow,
    )

    # ── Relationships ────────────────────────────────────────────────────
    status_history = db.relationship(
        "CommentStatusHistory",
        backref="comment",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="CommentStatusHistory.changed_at",
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def anchor(self) -> Anchor | None:
        if not self.selected_text:
            return None
        return Anchor(self.selected_text, self.selection_start, self.selection_end)

    @property
    def admin_metadata(self) -> dict | None:
        return _loads(self.admin_metadata_json)

    def to_dict(self) -> dict:
        anchor = self.anchor
        return {
            "id": self.id,
            "document_id": self.document_id,
            "user_id": self.user_id,
            "author_name": self.author_name,
            "content": self.content,
            "content_type": self.content_type,
            "image_url": self.image_url,
            "selected_text": self.selected_text,
            "selection_start": self.selection_start,
            "selection_end": self.selection_end,
            "anchor": anchor.to_dict() if anchor is not None else None,
            "status": self.status,
            "parent_comment_id": self.parent_comment_id,
            "priority": self.priority,
            "admin_comment_type": self.admin_comment_type,
            "admin_metadata": self.admin_metadata,
            "created_at": iso_utc(self.created_at),
            "updated_at": iso_utc(self.updated_at),
        }

    def __repr__(self):
        return f"<Comment {self.id} [{self.status}] on {self.document_id}>"


# ═════════════════════════════════════════════════════════════════════════════
# CommentStatusHistory
# ═════════════════════════════════════════════════════════════════════════════

class CommentStatusHistory(db.Model):
    """
    One row per status transition.

    ``metadata_json`` carries structured context: template_used,
    resolution_time_days, bulk_operation, auto_resolved.
    """

    __tablename__ = "comment_status_history"
    __table_args__ = (
        db.Index("idx_status_history_comment", "comment_id", "changed_at"),
        db.Index("idx_status_history_new_status", "new_status", "changed_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    comment_id = db.Column(
        db.String(36),
        db.ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=False,
    )
    old_status = db.Column(db.String(20), nullable=False)
    new_status = db.Column(db.String(20), nullable=False)
    changed_by = db.Column(db.String(64), nullable=False)
    changed_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    reason = db.Column(db.Text, nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    @property
    def change_metadata(self) -> dict:
        return _loads(self.metadata_json) or {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "comment_id": self.comment_id,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "changed_by": self.changed_by,
            "changed_at": iso_utc(self.changed_at),
            "reason": self.reason,
            "metadata": self.change_metadata or None,
        }

    def __repr__(self):
        return (
            f"<CommentStatusHistory {self.id}: {self.comment_id} "
            f"{self.old_status}->{self.new_status}>"
        )


# ── Convenience writer ───────────────────────────────────────────────────────

def write_status_history(
    *,
    comment_id: str,
    old_status: str,
    new_status: str,
    changed_by: str,
    reason: str | None = None,
    metadata: dict | None = None,
    changed_at: datetime | None = None,
) -> CommentStatusHistory:
    """
    Append a single ledger row.  Uses ``flush`` so callers keep
    transaction control.
    """
    entry = CommentStatusHistory(
        comment_id=comment_id,
        old_status=old_status,
        new_status=new_status,
        changed_by=changed_by,
        changed_at=changed_at or _utcnow(),
        reason=reason or None,
        metadata_json=json.dumps(metadata, default=str) if metadata else None,
    )
    db.session.add(entry)
    db.session.flush()
    return entry
