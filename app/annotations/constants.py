"""Comment status and content-kind constants shared by models and engine."""

STATUS_ACTIVE = "active"
STATUS_RESOLVED = "resolved"
STATUS_ARCHIVED = "archived"

COMMENT_STATUSES = frozenset({STATUS_ACTIVE, STATUS_RESOLVED, STATUS_ARCHIVED})

CONTENT_TEXT = "text"
CONTENT_IMAGE = "image"
CONTENT_SUGGESTION = "suggestion"

CONTENT_TYPES = frozenset({CONTENT_TEXT, CONTENT_IMAGE, CONTENT_SUGGESTION})

PRIORITIES = frozenset({"low", "normal", "high", "urgent", "critical"})

ADMIN_COMMENT_TYPES = frozenset({
    "admin_note",
    "approval_comment",
    "priority_comment",
    "review_comment",
    "escalation_comment",
})
