"""
Decoration Compositor.

Turns the live comment set into independent highlight instructions for the
renderer.  Overlapping spans simply produce overlapping decorations; they are
emitted in input order and never merged.

Comments are duck-typed: anything exposing ``id``, ``status``, ``content``,
``anchor`` (an ``Anchor`` or None) and optionally ``author_name`` works, so
both ORM rows and plain test doubles can be composed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.annotations.anchoring import NOT_FOUND, DocumentTree, TextRange, resolve
from app.annotations.constants import STATUS_ARCHIVED, STATUS_RESOLVED

logger = logging.getLogger(__name__)

TRANSPARENT = "transparent"

# (normal, highlighted) background per status
_BACKGROUNDS = {
    STATUS_ARCHIVED: ("rgba(161, 161, 170, 0.15)", "rgba(161, 161, 170, 0.4)"),
    "default": ("rgba(254, 240, 138, 0.4)", "rgba(254, 240, 138, 0.7)"),
}

_BORDERS = {
    STATUS_RESOLVED: TRANSPARENT,
    STATUS_ARCHIVED: "#6b7280",
    "default": "#eab308",
}

DECORATION_CLASS = "comment-highlight"
TOOLTIP_CHARS = 100


@dataclass(frozen=True)
class Decoration:
    """One highlight draw instruction bound to a comment."""
    comment_id: str
    range: TextRange
    color: str
    border: str
    clickable: bool
    tooltip: str

    def to_dict(self) -> dict:
        return {
            "comment_id": self.comment_id,
            "range": self.range.to_dict(),
            "color": self.color,
            "border": self.border,
            "clickable": self.clickable,
            "tooltip": self.tooltip,
            "class": DECORATION_CLASS,
        }


def decoration_style(status: str, highlighted: bool = False) -> tuple[str, str, bool]:
    """Return ``(background, border, clickable)`` for a comment status."""
    if status == STATUS_RESOLVED:
        return TRANSPARENT, TRANSPARENT, False
    normal, strong = _BACKGROUNDS.get(status, _BACKGROUNDS["default"])
    border = _BORDERS.get(status, _BORDERS["default"])
    return (strong if highlighted else normal), border, True


def tooltip_for(comment, limit: int = TOOLTIP_CHARS) -> str:
    author = getattr(comment, "author_name", None) or "Unknown"
    content = comment.content or ""
    preview = content[:limit]
    if len(content) > limit:
        preview += "..."
    return f"Comment by {author}: {preview}"


def compose(
    comments,
    highlighted_id: str | None,
    tree: DocumentTree,
    *,
    tooltip_chars: int = TOOLTIP_CHARS,
) -> list[Decoration]:
    """
    Build decorations for every comment whose anchor resolves in *tree*.

    Resolved comments are inert and never decorated.  Orphaned anchors are
    skipped without error; the comment stays visible in thread views.
    """
    decorations: list[Decoration] = []
    for comment in comments:
        if comment.status == STATUS_RESOLVED:
            continue
        anchor = getattr(comment, "anchor", None)
        if anchor is None:
            continue

        found = resolve(tree, anchor)
        if found is NOT_FOUND:
            logger.debug("Comment %s is orphaned, no decoration", comment.id)
            continue

        color, border, clickable = decoration_style(
            comment.status, highlighted=(highlighted_id == comment.id),
        )
        decorations.append(Decoration(
            comment_id=comment.id,
            range=found,
            color=color,
            border=border,
            clickable=clickable,
            tooltip=tooltip_for(comment, tooltip_chars),
        ))
    return decorations
