"""
Hit-Test Router.

Given the element a pointer event struck and every element stacked under the
pointer, decide which comment (if any) owns the click.  Works over an
abstract element interface so it runs without a rendering surface.

Strategies, first success wins:
    1. direct   — the struck element carries the comment marker
    2. point    — first marked element under the pointer, front to back
    3. ancestor — bounded walk up from the struck element
Resolved comments never match.  ``None`` means the event is ordinary
document interaction and must not be consumed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from app.annotations.constants import STATUS_RESOLVED

logger = logging.getLogger(__name__)

# Elements examined by the ancestor walk, the struck element included.
MAX_ANCESTOR_DEPTH = 5


class RenderableElement(Protocol):
    """Anything the renderer can hand us: a marker and a parent link."""

    comment_id: str | None
    parent: "RenderableElement | None"


@dataclass
class ElementNode:
    """Concrete element used by the HTTP surface and tests."""
    comment_id: str | None = None
    parent: "ElementNode | None" = None
    tag: str = "span"

    @classmethod
    def from_chain(cls, chain: list[dict]) -> "ElementNode | None":
        """
        Build a node from ``[target, parent, grandparent, ...]`` dicts, each
        ``{"comment_id": ..., "tag": ...}``.  Returns the target node.
        Non-string markers are ignored.
        """
        node = None
        for entry in reversed(chain or []):
            comment_id = entry.get("comment_id")
            node = cls(
                comment_id=comment_id if isinstance(comment_id, str) and comment_id else None,
                parent=node,
                tag=entry.get("tag") or "span",
            )
        return node


def _index(comments) -> dict:
    return {c.id: c for c in comments}


def _live_comment(element, comments_by_id: dict):
    """Comment marked on *element* if it exists and is not resolved."""
    if element is None:
        return None
    comment_id = getattr(element, "comment_id", None)
    if not comment_id:
        return None
    comment = comments_by_id.get(comment_id)
    if comment is None:
        logger.debug("Marker for unknown comment %s ignored", comment_id)
        return None
    if comment.status == STATUS_RESOLVED:
        return None
    return comment


def route_hit(
    target: RenderableElement | None,
    elements_at_point=(),
    comments=(),
    *,
    max_depth: int = MAX_ANCESTOR_DEPTH,
):
    """
    Resolve a pointer event to a comment.

    Args:
        target: The element the event was dispatched to.
        elements_at_point: Every element under the pointer, topmost first.
        comments: The current comment snapshot.
        max_depth: Elements examined by the ancestor walk.

    Returns:
        The owning comment, or None.
    """
    by_id = _index(comments)

    comment = _live_comment(target, by_id)
    if comment is not None:
        logger.debug("Hit %s via direct target", comment.id)
        return comment

    for element in elements_at_point or ():
        comment = _live_comment(element, by_id)
        if comment is not None:
            logger.debug("Hit %s via point query", comment.id)
            return comment

    node = target
    for _ in range(max_depth):
        if node is None:
            break
        comment = _live_comment(node, by_id)
        if comment is not None:
            logger.debug("Hit %s via ancestor walk", comment.id)
            return comment
        node = getattr(node, "parent", None)

    return None
