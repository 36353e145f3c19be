"""
Thread Assembler.

Organises a flat comment list into a reply forest.  Each node carries a
transitive ``reply_count`` (all descendants, not just direct replies).
Comments whose parent cannot be found (deleted parent, self reference, a
parent chain that loops) become roots instead of being dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ThreadNode:
    comment: Any
    replies: list["ThreadNode"] = field(default_factory=list)
    reply_count: int = 0

    @property
    def id(self):
        return self.comment.id

    def walk(self):
        """Yield this node and every descendant, depth first."""
        yield self
        for reply in self.replies:
            yield from reply.walk()

    def to_dict(self, serializer=None) -> dict:
        if serializer is not None:
            data = serializer(self.comment)
        else:
            data = self.comment.to_dict()
        data["replies"] = [r.to_dict(serializer) for r in self.replies]
        data["reply_count"] = self.reply_count
        return data


def _creation_order(comments: list) -> list:
    if all(getattr(c, "created_at", None) is not None for c in comments):
        return sorted(comments, key=lambda c: c.created_at)
    return list(comments)


def _in_cycle(comment_id, parents: dict) -> bool:
    seen = set()
    current = parents.get(comment_id)
    while current is not None and current not in seen:
        if current == comment_id:
            return True
        seen.add(current)
        current = parents.get(current)
    return False


def _count_replies(node: ThreadNode) -> int:
    count = len(node.replies)
    for reply in node.replies:
        count += _count_replies(reply)
    node.reply_count = count
    return count


def assemble(flat_comments) -> list[ThreadNode]:
    """Build the reply forest; roots and replies in creation order."""
    ordered = _creation_order(list(flat_comments))

    nodes: dict = {}
    for comment in ordered:
        nodes[comment.id] = ThreadNode(comment)

    parents = {
        c.id: c.parent_comment_id
        for c in ordered
        if c.parent_comment_id in nodes and c.parent_comment_id != c.id
    }

    roots: list[ThreadNode] = []
    for comment in ordered:
        node = nodes[comment.id]
        parent_id = parents.get(comment.id)
        if parent_id is None or _in_cycle(comment.id, parents):
            roots.append(node)
        else:
            nodes[parent_id].replies.append(node)

    for root in roots:
        _count_replies(root)
    return roots


def flatten(roots: list[ThreadNode]) -> list:
    """Inverse of :func:`assemble`: every comment exactly once."""
    return [node.comment for root in roots for node in root.walk()]
