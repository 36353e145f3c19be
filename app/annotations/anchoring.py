"""
Anchor Resolver.

Re-locates a comment's captured text snapshot inside the current document
and translates the flat character offsets of the match into tree positions.

Only exact, case-sensitive substring matching is attempted.  When the same
text occurs more than once the first occurrence wins; two identical spans
cannot be told apart by their text alone.  A snapshot that no longer occurs
resolves to ``NOT_FOUND`` and the comment is treated as orphaned.

Usage:
    from app.annotations.anchoring import Anchor, DocumentTree, resolve, NOT_FOUND

    tree = DocumentTree.from_node_tree(editor_json)
    found = resolve(tree, Anchor("quick brown"))
    if found is NOT_FOUND:
        ...  # orphaned: keep the comment, skip the highlight
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Non-text nodes that occupy a single position and carry no content.
LEAF_NODE_TYPES = frozenset({
    "image",
    "hardBreak",
    "hard_break",
    "horizontalRule",
    "horizontal_rule",
})


# ═════════════════════════════════════════════════════════════════════════════
# Data Classes
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Anchor:
    """Immutable reference to a document span captured at comment creation.

    ``text`` is authoritative for re-location; ``start``/``end`` are the flat
    offsets at capture time and are kept as a hint only.
    """
    text: str
    start: int | None = None
    end: int | None = None

    def to_dict(self) -> dict:
        return {"text": self.text, "start": self.start, "end": self.end}


@dataclass(frozen=True)
class TextLeaf:
    """A text-bearing leaf: its text and the tree position of its first char."""
    text: str
    position: int


@dataclass(frozen=True)
class TextRange:
    """Resolved span: tree positions plus the flat offsets they came from."""
    start: int
    end: int
    flat_start: int
    flat_end: int

    def to_dict(self) -> dict:
        return {
            "start": self.start,
            "end": self.end,
            "flat_start": self.flat_start,
            "flat_end": self.flat_end,
        }


class _NotFound:
    """Sentinel returned when an anchor cannot be located."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()


# ═════════════════════════════════════════════════════════════════════════════
# Document tree
# ═════════════════════════════════════════════════════════════════════════════

class DocumentTree:
    """Ordered sequence of text leaves; read-only from the engine's side."""

    def __init__(self, leaves=()):
        self.leaves = tuple(leaves)

    @classmethod
    def from_plain_text(cls, text: str) -> "DocumentTree":
        """Single-leaf tree whose positions equal flat offsets."""
        if not text:
            return cls()
        return cls([TextLeaf(text, 0)])

    @classmethod
    def from_node_tree(cls, root: dict) -> "DocumentTree":
        """
        Build a tree from a nested editor JSON document.

        Nodes look like ``{"type": ..., "text": ..., "content": [...]}``.
        The root's content starts at position 0; every container node adds
        an opening and a closing position; text takes one position per
        character; atom nodes (images, breaks, rules) take exactly one.
        """
        leaves: list[TextLeaf] = []
        pos = 0
        for child in _children(root or {}):
            pos += _collect_leaves(child, pos, leaves)
        return cls(leaves)

    @property
    def text(self) -> str:
        return "".join(leaf.text for leaf in self.leaves)

    def flat_slice(self, text_range: TextRange) -> str:
        return self.text[text_range.flat_start:text_range.flat_end]

    def __len__(self) -> int:
        return sum(len(leaf.text) for leaf in self.leaves)

    def __repr__(self) -> str:
        return f"<DocumentTree leaves={len(self.leaves)} chars={len(self)}>"


def _collect_leaves(node, pos: int, leaves: list[TextLeaf]) -> int:
    """Append text leaves under *node* and return the node's size.

    Entries that are not node objects occupy no positions.
    """
    if not isinstance(node, dict):
        return 0
    node_type = node.get("type")
    if node_type == "text":
        text = node.get("text")
        if not isinstance(text, str):
            text = ""
        if text:
            leaves.append(TextLeaf(text, pos))
        return len(text)

    if node_type in LEAF_NODE_TYPES:
        return 1

    inner = pos + 1
    for child in _children(node):
        inner += _collect_leaves(child, inner, leaves)
    return inner - pos + 1


def _children(node: dict) -> list:
    content = node.get("content")
    return content if isinstance(content, list) else []


# ═════════════════════════════════════════════════════════════════════════════
# Resolution
# ═════════════════════════════════════════════════════════════════════════════

def resolve(tree: DocumentTree, anchor: Anchor | None):
    """
    Locate *anchor* inside *tree*.

    Returns:
        TextRange on success, ``NOT_FOUND`` otherwise.  Never raises for
        missing or changed text.
    """
    snapshot = anchor.text if anchor is not None else ""
    if not snapshot or not snapshot.strip():
        return NOT_FOUND

    flat = tree.text
    flat_start = flat.find(snapshot)
    if flat_start == -1:
        logger.debug("Anchor text not found in document: %r", snapshot[:50])
        return NOT_FOUND
    flat_end = flat_start + len(snapshot)

    start = end = None
    offset = 0
    for leaf in tree.leaves:
        length = len(leaf.text)
        if start is None and offset <= flat_start < offset + length:
            start = leaf.position + (flat_start - offset)
        if end is None and offset < flat_end <= offset + length:
            end = leaf.position + (flat_end - offset)
        offset += length
        if start is not None and end is not None:
            break

    if start is None or end is None:
        return NOT_FOUND
    return TextRange(start=start, end=end, flat_start=flat_start, flat_end=flat_end)
