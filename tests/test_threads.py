"""
Thread assembler tests.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.annotations.threads import ThreadNode, assemble, flatten

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


@dataclass
class FakeComment:
    id: str
    parent_comment_id: str | None = None
    created_at: datetime | None = None

    def to_dict(self):
        return {"id": self.id, "parent_comment_id": self.parent_comment_id}


def _c(cid, parent=None, minute=0):
    return FakeComment(cid, parent, T0 + timedelta(minutes=minute))


def _ids(nodes):
    return [n.id for n in nodes]


def _descendants(node):
    return {n.id for n in node.walk()} - {node.id}


class TestAssemble:

    def test_chain_a_b_c(self):
        roots = assemble([_c("A", None, 0), _c("B", "A", 1), _c("C", "B", 2)])
        assert _ids(roots) == ["A"]
        a = roots[0]
        assert a.reply_count == 2
        assert _ids(a.replies) == ["B"]
        assert _ids(a.replies[0].replies) == ["C"]
        assert a.replies[0].reply_count == 1
        assert a.replies[0].replies[0].reply_count == 0

    def test_roots_in_creation_order(self):
        roots = assemble([_c("late", minute=5), _c("early", minute=1), _c("mid", minute=3)])
        assert _ids(roots) == ["early", "mid", "late"]

    def test_replies_in_creation_order(self):
        roots = assemble([_c("r2", "A", 3), _c("A", None, 0), _c("r1", "A", 1)])
        assert _ids(roots[0].replies) == ["r1", "r2"]

    def test_missing_parent_becomes_root(self):
        roots = assemble([_c("A", None, 0), _c("orphan", "deleted", 1)])
        assert _ids(roots) == ["A", "orphan"]

    def test_self_reference_becomes_root(self):
        roots = assemble([_c("A", "A", 0)])
        assert _ids(roots) == ["A"]
        assert roots[0].reply_count == 0

    def test_cycle_members_become_roots(self):
        roots = assemble([_c("A", "B", 0), _c("B", "A", 1), _c("C", "A", 2)])
        assert _ids(roots) == ["A", "B"]
        assert _ids(roots[0].replies) == ["C"]

    def test_reply_count_equals_descendants(self):
        comments = [
            _c("A", None, 0), _c("B", "A", 1), _c("C", "A", 2),
            _c("D", "B", 3), _c("E", "D", 4), _c("F", None, 5), _c("G", "F", 6),
        ]
        for root in assemble(comments):
            for node in root.walk():
                assert node.reply_count == len(_descendants(node))

    def test_flatten_recovers_every_comment_once(self):
        comments = [
            _c("A", None, 0), _c("B", "A", 1), _c("C", "missing", 2),
            _c("D", "D", 3), _c("E", "F", 4), _c("F", "E", 5), _c("G", "E", 6),
        ]
        flat = flatten(assemble(comments))
        assert sorted(c.id for c in flat) == sorted(c.id for c in comments)
        assert len(flat) == len(comments)

    def test_empty(self):
        assert assemble([]) == []

    def test_without_timestamps_keeps_input_order(self):
        comments = [FakeComment("b"), FakeComment("a")]
        assert _ids(assemble(comments)) == ["b", "a"]


class TestThreadNode:

    def test_to_dict_nests_replies(self):
        roots = assemble([_c("A"), _c("B", "A", 1)])
        data = roots[0].to_dict()
        assert data["id"] == "A"
        assert data["reply_count"] == 1
        assert data["replies"][0]["id"] == "B"
        assert data["replies"][0]["replies"] == []

    def test_to_dict_with_serializer(self):
        node = ThreadNode(FakeComment("A"))
        data = node.to_dict(lambda c: {"key": c.id.lower()})
        assert data == {"key": "a", "replies": [], "reply_count": 0}
