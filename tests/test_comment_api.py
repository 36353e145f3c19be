"""
Comment API Tests — HTTP surface of the comment blueprint.

Auth is disabled in the testing config, so the role comes from
``X-User-Role`` and the acting user from ``X-User-Id``.
"""

from app.models.comment import CommentStatusHistory
from app.services import comment_service

BASE = "/api/v1"


def _headers(user_id="user-1", role="editor", name="Ada"):
    headers = {"X-User-Role": role}
    if user_id:
        headers["X-User-Id"] = user_id
    if name:
        headers["X-User-Name"] = name
    return headers


def _create(client, document_id="doc-1", **payload):
    payload.setdefault("content", "Looks off")
    res = client.post(f"{BASE}/documents/{document_id}/comments", json=payload, headers=_headers())
    assert res.status_code == 201, res.get_json()
    return res.get_json()


# ═══════════════════════════════════════════════════════════════════════════
# Document comments
# ═══════════════════════════════════════════════════════════════════════════


class TestDocumentComments:

    def test_create_and_list_threads(self, client):
        root = _create(client, selected_text="teh", selection_start=4, selection_end=7)
        assert root["status"] == "active"
        assert root["author_name"] == "Ada"
        _create(client, content="Agreed", parent_comment_id=root["id"])

        res = client.get(f"{BASE}/documents/doc-1/comments", headers=_headers())
        data = res.get_json()
        assert res.status_code == 200
        assert data["total"] == 2
        assert len(data["comments"]) == 1
        assert data["comments"][0]["reply_count"] == 1
        assert data["comments"][0]["replies"][0]["content"] == "Agreed"

    def test_flat_list_with_status_filter(self, client):
        _create(client)
        res = client.get(f"{BASE}/documents/doc-1/comments?flat=1&status=resolved", headers=_headers())
        assert res.get_json() == {"comments": [], "total": 0}

    def test_invalid_status_filter(self, client):
        res = client.get(f"{BASE}/documents/doc-1/comments?status=open", headers=_headers())
        assert res.status_code == 422

    def test_with_metrics(self, client):
        c = _create(client)
        client.post(f"{BASE}/comments/{c['id']}/resolve", json={"template_id": "addressed"}, headers=_headers())
        res = client.get(f"{BASE}/documents/doc-1/comments?with_metrics=1", headers=_headers())
        [thread] = res.get_json()["comments"]
        assert thread["metrics"]["resolution_count"] == 1

    def test_create_requires_user(self, client):
        res = client.post(
            f"{BASE}/documents/doc-1/comments",
            json={"content": "hi"},
            headers=_headers(user_id=None),
        )
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_NOT_AUTHENTICATED"

    def test_create_validation(self, client):
        res = client.post(f"{BASE}/documents/doc-1/comments", json={"content": ""}, headers=_headers())
        assert res.status_code == 422

    def test_create_reply_to_unknown_parent(self, client):
        res = client.post(
            f"{BASE}/documents/doc-1/comments",
            json={"content": "reply", "parent_comment_id": "ghost"},
            headers=_headers(),
        )
        assert res.status_code == 404

    def test_admin_metadata_must_be_object(self, client):
        res = client.post(
            f"{BASE}/documents/doc-1/comments",
            json={"content": "x", "admin_metadata": "nope"},
            headers=_headers(role="admin"),
        )
        assert res.status_code == 400

    def test_non_json_body_rejected(self, client):
        res = client.post(
            f"{BASE}/documents/doc-1/comments",
            data="content=hi",
            content_type="application/x-www-form-urlencoded",
            headers=_headers(),
        )
        assert res.status_code == 415

    def test_selection(self, client):
        _create(client, selected_text="abc", selection_start=10, selection_end=13)
        res = client.get(f"{BASE}/documents/doc-1/comments/selection?start=11&end=12", headers=_headers())
        assert len(res.get_json()["comments"]) == 1

        res = client.get(f"{BASE}/documents/doc-1/comments/selection?start=x&end=2", headers=_headers())
        assert res.status_code == 400
        res = client.get(f"{BASE}/documents/doc-1/comments/selection", headers=_headers())
        assert res.status_code == 400

    def test_delete_all_requires_admin(self, client):
        _create(client)
        res = client.delete(f"{BASE}/documents/doc-1/comments", headers=_headers(role="editor"))
        assert res.status_code == 403

        res = client.delete(f"{BASE}/documents/doc-1/comments", headers=_headers(role="admin"))
        assert res.get_json() == {"deleted": 1}

    def test_auto_resolve(self, client, make_comment):
        make_comment(age_days=45)
        _create(client)
        res = client.post(
            f"{BASE}/documents/doc-1/comments/auto-resolve", json={"days": 30}, headers=_headers(),
        )
        assert res.get_json() == {"resolved": 1, "days_threshold": 30}

    def test_auto_resolve_bad_days(self, client):
        res = client.post(
            f"{BASE}/documents/doc-1/comments/auto-resolve", json={"days": "soon"}, headers=_headers(),
        )
        assert res.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
# Single comment
# ═══════════════════════════════════════════════════════════════════════════


class TestSingleComment:

    def test_get_and_not_found(self, client):
        c = _create(client)
        assert client.get(f"{BASE}/comments/{c['id']}", headers=_headers()).status_code == 200

        res = client.get(f"{BASE}/comments/ghost", headers=_headers())
        assert res.status_code == 404
        assert res.get_json()["details"] == {"resource_id": "ghost"}

    def test_author_can_edit(self, client):
        c = _create(client)
        res = client.patch(f"{BASE}/comments/{c['id']}", json={"content": "Edited"}, headers=_headers())
        assert res.status_code == 200
        assert res.get_json()["content"] == "Edited"

    def test_other_user_cannot_edit(self, client):
        c = _create(client)
        res = client.patch(
            f"{BASE}/comments/{c['id']}", json={"content": "Hijack"}, headers=_headers(user_id="user-2"),
        )
        assert res.status_code == 403

    def test_admin_can_edit(self, client):
        c = _create(client)
        res = client.patch(
            f"{BASE}/comments/{c['id']}", json={"content": "Moderated"},
            headers=_headers(user_id="admin-1", role="admin"),
        )
        assert res.status_code == 200

    def test_edit_requires_content(self, client):
        c = _create(client)
        res = client.patch(f"{BASE}/comments/{c['id']}", json={}, headers=_headers())
        assert res.status_code == 400

    def test_delete_rules(self, client):
        c = _create(client)
        res = client.delete(f"{BASE}/comments/{c['id']}", headers=_headers(user_id="user-2", role="viewer"))
        assert res.status_code == 403

        res = client.delete(f"{BASE}/comments/{c['id']}", headers=_headers(user_id="user-2", role="editor"))
        assert res.get_json() == {"deleted": c["id"]}


# ═══════════════════════════════════════════════════════════════════════════
# Lifecycle
# ═══════════════════════════════════════════════════════════════════════════


class TestLifecycleEndpoints:

    def test_change_status(self, client):
        c = _create(client)
        res = client.post(
            f"{BASE}/comments/{c['id']}/status",
            json={"status": "resolved", "reason": "done"},
            headers=_headers(),
        )
        data = res.get_json()
        assert res.status_code == 200
        assert data["previous_status"] == "active"
        assert data["new_status"] == "resolved"
        assert data["changed"] is True
        assert CommentStatusHistory.query.filter_by(comment_id=c["id"]).count() == 1

    def test_viewer_cannot_change_status(self, client):
        c = _create(client)
        res = client.post(
            f"{BASE}/comments/{c['id']}/status",
            json={"status": "resolved"},
            headers=_headers(role="viewer"),
        )
        assert res.status_code == 403

    def test_invalid_status(self, client):
        c = _create(client)
        res = client.post(f"{BASE}/comments/{c['id']}/status", json={"status": "open"}, headers=_headers())
        assert res.status_code == 422
        res = client.post(f"{BASE}/comments/{c['id']}/status", json={}, headers=_headers())
        assert res.status_code == 400

    def test_resolve_with_template(self, client):
        c = _create(client)
        res = client.post(
            f"{BASE}/comments/{c['id']}/resolve", json={"template_id": "wont_fix"}, headers=_headers(),
        )
        assert res.get_json()["new_status"] == "resolved"
        history = client.get(f"{BASE}/comments/{c['id']}/history", headers=_headers()).get_json()["history"]
        assert history[0]["metadata"]["template_used"] == "wont_fix"
        assert history[0]["reason"]

    def test_bulk_status(self, client):
        a, b = _create(client), _create(client)
        client.post(f"{BASE}/comments/{b['id']}/status", json={"status": "resolved"}, headers=_headers())

        res = client.post(
            f"{BASE}/comments/bulk-status",
            json={"comment_ids": [a["id"], b["id"]], "status": "resolved"},
            headers=_headers(),
        )
        data = res.get_json()
        assert [c["comment_id"] for c in data["changed"]] == [a["id"]]
        assert data["unchanged"] == [b["id"]]

    def test_bulk_status_missing_id(self, client):
        a = _create(client)
        res = client.post(
            f"{BASE}/comments/bulk-status",
            json={"comment_ids": [a["id"], "ghost"], "status": "archived"},
            headers=_headers(),
        )
        assert res.status_code == 404
        assert res.get_json()["details"] == {"resource_id": ["ghost"]}

    def test_bulk_requires_ids(self, client):
        res = client.post(
            f"{BASE}/comments/bulk-status", json={"comment_ids": "x", "status": "resolved"}, headers=_headers(),
        )
        assert res.status_code == 400

    def test_bulk_resolve(self, client):
        a, b = _create(client), _create(client)
        res = client.post(
            f"{BASE}/comments/bulk-resolve",
            json={"comment_ids": [a["id"], b["id"]], "template_id": "duplicate"},
            headers=_headers(),
        )
        assert len(res.get_json()["changed"]) == 2

        res = client.post(
            f"{BASE}/comments/bulk-resolve", json={"comment_ids": [a["id"]]}, headers=_headers(),
        )
        assert res.status_code == 400

    def test_suggestions(self, client, make_comment):
        stale = make_comment(age_days=20)
        res = client.post(
            f"{BASE}/comments/suggestions", json={"comment_ids": [stale.id]}, headers=_headers(),
        )
        [suggestion] = res.get_json()["suggestions"]
        assert suggestion["comment_id"] == stale.id
        assert suggestion["action"]

    def test_templates(self, client):
        templates = client.get(f"{BASE}/comments/templates", headers=_headers()).get_json()["templates"]
        ids = {t["id"] for t in templates}
        assert {"addressed", "wont_fix", "duplicate", "out_of_scope", "clarified"} <= ids
        assert all(t["label"] and t["reason"] for t in templates)


# ═══════════════════════════════════════════════════════════════════════════
# Ledger
# ═══════════════════════════════════════════════════════════════════════════


class TestLedgerEndpoints:

    def test_history_not_found(self, client):
        assert client.get(f"{BASE}/comments/ghost/history", headers=_headers()).status_code == 404

    def test_stats(self, client):
        c = _create(client)
        client.post(f"{BASE}/comments/{c['id']}/status", json={"status": "resolved"}, headers=_headers())
        client.post(f"{BASE}/comments/{c['id']}/status", json={"status": "active"}, headers=_headers())

        res = client.post(f"{BASE}/comments/stats", json={"comment_ids": [c["id"]]}, headers=_headers())
        [stats] = res.get_json()["stats"]
        assert stats["resolution_count"] == 1
        assert stats["reopen_count"] == 1

    def test_timeline(self, client):
        c = _create(client)
        client.post(f"{BASE}/comments/{c['id']}/status", json={"status": "archived"}, headers=_headers())
        res = client.post(f"{BASE}/comments/timeline", json={"comment_ids": [c["id"]]}, headers=_headers())
        [day] = res.get_json()["timeline"]
        assert day["events"][0]["new_status"] == "archived"

    def test_timeline_bad_date(self, client):
        res = client.post(
            f"{BASE}/comments/timeline",
            json={"comment_ids": ["a"], "start": "yesterday"},
            headers=_headers(),
        )
        assert res.status_code == 400

    def test_resolution_analytics_default_window(self, client):
        c = _create(client)
        client.post(f"{BASE}/comments/{c['id']}/resolve", json={"reason": "fixed"}, headers=_headers())
        res = client.get(f"{BASE}/comments/analytics/resolutions", headers=_headers())
        data = res.get_json()
        assert res.status_code == 200
        assert data["total_resolutions"] == 1
        assert data["resolutions_by_user"][0]["user_name"] == "Ada"

    def test_resolution_analytics_bad_range(self, client):
        res = client.get(
            f"{BASE}/comments/analytics/resolutions?start=2026-03-10&end=2026-03-01", headers=_headers(),
        )
        assert res.status_code == 422

    def test_resolution_analytics_iso_dates_only(self, client):
        res = client.get(
            f"{BASE}/comments/analytics/resolutions?start=01.03.2026&end=2026-03-10", headers=_headers(),
        )
        assert res.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════════════════


class TestAutoResolveCommand:

    def test_cli_resolves_old_comments(self, app, make_comment, actor):
        make_comment(age_days=400)
        comment_service.create_comment("doc-1", "fresh", actor)
        runner = app.test_cli_runner()
        result = runner.invoke(args=["auto-resolve-comments", "doc-1", "--days", "365"])
        assert result.exit_code == 0
        assert "Auto-resolved 1 comment(s) on doc-1." in result.output
        history = CommentStatusHistory.query.all()
        assert [h.changed_by for h in history] == ["system"]

    def test_cli_rejects_negative_days(self, app):
        result = app.test_cli_runner().invoke(args=["auto-resolve-comments", "doc-1", "--days", "-1"])
        assert result.exit_code != 0
        assert "--days" in result.output


def test_health_live_skips_auth(client):
    res = client.get(f"{BASE}/health/live")
    assert res.status_code == 200
    assert res.headers.get("X-Request-ID")
