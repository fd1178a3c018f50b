"""Tests for the /api/replace endpoints."""
from __future__ import annotations


def test_defaults(client):
    resp = client.get("/api/replace/defaults")
    assert resp.status_code == 200
    data = resp.json()
    assert data["search_term"] == ""
    assert data["dry_run"] is True
    assert data["tables"][0] == "course"
    assert "block_instances" in data["tables"]
    # Optional tables only when installed: the test schema has h5p, not hvp
    assert "h5p" in data["tables"]
    assert "hvp" not in data["tables"]


class TestScan:
    def test_scan_returns_items(self, client, course_page):
        resp = client.post("/api/replace/scan", json={"term": "world"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 1
        item = data["items"][0]
        assert item["item_key"] == "page|1|content"
        assert item["location"] == "Page: Welcome (in C101)"
        assert item["url"] == "http://lms.test/mod/page/view.php?id=42"
        assert item["occurrence_count"] == 1
        assert item["occurrences"][0] == {"position": 6, "context": "Hello World", "match": "World"}
        assert data["stats"]["items_found"] == 1
        assert data["output"][-1]["message"] == "Found 1 matching items in database"

    def test_scan_case_sensitive(self, client, course_page):
        resp = client.post("/api/replace/scan", json={"term": "world", "case_sensitive": True})
        assert resp.status_code == 200
        assert resp.json()["total"] == 0

    def test_scan_empty_term(self, client):
        resp = client.post("/api/replace/scan", json={"term": ""})
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Please enter a search text."

    def test_scan_missing_term(self, client):
        resp = client.post("/api/replace/scan", json={})
        assert resp.status_code == 422


class TestPreview:
    def test_preview_reports_without_writing(self, client, course_page, store):
        resp = client.post(
            "/api/replace/preview",
            json={"items": ["page|1|content"], "term": "world", "replacement_text": "There"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["dry_run"] is True
        assert data["log"][0]["status"] == "preview"
        assert data["summary"] == {"total": 1, "success": 1, "failed": 0}
        assert store.get_by_id("page", 1, "content") == "Hello World"

    def test_preview_requires_selection(self, client):
        resp = client.post(
            "/api/replace/preview",
            json={"items": [], "term": "world", "replacement_text": "There"},
        )
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Please select at least one item to update."


class TestExecute:
    def _body(self, **overrides):
        body = {
            "items": ["page|1|content"],
            "term": "world",
            "replacement_text": "There",
            "dry_run": False,
            "backup_confirmed": True,
            "user_id": "admin",
        }
        body.update(overrides)
        return body

    def test_execute_writes_and_audits(self, client, course_page, store):
        resp = client.post("/api/replace/execute", json=self._body())
        assert resp.status_code == 200
        data = resp.json()
        assert data["dry_run"] is False
        assert data["log"][0]["status"] == "success"
        assert data["occurrences_replaced"] == 1
        assert data["stats"]["items_replaced"] == 1
        assert store.get_by_id("page", 1, "content") == "Hello There"

        history = client.get("/api/replace/history").json()
        assert len(history) == 1
        assert history[0]["user_id"] == "admin"
        assert history[0]["search_term"] == "world"
        assert history[0]["items_replaced"] == 1

    def test_execute_requires_backup_confirmation(self, client, course_page, store):
        resp = client.post("/api/replace/execute", json=self._body(backup_confirmed=False))
        assert resp.status_code == 422
        assert "backup" in resp.json()["detail"]
        assert store.get_by_id("page", 1, "content") == "Hello World"

    def test_execute_empty_replacement(self, client, course_page):
        resp = client.post("/api/replace/execute", json=self._body(replacement_text=""))
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Please enter replacement text."

    def test_execute_defaults_to_dry_run(self, client, course_page, store):
        body = self._body()
        del body["dry_run"]
        del body["backup_confirmed"]
        resp = client.post("/api/replace/execute", json=body)
        assert resp.status_code == 200
        assert resp.json()["dry_run"] is True
        assert store.get_by_id("page", 1, "content") == "Hello World"

    def test_failed_item_reported(self, client, course_page):
        resp = client.post(
            "/api/replace/execute",
            json=self._body(items=["page|1|content", "page|99|content"]),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["summary"] == {"total": 2, "success": 1, "failed": 1}
        assert data["log"][1]["message"] == "Record not found"


def test_history_newest_first(client, course_page):
    for term in ("hello", "world"):
        client.post(
            "/api/replace/preview",
            json={"items": ["page|1|content"], "term": term, "replacement_text": "x"},
        )
    history = client.get("/api/replace/history", params={"limit": 1}).json()
    assert [h["search_term"] for h in history] == ["world"]
