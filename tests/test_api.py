"""Tests for the FastAPI routes."""

import tempfile

import pytest
from fastapi.testclient import TestClient

from automod.rules.models import ContentAuthor, ContentItem, TargetType
from web.backend.app.main import app
from web.backend.app.services import build_services, get_services

MODERATOR = {"X-User-Id": "mod1", "X-User-Roles": "moderator"}
MEMBER = {"X-User-Id": "writer", "X-User-Roles": "member"}

SPAM_RULE = {
    "name": "Spam keywords",
    "trigger_type": "KEYWORD_MATCH",
    "target_types": ["POST"],
    "conditions": [{"type": "KEYWORD", "operator": "CONTAINS", "value": "spam"}],
    "actions": [{"type": "FLAG"}],
}


@pytest.fixture
def services():
    with tempfile.TemporaryDirectory() as tmp:
        svc = build_services(tmp)
        app.dependency_overrides[get_services] = lambda: svc
        yield svc
        app.dependency_overrides.clear()


@pytest.fixture
def client(services):
    return TestClient(app)


def _post(text="buy cheap spam now"):
    return {"id": "post-1", "target_type": "POST", "author": {"id": "u1"}, "text": text}


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_create_rule_requires_moderator(client):
    assert client.post("/api/rules", json=SPAM_RULE).status_code == 401
    assert client.post("/api/rules", json=SPAM_RULE, headers=MEMBER).status_code == 403
    resp = client.post("/api/rules", json=SPAM_RULE, headers=MODERATOR)
    assert resp.status_code == 201
    body = resp.json()
    assert body["created_by"] == "mod1"
    assert body["priority"] == 5


def test_invalid_rule_returns_all_errors(client):
    resp = client.post("/api/rules", json=dict(SPAM_RULE, conditions=[], actions=[]), headers=MODERATOR)
    assert resp.status_code == 400
    assert resp.json()["errors"] == [
        "Conditions must be a non-empty array",
        "Actions must be a non-empty array",
    ]


def test_rule_crud(client):
    rule_id = client.post("/api/rules", json=SPAM_RULE, headers=MODERATOR).json()["id"]

    assert client.get(f"/api/rules/{rule_id}").json()["name"] == "Spam keywords"
    updated = client.put(f"/api/rules/{rule_id}", json={"priority": 9}, headers=MODERATOR)
    assert updated.json()["priority"] == 9
    toggled = client.put(f"/api/rules/{rule_id}/toggle", json={}, headers=MODERATOR)
    assert toggled.json()["is_active"] is False
    assert client.get("/api/rules", params={"is_active": True}).json() == []

    assert client.delete(f"/api/rules/{rule_id}", headers=MODERATOR).json() == {"ok": True}
    assert client.get(f"/api/rules/{rule_id}").status_code == 404


def test_bulk_priority(client):
    a = client.post("/api/rules", json=dict(SPAM_RULE, name="A"), headers=MODERATOR).json()["id"]
    b = client.post("/api/rules", json=dict(SPAM_RULE, name="B"), headers=MODERATOR).json()["id"]
    resp = client.post("/api/rules/bulk/priority", json={"priorities": {a: 1, b: 7}}, headers=MODERATOR)
    assert resp.status_code == 200
    assert [r["name"] for r in client.get("/api/rules").json()] == ["B", "A"]


def test_validate_endpoint(client):
    resp = client.post("/api/rules/validate", json=dict(SPAM_RULE, target_types=["PIGEON"]))
    assert resp.json() == {"is_valid": False, "errors": ["Invalid target type: PIGEON"]}


def test_test_rule_endpoint(client):
    rule_id = client.post("/api/rules", json=SPAM_RULE, headers=MODERATOR).json()["id"]
    resp = client.post(f"/api/rules/{rule_id}/test", json=_post())
    assert resp.json()["matched"] is True
    assert resp.json()["recommended_actions"] == ["FLAG"]


def test_execute_flags_spam_and_records_it(client, services):
    client.post("/api/rules", json=SPAM_RULE, headers=MODERATOR)

    resp = client.post("/api/moderation/execute", json={"content": _post()}, headers=MODERATOR)
    body = resp.json()
    assert body["recommendation"] == "REVIEW"
    assert body["summary"]["rules_triggered"] == 1
    assert body["final_actions"] == ["FLAG"]
    assert "post-1" in services.content.flagged

    records = client.get("/api/moderation/records").json()
    assert len(records) == 1
    assert records[0]["status"] == "COMPLETED"
    stats = client.get("/api/moderation/stats", params={"rule_id": records[0]["rule_id"]}).json()
    assert stats["total"] == 1
    assert stats["success_rate"] == 1.0


def test_execute_clean_content(client):
    client.post("/api/rules", json=SPAM_RULE, headers=MODERATOR)
    resp = client.post("/api/moderation/execute", json={"content": _post("hello world")}, headers=MODERATOR)
    assert resp.json()["recommendation"] == "APPROVE"
    assert client.get("/api/moderation/records").json() == []


def test_simulate_does_not_record(client):
    client.post("/api/rules", json=SPAM_RULE, headers=MODERATOR)
    resp = client.post("/api/moderation/simulate", json=_post())
    assert resp.json()["summary"]["rules_triggered"] == 1
    assert client.get("/api/moderation/records").json() == []


def test_workflow_review_flow(client, services):
    services.content.add(
        ContentItem(id="article-1", target_type=TargetType.POST, author=ContentAuthor(id="writer"))
    )
    created = client.post(
        "/api/workflows",
        json={"content_id": "article-1", "proposed_changes": {"title": "Better title"}},
        headers=MEMBER,
    )
    assert created.status_code == 201
    wf_id = created.json()["id"]
    assert created.json()["status"] == "pending"

    # Members cannot review
    assert client.post(f"/api/workflows/{wf_id}/approve", json={}, headers=MEMBER).status_code == 403

    approved = client.post(f"/api/workflows/{wf_id}/approve", json={}, headers=MODERATOR)
    assert approved.json()["status"] == "approved"
    assert approved.json()["review_comments"] == "Approved"

    again = client.post(f"/api/workflows/{wf_id}/reject", json={"comment": "no"}, headers=MODERATOR)
    assert again.status_code == 409

    done = client.post(f"/api/workflows/{wf_id}/complete", headers=MODERATOR)
    assert done.json()["status"] == "completed"
    assert services.content.applied["article-1"] == {"title": "Better title"}


def test_workflow_reject_needs_comment(client, services):
    services.content.add(
        ContentItem(id="article-1", target_type=TargetType.POST, author=ContentAuthor(id="writer"))
    )
    wf_id = client.post("/api/workflows", json={"content_id": "article-1"}, headers=MEMBER).json()["id"]
    assert client.post(f"/api/workflows/{wf_id}/reject", json={}, headers=MODERATOR).status_code == 400

    rejected = client.post(
        f"/api/workflows/{wf_id}/reject", json={"comment": "needs more detail"}, headers=MODERATOR
    )
    assert rejected.json()["status"] == "rejected"
    assert client.post(f"/api/workflows/{wf_id}/approve", json={}, headers=MODERATOR).status_code == 409
    assert client.get("/api/workflows/pending/count").json() == {"count": 0}


def test_unknown_workflow_is_404(client):
    assert client.get("/api/workflows/missing").status_code == 404


def test_workflow_for_unknown_content_is_404(client):
    resp = client.post("/api/workflows", json={"content_id": "does-not-exist"}, headers=MEMBER)
    assert resp.status_code == 404
    assert client.get("/api/workflows").json() == []
