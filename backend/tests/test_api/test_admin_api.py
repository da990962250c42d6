"""Tests for the admin dashboard API."""
import json
from unittest.mock import AsyncMock, patch

import pytest

from feedback_portal.services.webhook_registry import webhook_registry

SUBMISSION = {
    "category": "facilities",
    "feedbackType": "concern",
    "subject": "Parking lot lighting",
    "description": "Half of the lights in the north parking lot have been out for a week.",
}
FLAGGED = {**SUBMISSION, "description": "Click here for free money http://spam.example.com"}


def _submit(client, payload=SUBMISSION):
    resp = client.post("/api/feedback", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["id"]


class TestReferenceData:
    def test_category_crud(self, client):
        resp = client.post("/api/admin/categories", json={"name": "Work Environment", "label": "Work Environment"})
        assert resp.status_code == 201
        category = resp.json()["data"]
        assert category["name"] == "work-environment"
        assert category["isActive"] is True

        dup = client.post("/api/admin/categories", json={"name": "work environment", "label": "Dup"})
        assert dup.status_code == 409

        resp = client.patch(f"/api/admin/categories/{category['id']}", json={"label": "Workplace"})
        assert resp.json()["data"]["label"] == "Workplace"

        assert [c["label"] for c in client.get("/api/admin/categories").json()["data"]] == ["Workplace"]
        assert client.delete(f"/api/admin/categories/{category['id']}").status_code == 200
        assert client.delete(f"/api/admin/categories/{category['id']}").status_code == 404

    def test_deleting_category_keeps_feedback(self, client):
        category = client.post("/api/admin/categories", json={"name": "facilities", "label": "Facilities"}).json()["data"]
        feedback_id = _submit(client)
        client.delete(f"/api/admin/categories/{category['id']}")

        data = client.get(f"/api/feedback/{feedback_id}").json()["data"]
        assert data["categoryId"] is None

    def test_tag_crud(self, client):
        tag = client.post("/api/admin/tags", json={"name": "safety"}).json()["data"]
        other = client.post("/api/admin/tags", json={"name": "parking", "color": "#000000"}).json()["data"]
        assert other["color"] == "#000000"

        assert client.patch(f"/api/admin/tags/{other['id']}", json={"name": "safety"}).status_code == 409
        assert client.patch("/api/admin/tags/missing", json={"name": "x"}).status_code == 404
        assert client.delete(f"/api/admin/tags/{tag['id']}").status_code == 200

    def test_question_validation(self, client):
        resp = client.post("/api/admin/questions", json={"questionText": "Shift?", "questionType": "select"})
        assert resp.status_code == 400

        resp = client.post("/api/admin/questions", json={"questionText": "Rate us", "questionType": "rating"})
        assert resp.status_code == 201
        question = resp.json()["data"]
        assert (question["minValue"], question["maxValue"]) == (1, 5)

        resp = client.patch(f"/api/admin/questions/{question['id']}", json={"isActive": False})
        assert resp.json()["data"]["isActive"] is False

    @pytest.mark.parametrize("body", [{"isActive": None}, {"label": None}, {"sortOrder": None}])
    def test_category_null_patch_is_rejected(self, client, body):
        category = client.post("/api/admin/categories", json={"name": "hr", "label": "HR"}).json()["data"]
        resp = client.patch(f"/api/admin/categories/{category['id']}", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Invalid value for")

        stored = client.get("/api/admin/categories").json()["data"][0]
        assert (stored["label"], stored["isActive"]) == ("HR", True)

    def test_null_patch_on_tag_and_branding_is_rejected(self, client):
        tag = client.post("/api/admin/tags", json={"name": "safety"}).json()["data"]
        assert client.patch(f"/api/admin/tags/{tag['id']}", json={"color": None}).status_code == 400
        assert client.put("/api/admin/branding", json={"siteName": None}).status_code == 400
        # Nullable columns may still be cleared
        assert client.put("/api/admin/branding", json={"logoUrl": None}).status_code == 200

    def test_question_patch_must_stay_answerable(self, client):
        rating = client.post(
            "/api/admin/questions", json={"questionText": "Rate us", "questionType": "rating"},
        ).json()["data"]
        choice = client.post(
            "/api/admin/questions",
            json={"questionText": "Shift?", "questionType": "select", "options": ["Day", "Night"]},
        ).json()["data"]

        resp = client.patch(f"/api/admin/questions/{rating['id']}", json={"minValue": 5})
        assert resp.status_code == 400
        assert resp.json() == {"error": "min_value must be lower than max_value"}
        resp = client.patch(f"/api/admin/questions/{choice['id']}", json={"options": []})
        assert resp.status_code == 400
        assert client.patch(f"/api/admin/questions/{choice['id']}", json={"options": None}).status_code == 400

        questions = {q["id"]: q for q in client.get("/api/admin/questions").json()["data"]}
        assert questions[rating["id"]]["minValue"] == 1
        assert questions[choice["id"]]["options"] == ["Day", "Night"]

        resp = client.patch(f"/api/admin/questions/{rating['id']}", json={"minValue": 0, "maxValue": 10})
        assert resp.status_code == 200
        assert (resp.json()["data"]["minValue"], resp.json()["data"]["maxValue"]) == (0, 10)

    def test_branding(self, client):
        assert client.get("/api/admin/branding").json()["data"]["primaryColor"] == "#10b981"
        resp = client.put("/api/admin/branding", json={"siteName": "Acme Voice", "primaryColor": "#111111"})
        data = resp.json()["data"]
        assert data["siteName"] == "Acme Voice"
        assert data["primaryColor"] == "#111111"
        assert client.get("/api/admin/branding").json()["data"]["siteName"] == "Acme Voice"


class TestModeration:
    def test_queue_and_stats(self, client):
        _submit(client)
        flagged_id = _submit(client, FLAGGED)

        queue = client.get("/api/admin/moderation/queue").json()["data"]
        assert [f["id"] for f in queue] == [flagged_id]
        assert queue[0]["moderationFlags"] == ["potential_spam"]

        stats = client.get("/api/admin/moderation/stats").json()["data"]
        assert stats == {"total": 2, "pending": 0, "flagged": 1, "approved": 1, "rejected": 0}

    def test_single_decision(self, client):
        flagged_id = _submit(client, FLAGGED)
        resp = client.post(
            f"/api/admin/feedback/{flagged_id}/moderation", json={"status": "rejected", "reason": "Spam"},
        )
        data = resp.json()["data"]
        assert data["moderationStatus"] == "rejected"
        assert data["adminNotes"][-1].endswith("Rejected: Spam")

        assert client.post(
            "/api/admin/feedback/missing/moderation", json={"status": "approved"},
        ).status_code == 404

    def test_bulk_with_partial_failure(self, client):
        a = _submit(client, FLAGGED)
        b = _submit(client, FLAGGED)

        resp = client.post("/api/admin/moderation/bulk", json={"ids": [a, b], "status": "approved"})
        assert resp.json() == {"success": True, "data": {"succeeded": [a, b], "failed": []}}

        resp = client.post("/api/admin/moderation/bulk", json={"ids": [a, "missing"], "status": "rejected"})
        body = resp.json()
        assert resp.status_code == 200
        assert body["success"] is False
        assert body["data"] == {"succeeded": [a], "failed": ["missing"]}

    def test_bulk_rejects_non_terminal_status(self, client):
        a = _submit(client, FLAGGED)
        resp = client.post("/api/admin/moderation/bulk", json={"ids": [a], "status": "pending"})
        assert resp.status_code == 400


class TestFeedbackExtras:
    def test_notes_tags_delete(self, client):
        client.post("/api/admin/tags", json={"name": "safety"})
        feedback_id = _submit(client)

        resp = client.post(f"/api/admin/feedback/{feedback_id}/notes", json={"note": "Escalated"})
        assert resp.json()["data"]["adminNotes"][0].endswith("Escalated")

        resp = client.put(f"/api/admin/feedback/{feedback_id}/tags", json={"tags": ["safety", "ghost"]})
        assert resp.json()["data"]["tags"] == ["safety"]

        assert client.delete(f"/api/admin/feedback/{feedback_id}").status_code == 200
        assert client.get(f"/api/feedback/{feedback_id}").status_code == 404

    def test_report_without_provider(self, client):
        _submit(client)
        resp = client.post("/api/admin/reports", json={})
        assert resp.json() == {"success": False, "report": None, "itemCount": 1}


class TestNotificationSettings:
    def test_masked_listing(self, client):
        resp = client.put(
            "/api/admin/notifications/telegram",
            json={"isEnabled": True, "config": {"bot_token": "123456789:AAFakeTokenForTests", "chat_id": "42"}},
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["config"]["bot_token"].endswith("ests")
        assert "AAFake" not in json.dumps(resp.json())

        listed = client.get("/api/admin/notifications").json()["data"]
        telegram = next(s for s in listed if s["notificationType"] == "telegram")
        assert telegram["isEnabled"] is True
        assert "AAFake" not in json.dumps(listed)

    def test_invalid_config(self, client):
        resp = client.put("/api/admin/notifications/slack", json={"isEnabled": True, "config": {"webhook_url": "nope"}})
        assert resp.status_code == 400
        assert "webhook_url" in resp.json()["error"]

    def test_unknown_channel(self, client):
        assert client.put("/api/admin/notifications/pager", json={"isEnabled": True}).status_code == 400

    def test_telegram_test_needs_token(self, client):
        resp = client.post("/api/admin/notifications/telegram/test", json={"chatId": "42"})
        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert "Bot token is required" in resp.json()["message"]


class TestWebhooks:
    def test_register_and_list(self, client):
        resp = client.post("/api/webhooks", json={"url": "https://hooks.example.com/in"})
        assert resp.json() == {
            "success": True,
            "message": "Webhook registered",
            "webhooks": ["https://hooks.example.com/in"],
        }
        assert client.get("/api/webhooks").json()["webhooks"] == ["https://hooks.example.com/in"]

    def test_invalid_url(self, client):
        assert client.post("/api/webhooks", json={"url": "not a url"}).status_code == 400

    def test_submission_triggers_registered_webhooks(self, client):
        client.post("/api/webhooks", json={"url": "https://hooks.example.com/in"})
        with patch.object(webhook_registry, "trigger", new=AsyncMock(return_value=1)) as trigger:
            _submit(client)
        assert trigger.call_args.args[0] == "feedback.submitted"
