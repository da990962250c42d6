"""Tests for the public submission and tracking portal."""
import re

import pytest

from feedback_portal.schemas.configuration import (
    BrandingUpdate,
    CategoryCreate,
    CategoryUpdate,
    QuestionCreate,
    TagCreate,
)
from feedback_portal.services.config_repository import ConfigRepository

SUBMISSION = {
    "category": "facilities",
    "feedbackType": "suggestion",
    "subject": "More bike racks",
    "description": "The bike racks by the main entrance are always full before nine.",
    "urgency": "low",
}


@pytest.fixture
def repo(db_session):
    repo = ConfigRepository(db_session)
    repo.create_category(CategoryCreate(name="facilities", label="Facilities"))
    return repo


def _submit(client, **overrides):
    resp = client.post("/api/portal/submit", json={**SUBMISSION, **overrides})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _track(client, code):
    return client.post("/api/portal/track", json={"accessCode": code})


class TestForm:
    def test_only_active_reference_data(self, client, repo):
        hidden = repo.create_category(CategoryCreate(name="legacy", label="Legacy"))
        repo.update_category(hidden.id, CategoryUpdate(is_active=False))
        repo.create_tag(TagCreate(name="safety"))
        repo.create_question(QuestionCreate(question_text="Shift?", question_type="select", options=["day"]))

        data = client.get("/api/portal/form").json()["data"]
        assert [c["name"] for c in data["categories"]] == ["facilities"]
        assert [t["name"] for t in data["tags"]] == ["safety"]
        assert data["questions"][0]["options"] == ["day"]
        assert data["branding"]["siteName"] == "Anonymous Feedback Portal"

    def test_custom_branding(self, client, repo):
        repo.upsert_branding(BrandingUpdate(site_name="Acme Voice"))
        data = client.get("/api/portal/form").json()["data"]
        assert data["branding"]["siteName"] == "Acme Voice"


class TestSubmitAndTrack:
    def test_submit_then_track(self, client, repo):
        created = _submit(client)
        assert re.fullmatch(r"[A-Z2-9]{4}-[A-Z2-9]{4}-[A-Z2-9]{4}", created["accessCode"])
        assert created["trackingUrl"] == f"/track?code={created['accessCode']}"

        resp = _track(client, created["accessCode"])
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["id"] == created["id"]
        assert data["categoryLabel"] == "Facilities"
        assert data["status"] == "received"
        assert data["clarifications"] == []
        for private in ("accessCodeHash", "moderationStatus", "moderationFlags", "adminNotes", "aiSummary"):
            assert private not in data

    def test_code_is_case_and_dash_insensitive(self, client, repo):
        code = _submit(client)["accessCode"]
        assert _track(client, code.lower().replace("-", "")).status_code == 200

    def test_unknown_code(self, client, repo):
        _submit(client)
        resp = _track(client, "ABCD-EFGH-JKMN")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Feedback not found"}
        assert _track(client, "garbage").status_code == 404

    def test_question_answers_shown_when_tracking(self, client, repo):
        question = repo.create_question(QuestionCreate(question_text="Satisfaction?", question_type="rating"))
        code = _submit(client, questionResponses={question.id: {"type": "rating", "value": 5}})["accessCode"]

        responses = _track(client, code).json()["data"]["responses"]
        assert responses == [{
            "questionId": question.id,
            "questionText": "Satisfaction?",
            "questionType": "rating",
            "answer": 5,
        }]

    def test_invalid_answer_rejected(self, client, repo):
        question = repo.create_question(QuestionCreate(question_text="Satisfaction?", question_type="rating"))
        resp = client.post(
            "/api/portal/submit", json={**SUBMISSION, "questionResponses": {question.id: {"value": 9}}},
        )
        assert resp.status_code == 400
        assert "from 1 to 5" in resp.json()["error"]


class TestClarifications:
    def _ask(self, client, feedback_id, question="Which entrance?"):
        resp = client.patch(
            f"/api/feedback/{feedback_id}", json={"action": "request_clarification", "question": question},
        )
        assert resp.status_code == 200

    def test_answer_once(self, client, repo):
        created = _submit(client)
        self._ask(client, created["id"])

        clarification = _track(client, created["accessCode"]).json()["data"]["clarifications"][0]
        assert clarification["question"] == "Which entrance?"
        assert clarification["response"] is None

        url = f"/api/portal/clarifications/{clarification['id']}/respond"
        resp = client.post(url, json={"accessCode": created["accessCode"], "response": "The main one"})
        assert resp.status_code == 200
        assert resp.json()["data"]["response"] == "The main one"
        assert resp.json()["data"]["respondedAt"] is not None

        again = client.post(url, json={"accessCode": created["accessCode"], "response": "Changed my mind"})
        assert again.status_code == 409

        tracked = _track(client, created["accessCode"]).json()["data"]
        assert tracked["clarifications"][0]["response"] == "The main one"

    def test_mismatched_code_and_clarification(self, client, repo):
        mine = _submit(client)
        theirs = _submit(client)
        self._ask(client, theirs["id"])
        clarification_id = _track(client, theirs["accessCode"]).json()["data"]["clarifications"][0]["id"]

        resp = client.post(
            f"/api/portal/clarifications/{clarification_id}/respond",
            json={"accessCode": mine["accessCode"], "response": "Sneaky"},
        )
        assert resp.status_code == 404
        assert resp.json() == {"error": "Clarification not found"}

    def test_blank_response(self, client, repo):
        created = _submit(client)
        self._ask(client, created["id"])
        clarification_id = _track(client, created["accessCode"]).json()["data"]["clarifications"][0]["id"]

        resp = client.post(
            f"/api/portal/clarifications/{clarification_id}/respond",
            json={"accessCode": created["accessCode"], "response": "   "},
        )
        assert resp.status_code == 400
