"""HTTP-level tests for the v1 API over an in-memory engine."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from cofounder.api.errors import http_error
from cofounder.core.engine import get_engine
from cofounder.core.errors import InvalidPreferenceError
from cofounder.core.schemas_actions import ActionStatus
from cofounder.core.schemas_preferences import PreferenceCategory
from cofounder.main import app
from tests.fakes.fake_db import BUSINESS_ID, make_action


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def log_decision(client, text="I'll take care of that for you") -> str:
    response = client.post(
        "/v1/decisions",
        json={
            "business_id": BUSINESS_ID,
            "type": "message_response",
            "context": {"inbound_message": "Can you fix my sink?"},
            "decision": text,
            "reasoning": "Customer asked for help",
        },
    )
    assert response.status_code == 201
    return response.json()["id"]


class TestDecisionEndpoints:
    def test_log_and_get(self, client):
        decision_id = log_decision(client)

        response = client.get(f"/v1/decisions/{decision_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "message_response"
        assert data["context"]["inbound_message"] == "Can you fix my sink?"
        assert data["owner_feedback"] is None

    def test_log_and_get_keeps_nested_context(self, client):
        payload = {
            "business_id": BUSINESS_ID,
            "type": "message_response",
            "context": {
                "inbound_message": "Can you quote both jobs?",
                "items": [{"a": [1, 2]}, {"b": []}],
            },
            "decision": "Sure, sending both quotes now",
            "reasoning": "Customer asked for pricing",
        }
        decision_id = client.post("/v1/decisions", json=payload).json()["id"]

        data = client.get(f"/v1/decisions/{decision_id}").json()

        for field in ("business_id", "type", "decision", "reasoning"):
            assert data[field] == payload[field]
        assert data["context"]["items"] == [{"a": [1, 2]}, {"b": []}]
        assert data["context"]["inbound_message"] == "Can you quote both jobs?"
        assert data["outcome"] is None

    def test_get_missing(self, client):
        assert client.get("/v1/decisions/missing").status_code == 404

    def test_history_pending_filter(self, client):
        first = log_decision(client)
        log_decision(client, "See you Tuesday")
        client.post(
            f"/v1/decisions/{first}/feedback",
            json={"business_id": BUSINESS_ID, "feedback": "approved"},
        )

        response = client.get("/v1/decisions", params={"business_id": BUSINESS_ID, "feedback": "pending"})

        assert [d["decision"] for d in response.json()] == ["See you Tuesday"]

    def test_history_rejects_unknown_feedback(self, client):
        response = client.get("/v1/decisions", params={"business_id": BUSINESS_ID, "feedback": "maybe"})
        assert response.status_code == 400

    def test_feedback_returns_analysis(self, client):
        decision_id = log_decision(client)

        response = client.post(
            f"/v1/decisions/{decision_id}/feedback",
            json={"business_id": BUSINESS_ID, "feedback": "approved"},
        )

        assert response.status_code == 200
        updates = {u["preference"]: u for u in response.json()["preferences_updated"]}
        assert updates["collaborative"]["action"] == "create"
        assert updates["collaborative"]["new_confidence"] == 0.3

    def test_outcome_is_write_once(self, client):
        decision_id = log_decision(client)

        first = client.post(f"/v1/decisions/{decision_id}/outcome", json={"outcome": "Customer booked"})
        second = client.post(f"/v1/decisions/{decision_id}/outcome", json={"outcome": "Changed"})

        assert first.status_code == 200
        assert second.status_code == 409

    def test_feedback_on_missing_decision(self, client):
        response = client.post(
            "/v1/decisions/missing/feedback",
            json={"business_id": BUSINESS_ID, "feedback": "rejected"},
        )
        assert response.status_code == 404

    def test_feedback_for_another_business(self, client, ledger, preferences):
        decision_id = log_decision(client)

        response = client.post(
            f"/v1/decisions/{decision_id}/feedback",
            json={"business_id": "other-business", "feedback": "approved"},
        )

        assert response.status_code == 404
        assert ledger.get(decision_id).owner_feedback is None
        assert preferences.list("other-business") == []


class TestPreferenceEndpoints:
    def test_put_and_list(self, client):
        response = client.put(
            "/v1/preferences",
            json={
                "business_id": BUSINESS_ID,
                "category": "tone",
                "preference": "casual",
                "confidence": 0.7,
            },
        )
        assert response.status_code == 200

        listed = client.get("/v1/preferences", params={"business_id": BUSINESS_ID, "category": "tone"})

        assert [p["preference"] for p in listed.json()] == ["casual"]

    def test_put_rejects_zero_confidence(self, client):
        response = client.put(
            "/v1/preferences",
            json={"business_id": BUSINESS_ID, "category": "tone", "preference": "casual", "confidence": 0},
        )
        assert response.status_code == 422

    def test_decrease_until_deleted(self, client, preferences):
        pref = preferences.seed(PreferenceCategory.TONE, "casual", 0.3)

        first = client.post(f"/v1/preferences/{pref.id}/decrease")
        second = client.post(f"/v1/preferences/{pref.id}/decrease", json={"amount": 0.5})

        assert first.json()["deleted"] is False
        assert first.json()["preference"]["confidence"] == 0.1
        assert second.json() == {"deleted": True, "preference": None}

    def test_decrease_missing(self, client):
        assert client.post("/v1/preferences/missing/decrease").status_code == 404

    def test_reset_category(self, client, preferences):
        preferences.seed(PreferenceCategory.TONE, "casual", 0.5)
        preferences.seed(PreferenceCategory.TONE, "formal", 0.4)
        kept = preferences.seed(PreferenceCategory.TIMING, "immediate_response", 0.5)

        response = client.delete(
            "/v1/preferences", params={"business_id": BUSINESS_ID, "category": "tone"}
        )

        assert response.json() == {"success": True, "removed": 2}
        assert [p.id for p in preferences.list(BUSINESS_ID)] == [kept.id]


class TestLearningEndpoints:
    def test_alignment(self, client, preferences):
        preferences.seed(PreferenceCategory.URGENCY_THRESHOLD, "avoid:urgent", 0.8)

        response = client.post(
            "/v1/learning/alignment",
            json={
                "business_id": BUSINESS_ID,
                "proposed_decision": "This is urgent",
                "decision_type": "message_response",
            },
        )

        assert response.json()["alignment_score"] == 0.34
        assert len(response.json()["conflicts"]) == 1

    def test_insights_and_summary(self, client, preferences):
        preferences.seed(PreferenceCategory.TONE, "casual", 0.8)

        insights = client.get("/v1/learning/insights", params={"business_id": BUSINESS_ID}).json()
        summary = client.get("/v1/learning/summary", params={"business_id": BUSINESS_ID}).json()

        assert insights[0]["insight"] == "Prefers casual tone"
        assert "- PREFER: casual (tone, 80% confident)" in summary["summary"]


class TestActionEndpoints:
    def test_alert_lifecycle(self, client, execution_logs):
        created = client.post(
            "/v1/actions",
            json={
                "business_id": BUSINESS_ID,
                "type": "alert",
                "category": "cash_flow",
                "message": "Revenue down 20%",
            },
        )
        assert created.status_code == 201
        action_id = created.json()["action"]["id"]

        approved = client.post(f"/v1/actions/{action_id}/approve")
        assert approved.json()["status"] == "approved"

        executed = client.post("/v1/actions/execute", json={"action_id": action_id})
        assert executed.json()["result"]["message"] == "Alert acknowledged"

        history = client.get("/v1/actions/executions", params={"business_id": BUSINESS_ID})
        assert [e["action_id"] for e in history.json()] == [action_id]

    def test_create_requires_source_id(self, client):
        response = client.post("/v1/actions", json={"business_id": BUSINESS_ID, "type": "payment_reminder"})
        assert response.status_code == 400

    def test_create_unknown_type(self, client):
        response = client.post("/v1/actions", json={"business_id": BUSINESS_ID, "type": "teleport"})
        assert response.status_code == 400

    def test_create_for_missing_invoice(self, client):
        response = client.post(
            "/v1/actions",
            json={"business_id": BUSINESS_ID, "type": "payment_reminder", "invoice_id": "missing"},
        )
        assert response.status_code == 404

    def test_scan_reminders(self, client, records):
        records.add_invoice(amount_cents=60000, sent_at=datetime.now(UTC) - timedelta(days=35))

        response = client.post("/v1/actions", json={"business_id": BUSINESS_ID, "type": "scan_reminders"})

        assert response.status_code == 201
        [action] = response.json()["actions"]
        assert action["priority"] == "urgent"
        assert response.json()["failures"] == []

    def test_list_with_stats(self, client, action_store):
        make_action(action_store)
        make_action(action_store, status=ActionStatus.APPROVED)

        response = client.get(
            "/v1/actions", params={"business_id": BUSINESS_ID, "include_stats": True}
        )

        data = response.json()
        assert len(data["actions"]) == 1
        assert data["stats"]["pending"] == 1
        assert data["stats"]["approved"] == 1

    def test_bulk_approve(self, client, action_store):
        ids = [make_action(action_store).id for _ in range(2)]
        rejected = make_action(action_store, status=ActionStatus.REJECTED)

        response = client.post("/v1/actions/bulk-approve", json={"action_ids": ids + [rejected.id]})

        assert response.json()["updated"] == 2

    def test_bulk_requires_ids(self, client):
        assert client.post("/v1/actions/bulk-reject", json={"action_ids": []}).status_code == 422

    def test_invalid_transitions_are_conflicts(self, client, action_store):
        pending = make_action(action_store)
        rejected = make_action(action_store, status=ActionStatus.REJECTED)

        assert client.post("/v1/actions/execute", json={"action_id": pending.id}).status_code == 409
        assert client.post(f"/v1/actions/{rejected.id}/approve").status_code == 409
        assert client.post(f"/v1/actions/{pending.id}/revert").status_code == 409

    def test_missing_action(self, client):
        assert client.get("/v1/actions/missing").status_code == 404
        assert client.post("/v1/actions/missing/reject").status_code == 404

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"action_id": "a", "execute_all": True, "business_id": BUSINESS_ID},
            {"execute_all": True},
        ],
    )
    def test_execute_needs_one_mode(self, client, body):
        assert client.post("/v1/actions/execute", json=body).status_code == 400

    def test_execute_all_and_retry(self, client, action_store, channel):
        action = make_action(action_store, status=ActionStatus.APPROVED)
        channel.fail = True

        batch = client.post(
            "/v1/actions/execute", json={"execute_all": True, "business_id": BUSINESS_ID}
        ).json()
        assert batch["success_count"] == 0
        assert batch["message"] == "Executed 0/1 actions"

        channel.fail = False
        retried = client.post(f"/v1/actions/{action.id}/retry")
        assert retried.json()["success"] is True
        assert action_store.get(action.id).status == ActionStatus.EXECUTED


class TestErrorMapping:
    def test_invalid_preference_is_bad_request(self):
        error = http_error(InvalidPreferenceError("A new preference cannot start at confidence 0"))
        assert error.status_code == 400
