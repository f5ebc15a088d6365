"""Tests for executing approved actions."""

from datetime import UTC, datetime, timedelta

import pytest

from cofounder.core.errors import InvalidTransitionError, NotFoundError
from cofounder.core.schemas_actions import ActionStatus, ActionType
from tests.fakes.fake_db import BUSINESS_ID, make_action


class TestExecute:
    def test_payment_reminder_sends_sms(self, engine, action_store, channel, execution_logs):
        action = make_action(action_store, status=ActionStatus.APPROVED)

        result = engine.executor.execute(action.id)

        assert result.success is True
        assert result.message == "Payment reminder sent to +15555550100"
        assert result.external_id == "SM0001"
        assert channel.sent == [("+15555550100", "Hi Dana, friendly reminder.")]

        stored = action_store.get(action.id)
        assert stored.status == ActionStatus.EXECUTED
        assert stored.executed_at == result.timestamp

        [entry] = execution_logs.entries
        assert entry.action_id == action.id
        assert entry.success is True
        assert entry.action_details["contact_phone"] == "+15555550100"

    def test_lead_response(self, engine, action_store, channel):
        action = make_action(action_store, ActionType.LEAD_RESPONSE, ActionStatus.APPROVED)

        result = engine.executor.execute(action.id)

        assert result.message == "Lead response sent to +15555550111"
        assert channel.sent == [("+15555550111", "Thanks for reaching out!")]

    def test_review_reply_is_stored_for_posting(self, engine, action_store, records, channel):
        action = make_action(action_store, ActionType.REVIEW_REPLY, ActionStatus.APPROVED)

        result = engine.executor.execute(action.id)

        assert result.success is True
        assert result.message.startswith("Review reply prepared for google.")
        assert records.replies == {"r-1": "Thank you!"}
        assert channel.sent == []

    def test_alert_is_acknowledged(self, engine, action_store):
        action = make_action(action_store, ActionType.ALERT, ActionStatus.APPROVED)
        assert engine.executor.execute(action.id).message == "Alert acknowledged"

    def test_schedule_optimization_has_no_channel(self, engine, action_store):
        action = make_action(action_store, ActionType.SCHEDULE_OPTIMIZATION, ActionStatus.APPROVED)

        result = engine.executor.execute(action.id)

        assert result.success is False
        assert action_store.get(action.id).status == ActionStatus.APPROVED

    @pytest.mark.parametrize("status", [ActionStatus.PENDING, ActionStatus.REJECTED, ActionStatus.EXECUTED])
    def test_requires_approval(self, engine, action_store, channel, status):
        action = make_action(action_store, status=status)

        with pytest.raises(InvalidTransitionError, match="must be approved"):
            engine.executor.execute(action.id)

        assert channel.sent == []

    def test_missing_action(self, engine):
        with pytest.raises(NotFoundError):
            engine.executor.execute("missing")


class TestFailures:
    def test_missing_content(self, engine, action_store, channel):
        action = make_action(
            action_store, status=ActionStatus.APPROVED, details={"suggested_message": ""}
        )

        result = engine.executor.execute(action.id)

        assert result.success is False
        assert result.message == "Missing phone number or message content"
        assert channel.sent == []

    def test_channel_error_keeps_action_retryable(self, engine, action_store, channel, execution_logs):
        action = make_action(action_store, status=ActionStatus.APPROVED)
        channel.fail = True

        failed = engine.executor.execute(action.id)

        assert failed.success is False
        assert "503" in failed.message
        stored = action_store.get(action.id)
        assert stored.status == ActionStatus.APPROVED
        assert stored.execution_result.success is False

        channel.fail = False
        retried = engine.executor.retry(action.id)

        assert retried.success is True
        assert action_store.get(action.id).status == ActionStatus.EXECUTED
        assert [e.success for e in execution_logs.entries] == [False, True]

    def test_log_failure_does_not_fail_execution(self, engine, action_store, execution_logs):
        action = make_action(action_store, status=ActionStatus.APPROVED)
        execution_logs.fail_writes = True

        assert engine.executor.execute(action.id).success is True
        assert action_store.get(action.id).status == ActionStatus.EXECUTED


class TestOutcome:
    def test_success_records_decision_outcome(self, engine, records, ledger):
        invoice = records.add_invoice(sent_at=datetime.now(UTC) - timedelta(days=10))
        action = engine.factory.generate_payment_reminder(invoice)
        engine.lifecycle.approve(action.id)

        result = engine.executor.execute(action.id)

        assert ledger.get(action.decision_id).outcome == result.message

    def test_failure_leaves_outcome_open(self, engine, records, ledger, channel):
        invoice = records.add_invoice(sent_at=datetime.now(UTC) - timedelta(days=10))
        action = engine.factory.generate_payment_reminder(invoice)
        engine.lifecycle.approve(action.id)
        channel.fail = True

        engine.executor.execute(action.id)

        assert ledger.get(action.decision_id).outcome is None


class TestBatch:
    def test_execute_many_reports_each_item(self, engine, action_store):
        approved = make_action(action_store, status=ActionStatus.APPROVED)
        pending = make_action(action_store)

        batch = engine.executor.execute_many([approved.id, pending.id, "missing"])

        assert [r.success for r in batch.results] == [True, False, False]
        assert batch.success_count == 1
        assert batch.message == "Executed 1/3 actions"
        assert "must be approved" in batch.results[1].error
        assert batch.results[2].error is not None

    def test_execute_all_approved(self, engine, action_store):
        for _ in range(2):
            make_action(action_store, status=ActionStatus.APPROVED)
        make_action(action_store)
        make_action(action_store, status=ActionStatus.APPROVED, business_id="someone-else")

        batch = engine.executor.execute_all_approved(BUSINESS_ID)

        assert batch.success_count == 2
        assert engine.lifecycle.stats(BUSINESS_ID).executed == 2

    def test_execute_all_respects_limit(self, engine, action_store):
        engine.executor.execute_all_limit = 1
        for _ in range(3):
            make_action(action_store, status=ActionStatus.APPROVED)

        batch = engine.executor.execute_all_approved(BUSINESS_ID)

        assert len(batch.results) == 1

    def test_nothing_to_execute(self, engine):
        batch = engine.executor.execute_all_approved(BUSINESS_ID)
        assert batch.results == []
        assert batch.message == "No approved actions to execute"


class TestHistory:
    def test_filters_by_type(self, engine, action_store):
        engine.executor.execute(make_action(action_store, status=ActionStatus.APPROVED).id)
        engine.executor.execute(
            make_action(action_store, ActionType.ALERT, ActionStatus.APPROVED).id
        )

        history = engine.executor.execution_history(BUSINESS_ID, action_type="alert")

        assert [e.action_type for e in history] == [ActionType.ALERT]
        assert len(engine.executor.execution_history(BUSINESS_ID)) == 2
