"""Action executor: performs approved actions through their channels.

Channel errors never escape: they become a failed ExecutionResult and the
action stays approved so it can be retried. Each attempt is appended to
the execution history, best-effort.
"""

import logging
from datetime import UTC, datetime
from uuid import uuid4

from cofounder.core.action_lifecycle import ActionLifecycleManager
from cofounder.core.errors import CoFounderError, InvalidTransitionError
from cofounder.core.locks import KeyedLock
from cofounder.core.logging import get_logger, log_with_context
from cofounder.core.messaging import MessageChannel
from cofounder.core.schemas_actions import (
    ActionFilters,
    ActionStatus,
    ActionType,
    AlertDetails,
    BatchExecutionResult,
    CoFounderAction,
    ExecutionLogEntry,
    ExecutionOutcome,
    ExecutionResult,
    LeadResponseDetails,
    PaymentReminderDetails,
    ReviewReplyDetails,
)
from cofounder.db.base import BusinessRecordStore, DecisionLedger, ExecutionLogStore

logger = get_logger(__name__)


def _result(success: bool, message: str, external_id: str | None = None) -> ExecutionResult:
    return ExecutionResult(
        success=success,
        message=message,
        timestamp=datetime.now(UTC),
        external_id=external_id,
    )


class ActionExecutor:
    def __init__(
        self,
        lifecycle: ActionLifecycleManager,
        channel: MessageChannel,
        records: BusinessRecordStore,
        logs: ExecutionLogStore,
        ledger: DecisionLedger | None = None,
        execute_all_limit: int = 50,
        locks: KeyedLock | None = None,
    ):
        self.lifecycle = lifecycle
        self.channel = channel
        self.records = records
        self.logs = logs
        self.ledger = ledger
        self.execute_all_limit = execute_all_limit
        self.locks = locks or KeyedLock()

    def execute(self, action_id: str) -> ExecutionResult:
        """
        Execute one approved action.

        Raises:
            NotFoundError: If the action does not exist
            InvalidTransitionError: If the action is not approved
        """
        with self.locks.hold(action_id):
            action = self.lifecycle.get_by_id(action_id)
            if action.status != ActionStatus.APPROVED:
                raise InvalidTransitionError(
                    f"Action must be approved before execution (status: {action.status.value})"
                )

            result = self._dispatch(action)

            if result.success:
                self.lifecycle.mark_executed(action_id, result)
            else:
                self.lifecycle.record_failed_execution(action_id, result)

        self._append_history(action, result)
        self._record_outcome(action, result)

        log_with_context(
            logger,
            logging.INFO if result.success else logging.WARNING,
            f"Executed {action.type.value} action {action_id}: {result.message}",
            business_id=action.business_id,
            action_id=action_id,
            success=result.success,
        )
        return result

    def retry(self, action_id: str) -> ExecutionResult:
        """Re-attempt an approved action whose previous execution failed."""
        logger.info(f"Retrying action {action_id}")
        return self.execute(action_id)

    def execute_many(self, action_ids: list[str]) -> BatchExecutionResult:
        """Execute each action in turn; one failure never aborts the batch."""
        batch = BatchExecutionResult()
        for action_id in action_ids:
            try:
                result = self.execute(action_id)
                batch.results.append(
                    ExecutionOutcome(action_id=action_id, success=result.success, result=result)
                )
            except CoFounderError as e:
                batch.results.append(
                    ExecutionOutcome(action_id=action_id, success=False, error=str(e))
                )
        logger.info(batch.message)
        return batch

    def execute_all_approved(self, business_id: str) -> BatchExecutionResult:
        approved = self.lifecycle.list_pending(
            business_id,
            ActionFilters(status=ActionStatus.APPROVED, limit=self.execute_all_limit),
        )
        return self.execute_many([a.id for a in approved])

    def execution_history(
        self, business_id: str, action_type: str | None = None, limit: int = 50
    ) -> list[ExecutionLogEntry]:
        return self.logs.list(business_id, action_type=action_type, limit=limit)

    # =========================================================================
    # Channels
    # =========================================================================

    def _dispatch(self, action: CoFounderAction) -> ExecutionResult:
        try:
            if action.type == ActionType.PAYMENT_REMINDER:
                return self._send_payment_reminder(action.details)
            if action.type == ActionType.LEAD_RESPONSE:
                return self._send_lead_response(action.details)
            if action.type == ActionType.REVIEW_REPLY:
                return self._post_review_reply(action.details)
            if action.type == ActionType.ALERT:
                return self._acknowledge_alert(action.details)
            return _result(False, f"No execution channel for {action.type.value} actions")
        except Exception as e:
            logger.error(f"Execution of action {action.id} failed: {e}")
            return _result(False, str(e) or "Execution failed")

    def _send_payment_reminder(self, details: PaymentReminderDetails) -> ExecutionResult:
        if not details.contact_phone or not details.suggested_message:
            return _result(False, "Missing phone number or message content")
        sid = self.channel.send(details.contact_phone, details.suggested_message)
        return _result(True, f"Payment reminder sent to {details.contact_phone}", sid)

    def _send_lead_response(self, details: LeadResponseDetails) -> ExecutionResult:
        if not details.contact_phone or not details.suggested_response:
            return _result(False, "Missing phone number or response content")
        sid = self.channel.send(details.contact_phone, details.suggested_response)
        return _result(True, f"Lead response sent to {details.contact_phone}", sid)

    def _post_review_reply(self, details: ReviewReplyDetails) -> ExecutionResult:
        if not details.suggested_reply:
            return _result(False, "Missing reply content")
        # No review-platform API: the reply is stored for the owner to post
        self.records.mark_review_replied(
            details.review_id, details.suggested_reply, datetime.now(UTC)
        )
        return _result(
            True,
            f"Review reply prepared for {details.review_platform}. "
            "Please post manually if not auto-integrated.",
        )

    def _acknowledge_alert(self, details: AlertDetails) -> ExecutionResult:
        return _result(True, "Alert acknowledged")

    # =========================================================================
    # Best-effort bookkeeping
    # =========================================================================

    def _append_history(self, action: CoFounderAction, result: ExecutionResult) -> None:
        try:
            self.logs.append(
                ExecutionLogEntry(
                    id=str(uuid4()),
                    action_id=action.id,
                    business_id=action.business_id,
                    action_type=action.type,
                    action_details=action.details.model_dump(mode="json"),
                    execution_result=result,
                    executed_at=result.timestamp,
                    success=result.success,
                )
            )
        except CoFounderError as e:
            logger.warning(f"Execution of action {action.id} not logged: {e}")

    def _record_outcome(self, action: CoFounderAction, result: ExecutionResult) -> None:
        # Outcome is write-once, so only a successful execution settles it
        if not result.success or not action.decision_id or self.ledger is None:
            return
        try:
            self.ledger.record_outcome(action.decision_id, result.message)
        except CoFounderError as e:
            logger.warning(f"Outcome for decision {action.decision_id} not recorded: {e}")
