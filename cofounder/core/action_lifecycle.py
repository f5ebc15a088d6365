"""Action state machine.

    pending ──approve──▶ approved ──mark_executed──▶ executed
       │                   │  ▲
       └──reject──▶ rejected  └─ record_failed_execution (approved → approved)

    approved / rejected ──revert──▶ pending   (administrative correction)

Every write is conditional on the current status (see TRANSITIONS), so
a concurrent change cannot be overwritten. Re-approving an approved
action or re-rejecting a rejected one is a no-op apart from updated_at.
"""

import logging
from collections import Counter
from datetime import UTC, datetime

from cofounder.core.errors import CoFounderError, InvalidTransitionError, NotFoundError
from cofounder.core.feedback_processor import FeedbackProcessor
from cofounder.core.logging import get_logger, log_with_context
from cofounder.core.schemas_actions import (
    ActionFilters,
    ActionStats,
    ActionStatus,
    CoFounderAction,
    ExecutionResult,
)
from cofounder.core.schemas_decisions import Feedback
from cofounder.db.base import ActionStore, DecisionLedger

logger = get_logger(__name__)

# target status -> statuses it may be entered from
TRANSITIONS: dict[ActionStatus, set[ActionStatus]] = {
    ActionStatus.APPROVED: {ActionStatus.PENDING, ActionStatus.APPROVED},
    ActionStatus.REJECTED: {ActionStatus.PENDING, ActionStatus.REJECTED},
    ActionStatus.EXECUTED: {ActionStatus.APPROVED},
    ActionStatus.PENDING: {ActionStatus.APPROVED, ActionStatus.REJECTED},
}

OWNER_FEEDBACK: dict[ActionStatus, Feedback] = {
    ActionStatus.APPROVED: Feedback.APPROVED,
    ActionStatus.REJECTED: Feedback.REJECTED,
}


class ActionLifecycleManager:
    def __init__(
        self,
        actions: ActionStore,
        ledger: DecisionLedger | None = None,
        feedback: FeedbackProcessor | None = None,
    ):
        self.actions = actions
        self.ledger = ledger
        self.feedback = feedback

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_id(self, action_id: str) -> CoFounderAction:
        action = self.actions.get(action_id)
        if action is None:
            raise NotFoundError("action", action_id)
        return action

    def list_pending(
        self, business_id: str, filters: ActionFilters | None = None
    ) -> list[CoFounderAction]:
        """List actions, newest first. Status defaults to pending."""
        filters = filters or ActionFilters()
        if filters.status is None:
            filters = filters.model_copy(update={"status": ActionStatus.PENDING})
        return self.actions.list(business_id, filters)

    def stats(self, business_id: str) -> ActionStats:
        actions = self.actions.list(business_id, ActionFilters())
        by_status = Counter(a.status for a in actions)
        by_type = Counter(a.type.value for a in actions)
        return ActionStats(
            pending=by_status[ActionStatus.PENDING],
            approved=by_status[ActionStatus.APPROVED],
            executed=by_status[ActionStatus.EXECUTED],
            rejected=by_status[ActionStatus.REJECTED],
            by_type=dict(by_type),
        )

    # =========================================================================
    # Owner decisions
    # =========================================================================

    def approve(self, action_id: str) -> CoFounderAction:
        return self._owner_decision(action_id, ActionStatus.APPROVED)

    def reject(self, action_id: str) -> CoFounderAction:
        return self._owner_decision(action_id, ActionStatus.REJECTED)

    def bulk_approve(self, action_ids: list[str]) -> list[CoFounderAction]:
        return self._bulk_owner_decision(action_ids, ActionStatus.APPROVED)

    def bulk_reject(self, action_ids: list[str]) -> list[CoFounderAction]:
        return self._bulk_owner_decision(action_ids, ActionStatus.REJECTED)

    def revert(self, action_id: str) -> CoFounderAction:
        """Move an approved or rejected action back to pending."""
        return self._transition(self.get_by_id(action_id), ActionStatus.PENDING)

    def _owner_decision(self, action_id: str, status: ActionStatus) -> CoFounderAction:
        action = self.get_by_id(action_id)
        updated = self._transition(action, status)
        if action.status == ActionStatus.PENDING:
            self._forward_feedback(updated, OWNER_FEEDBACK[status])
        return updated

    def _bulk_owner_decision(
        self, action_ids: list[str], status: ActionStatus
    ) -> list[CoFounderAction]:
        """One batched conditional write; every updated row shares updated_at."""
        ids = list(dict.fromkeys(action_ids))
        was_pending = {
            a.id for a in (self.actions.get(i) for i in ids) if a and a.status == ActionStatus.PENDING
        }

        updated = self.actions.update_status(
            ids, status, TRANSITIONS[status], updated_at=datetime.now(UTC)
        )

        skipped = set(ids) - {a.id for a in updated}
        if skipped:
            logger.warning(
                f"Bulk {status.value}: skipped {len(skipped)} actions not in "
                f"{sorted(s.value for s in TRANSITIONS[status])}: {sorted(skipped)}"
            )
        logger.info(f"Bulk {status.value}: {len(updated)}/{len(ids)} actions")

        for action in updated:
            if action.id in was_pending:
                self._forward_feedback(action, OWNER_FEEDBACK[status])
        return updated

    def _forward_feedback(self, action: CoFounderAction, feedback: Feedback) -> None:
        """Record the owner's reaction on the action's decision and learn from it."""
        if not action.decision_id or self.ledger is None:
            return
        try:
            self.ledger.record_feedback(action.decision_id, feedback)
            if self.feedback is not None:
                self.feedback.process_feedback(action.business_id, action.decision_id, feedback)
        except CoFounderError as e:
            log_with_context(
                logger,
                logging.WARNING,
                f"Feedback for action {action.id} not recorded: {e}",
                business_id=action.business_id,
                decision_id=action.decision_id,
            )

    # =========================================================================
    # Execution bookkeeping
    # =========================================================================

    def set_status(
        self,
        action_id: str,
        status: ActionStatus,
        execution_result: ExecutionResult | None = None,
    ) -> CoFounderAction:
        """Generic transition; executed requires a successful result."""
        if status == ActionStatus.EXECUTED:
            if execution_result is None or not execution_result.success:
                raise InvalidTransitionError("executed requires a successful execution result")
            return self.mark_executed(action_id, execution_result)
        if execution_result is not None and not execution_result.success:
            return self.record_failed_execution(action_id, execution_result)
        return self._transition(self.get_by_id(action_id), status)

    def mark_executed(self, action_id: str, result: ExecutionResult) -> CoFounderAction:
        """approved → executed, storing the successful result."""
        return self._transition(
            self.get_by_id(action_id),
            ActionStatus.EXECUTED,
            execution_result=result,
            executed_at=result.timestamp,
        )

    def record_failed_execution(self, action_id: str, result: ExecutionResult) -> CoFounderAction:
        """approved → approved, storing the failed result so the action can be retried."""
        action = self.get_by_id(action_id)
        if action.status != ActionStatus.APPROVED:
            raise InvalidTransitionError(
                f"Cannot record a failed execution on a {action.status.value} action"
            )
        updated = self.actions.update_status(
            [action_id],
            ActionStatus.APPROVED,
            {ActionStatus.APPROVED},
            updated_at=datetime.now(UTC),
            execution_result=result,
        )
        if not updated:
            raise InvalidTransitionError(f"Action {action_id} changed status during execution")

        log_with_context(
            logger,
            logging.WARNING,
            f"Execution failed, action {action_id} stays approved: {result.message}",
            business_id=action.business_id,
            action_id=action_id,
        )
        return updated[0]

    def _transition(
        self,
        action: CoFounderAction,
        status: ActionStatus,
        execution_result: ExecutionResult | None = None,
        executed_at: datetime | None = None,
    ) -> CoFounderAction:
        expected = TRANSITIONS[status]
        if action.status not in expected:
            raise InvalidTransitionError(
                f"Cannot move action {action.id} from {action.status.value} to {status.value}"
            )

        updated = self.actions.update_status(
            [action.id],
            status,
            expected,
            updated_at=datetime.now(UTC),
            execution_result=execution_result,
            executed_at=executed_at,
        )
        if not updated:
            # Lost a race with another transition
            current = self.get_by_id(action.id)
            raise InvalidTransitionError(
                f"Cannot move action {action.id} from {current.status.value} to {status.value}"
            )

        log_with_context(
            logger,
            logging.INFO,
            f"Action {action.id}: {action.status.value} -> {status.value}",
            business_id=action.business_id,
            action_id=action.id,
        )
        return updated[0]
