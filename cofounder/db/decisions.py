"""Decision ledger backed by the cofounder_decisions table."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from supabase import Client

from cofounder.core.errors import InvalidTransitionError, NotFoundError, StorageError
from cofounder.core.logging import get_logger
from cofounder.core.schemas_decisions import (
    PENDING_FEEDBACK,
    Decision,
    DecisionCreate,
    DecisionFilters,
    Feedback,
)
from cofounder.db.base import DecisionLedger

logger = get_logger(__name__)

TABLE = "cofounder_decisions"
DEFAULT_PAGE_SIZE = 50


class SupabaseDecisionLedger(DecisionLedger):
    def __init__(self, client: Client):
        self.client = client

    def log(self, decision: DecisionCreate) -> str:
        """
        Log a new decision made by the Co-Founder AI.

        Returns:
            New decision id

        Raises:
            StorageError: If the insert fails
        """
        decision_id = str(uuid4())
        row = {
            "id": decision_id,
            "business_id": decision.business_id,
            "type": decision.type.value,
            "context": decision.context.model_dump(mode="json"),
            "decision": decision.decision,
            "reasoning": decision.reasoning,
            "outcome": decision.outcome,
            "owner_feedback": decision.owner_feedback.value if decision.owner_feedback else None,
            "created_at": datetime.now(UTC).isoformat(),
        }

        try:
            response = self.client.table(TABLE).insert(row).execute()
        except Exception as e:
            logger.error(f"Failed to log decision for business {decision.business_id}: {e}")
            raise StorageError(f"Failed to log decision: {e}") from e

        if not response.data:
            raise StorageError("Failed to log decision: no row returned")

        logger.info(
            f"Logged {decision.type.value} decision {decision_id}",
            extra={"business_id": decision.business_id},
        )
        return decision_id

    def record_outcome(self, decision_id: str, outcome: str) -> None:
        """Record the outcome of a decision after execution (write-once)."""
        try:
            response = (
                self.client.table(TABLE)
                .update({"outcome": outcome})
                .eq("id", decision_id)
                .is_("outcome", "null")
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to record outcome for decision {decision_id}: {e}")
            raise StorageError(f"Failed to record outcome: {e}") from e

        if response.data:
            return

        # Nothing updated: either unknown id or outcome already set
        if self.get(decision_id) is None:
            raise NotFoundError("decision", decision_id)
        raise InvalidTransitionError(f"Outcome already recorded for decision {decision_id}")

    def record_feedback(self, decision_id: str, feedback: Feedback) -> None:
        """Record owner feedback on a decision. Re-recording overwrites it."""
        try:
            response = (
                self.client.table(TABLE)
                .update({"owner_feedback": feedback.value})
                .eq("id", decision_id)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to record feedback for decision {decision_id}: {e}")
            raise StorageError(f"Failed to record feedback: {e}") from e

        if not response.data:
            raise NotFoundError("decision", decision_id)

        logger.info(f"Recorded {feedback.value} feedback on decision {decision_id}")

    def get(self, decision_id: str) -> Decision | None:
        try:
            response = (
                self.client.table(TABLE)
                .select("*")
                .eq("id", decision_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to fetch decision {decision_id}: {e}")
            raise StorageError(f"Failed to fetch decision: {e}") from e

        if not response.data:
            return None
        return Decision.model_validate(response.data[0])

    def history(self, business_id: str, filters: DecisionFilters | None = None) -> list[Decision]:
        """
        Get decision history for a business, newest first.

        Args:
            business_id: Business id
            filters: Optional type / date range / feedback / pagination filters

        Returns:
            List of decisions (empty for unknown businesses)
        """
        filters = filters or DecisionFilters()

        query = (
            self.client.table(TABLE)
            .select("*")
            .eq("business_id", business_id)
            .order("created_at", desc=True)
        )

        if filters.type:
            query = query.eq("type", filters.type.value)
        if filters.start_date:
            query = query.gte("created_at", filters.start_date.isoformat())
        if filters.end_date:
            query = query.lte("created_at", filters.end_date.isoformat())
        if filters.feedback:
            if filters.feedback == PENDING_FEEDBACK:
                query = query.is_("owner_feedback", "null")
            else:
                query = query.eq("owner_feedback", Feedback(filters.feedback).value)

        if filters.offset:
            page_size = filters.limit or DEFAULT_PAGE_SIZE
            query = query.range(filters.offset, filters.offset + page_size - 1)
        elif filters.limit:
            query = query.limit(filters.limit)

        try:
            response = query.execute()
        except Exception as e:
            logger.error(f"Failed to fetch decision history for business {business_id}: {e}")
            raise StorageError(f"Failed to fetch decision history: {e}") from e

        return [Decision.model_validate(row) for row in response.data or []]
