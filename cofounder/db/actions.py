"""Co-Founder actions backed by the cofounder_actions table."""

from __future__ import annotations

from datetime import datetime

from supabase import Client

from cofounder.core.errors import StorageError
from cofounder.core.logging import get_logger
from cofounder.core.schemas_actions import (
    ActionFilters,
    ActionStatus,
    ActionType,
    CoFounderAction,
    ExecutionResult,
)
from cofounder.db.base import ActionStore

logger = get_logger(__name__)

TABLE = "cofounder_actions"


class SupabaseActionStore(ActionStore):
    def __init__(self, client: Client):
        self.client = client

    def insert(self, action: CoFounderAction) -> CoFounderAction:
        row = action.model_dump(mode="json", exclude_none=True)
        try:
            response = self.client.table(TABLE).insert(row).execute()
        except Exception as e:
            logger.error(f"Failed to store action {action.id}: {e}")
            raise StorageError(f"Failed to store action: {e}") from e

        if not response.data:
            raise StorageError(f"Failed to store action {action.id}")
        return CoFounderAction.model_validate(response.data[0])

    def get(self, action_id: str) -> CoFounderAction | None:
        try:
            response = self.client.table(TABLE).select("*").eq("id", action_id).limit(1).execute()
        except Exception as e:
            logger.error(f"Failed to fetch action {action_id}: {e}")
            raise StorageError(f"Failed to fetch action: {e}") from e

        if not response.data:
            return None
        return CoFounderAction.model_validate(response.data[0])

    def list(self, business_id: str, filters: ActionFilters) -> list[CoFounderAction]:
        query = (
            self.client.table(TABLE)
            .select("*")
            .eq("business_id", business_id)
            .order("created_at", desc=True)
        )

        if filters.type:
            query = query.eq("type", filters.type.value)
        if filters.status:
            query = query.eq("status", filters.status.value)
        if filters.priority:
            query = query.eq("priority", filters.priority.value)
        if filters.limit:
            query = query.limit(filters.limit)

        try:
            response = query.execute()
        except Exception as e:
            logger.error(f"Failed to fetch actions for business {business_id}: {e}")
            raise StorageError(f"Failed to fetch actions: {e}") from e

        return [CoFounderAction.model_validate(row) for row in response.data or []]

    def update_status(
        self,
        action_ids: list[str],
        status: ActionStatus,
        expected: set[ActionStatus],
        updated_at: datetime,
        execution_result: ExecutionResult | None = None,
        executed_at: datetime | None = None,
    ) -> list[CoFounderAction]:
        """Conditional, batched status write (status IN expected)."""
        if not action_ids:
            return []

        update_data: dict = {"status": status.value, "updated_at": updated_at.isoformat()}
        if execution_result is not None:
            update_data["execution_result"] = execution_result.model_dump(mode="json")
        if executed_at is not None:
            update_data["executed_at"] = executed_at.isoformat()

        try:
            response = (
                self.client.table(TABLE)
                .update(update_data)
                .in_("id", action_ids)
                .in_("status", sorted(s.value for s in expected))
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to update status for {len(action_ids)} actions: {e}")
            raise StorageError(f"Failed to update action: {e}") from e

        return [CoFounderAction.model_validate(row) for row in response.data or []]

    def pending_reminder_invoice_ids(self, business_id: str) -> set[str]:
        try:
            response = (
                self.client.table(TABLE)
                .select("details")
                .eq("business_id", business_id)
                .eq("type", ActionType.PAYMENT_REMINDER.value)
                .eq("status", ActionStatus.PENDING.value)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to fetch pending reminders for business {business_id}: {e}")
            raise StorageError(f"Failed to fetch pending reminders: {e}") from e

        return {
            row["details"]["invoice_id"]
            for row in response.data or []
            if (row.get("details") or {}).get("invoice_id")
        }
